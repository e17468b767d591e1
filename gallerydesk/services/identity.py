"""Caller identity for API routes.

Sessions are issued elsewhere; this module only resolves an existing
``AccountSession`` id (cookie or ``X-Session-ID`` header) to an Account.
"""
import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from db import get_db
from gallerydesk.core.clock import utcnow
from gallerydesk.core.settings import settings
from gallerydesk.models.account import Account, AccountSession

logger = logging.getLogger("app")


def get_session(db: Session, session_id: str) -> Optional[AccountSession]:
    session = (
        db.query(AccountSession)
        .filter(AccountSession.SessionID == str(session_id), AccountSession.IsActive)
        .first()
    )
    if session is None:
        return None
    expires_at = session.ExpiresAt
    if expires_at is None or expires_at <= utcnow():
        return None
    return session


def session_id_from_request(request: Request) -> Optional[str]:
    return request.cookies.get(settings.SESSION_COOKIE) or request.headers.get("X-Session-ID")


def get_current_account(request: Request, db: Session = Depends(get_db)) -> Optional[Account]:
    """Return the Account behind the request's session, or None."""
    session_id = session_id_from_request(request)
    if not session_id:
        return None
    session_obj = get_session(db, session_id)
    if session_obj is None:
        logger.debug("auth.session_invalid", extra={"path": request.url.path})
        return None
    return (
        db.query(Account)
        .filter(Account.UserID == session_obj.UserID, Account.IsActive)
        .first()
    )


def require_account(request: Request, db: Session = Depends(get_db)) -> Account:
    account = get_current_account(request, db)
    if account is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return account


def require_internal_token(x_internal_token: Optional[str] = Header(default=None)) -> None:
    """Guard for billing/scheduler routes; an unset INTERNAL_API_TOKEN disables them."""
    expected = settings.INTERNAL_API_TOKEN
    if not expected:
        raise HTTPException(status_code=404, detail="Not Found")
    if not x_internal_token or not hmac.compare_digest(
        x_internal_token.encode("utf-8"), expected.encode("utf-8")
    ):
        logger.debug("auth.internal_token_rejected")
        raise HTTPException(status_code=403, detail="Forbidden")
