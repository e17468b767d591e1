"""Gallery lifecycle: create, edit and move galleries between states.

States are derived from the ``IsArchived`` / ``IsDeleted`` flags (see
``Gallery.state``). Every public method returns an :class:`ActionResult`;
quota and state-machine rejections are ordinary results, only store failures
are logged as errors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gallerydesk.core.clock import utcnow
from gallerydesk.core.plan_features import PERMISSION_MATRIX, PermissionMatrix, resolve_tier
from gallerydesk.core.settings import settings
from gallerydesk.models.account import Account
from gallerydesk.models.gallery import Gallery, GalleryState
from gallerydesk.services.quota import QuotaCheck, can_create, can_reactivate
from gallerydesk.services.retention import trash_expiry
from gallerydesk.services.slug import generate_slug, slug_lookup

logger = logging.getLogger("gallery")
audit_logger = logging.getLogger("audit")

NOT_FOUND_MESSAGE = "Gallery not found."
STORE_ERROR_MESSAGE = "Something went wrong while saving the gallery."
INVALID_DATE_MESSAGE = "Event date must be a date or an ISO 8601 timestamp."


class ErrorCode(str, Enum):
    NOT_FOUND = "not_found"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_TRANSITION = "invalid_transition"
    ARCHIVED_READ_ONLY = "archived_read_only"
    VALIDATION = "validation"
    STORE_ERROR = "store_error"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.QUOTA_EXCEEDED: 403,
    ErrorCode.INVALID_TRANSITION: 409,
    ErrorCode.ARCHIVED_READ_ONLY: 409,
    ErrorCode.VALIDATION: 422,
    ErrorCode.STORE_ERROR: 500,
}


@dataclass
class ActionResult:
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    code: Optional[ErrorCode] = None

    @classmethod
    def ok(cls, data: Optional[Dict[str, Any]] = None, message: Optional[str] = None) -> "ActionResult":
        return cls(True, data=data, message=message)

    @classmethod
    def fail(
        cls, code: ErrorCode, error: str, data: Optional[Dict[str, Any]] = None
    ) -> "ActionResult":
        return cls(False, data=data, error=error, code=code)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        if self.message is not None:
            out["message"] = self.message
        if self.code is not None:
            out["code"] = self.code.value
        return out


class GalleryEvent(str, Enum):
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    TRASH = "trash"
    RESTORE = "restore"
    PURGE = "purge"
    TOGGLE_VISIBILITY = "toggle_visibility"


_TRANSITIONS = {
    (GalleryState.ACTIVE, GalleryEvent.ARCHIVE): GalleryState.ARCHIVED,
    (GalleryState.ARCHIVED, GalleryEvent.UNARCHIVE): GalleryState.ACTIVE,
    (GalleryState.ACTIVE, GalleryEvent.TRASH): GalleryState.TRASHED,
    (GalleryState.ARCHIVED, GalleryEvent.TRASH): GalleryState.TRASHED,
    (GalleryState.TRASHED, GalleryEvent.RESTORE): GalleryState.ACTIVE,
    (GalleryState.TRASHED, GalleryEvent.PURGE): GalleryState.PURGED,
    (GalleryState.ACTIVE, GalleryEvent.TOGGLE_VISIBILITY): GalleryState.ACTIVE,
    (GalleryState.ARCHIVED, GalleryEvent.TOGGLE_VISIBILITY): GalleryState.ARCHIVED,
    (GalleryState.TRASHED, GalleryEvent.TOGGLE_VISIBILITY): GalleryState.TRASHED,
}

# Events that bring a gallery back to Active and therefore consume quota
_REACTIVATING = frozenset((GalleryEvent.UNARCHIVE, GalleryEvent.RESTORE))


def next_state(state: GalleryState, event: GalleryEvent) -> Optional[GalleryState]:
    """Target state for ``event`` from ``state``; None when the move is not allowed."""
    return _TRANSITIONS.get((state, event))


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        # raises ValueError on malformed input
        return datetime.fromisoformat(value.strip()) if value.strip() else None
    raise ValueError(f"Expected a date or datetime, got {type(value).__name__}")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def gallery_to_dict(g: Gallery, retention_days: Optional[int] = None) -> Dict[str, Any]:
    state = g.state
    out = {
        "id": g.GalleryID,
        "title": g.Title,
        "slug": g.Slug,
        "event_date": _iso(g.EventDate),
        "location": g.Location,
        "client_name": g.ClientName,
        "category": g.Category,
        "is_public": bool(g.IsPublic),
        "show_on_profile": bool(g.ShowOnProfile),
        "state": state.value,
        "deleted_at": _iso(g.DeletedAt),
        "created_at": _iso(g.CreatedAt),
        "updated_at": _iso(g.UpdatedAt),
    }
    if state is GalleryState.TRASHED and g.DeletedAt is not None:
        days = retention_days if retention_days is not None else settings.TRASH_RETENTION_DAYS
        out["purge_after"] = _iso(trash_expiry(g, days))
    return out


# Editable fields and the column each maps to
_EDITABLE = {
    "title": "Title",
    "event_date": "EventDate",
    "location": "Location",
    "client_name": "ClientName",
    "category": "Category",
    "is_public": "IsPublic",
}


class GalleryService:
    def __init__(
        self,
        db: Session,
        matrix: PermissionMatrix = PERMISSION_MATRIX,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.matrix = matrix
        self.clock = clock

    # -- helpers ---------------------------------------------------------

    def _get_owned(self, user_id: int, gallery_id: int) -> Optional[Gallery]:
        gallery = (
            self.db.query(Gallery)
            .filter(Gallery.GalleryID == gallery_id, Gallery.UserID == user_id)
            .first()
        )
        if gallery is None:
            # Foreign and missing galleries are indistinguishable to the caller
            logger.debug("gallery.not_found", extra={"user_id": user_id, "gallery_id": gallery_id})
        return gallery

    def _lock_owner(self, user_id: int) -> None:
        # Serializes count-then-insert per owner on databases with row locks
        self.db.query(Account).filter(Account.UserID == user_id).with_for_update().first()

    def _quota_failure(self, check: QuotaCheck) -> ActionResult:
        self.db.rollback()
        return ActionResult.fail(ErrorCode.QUOTA_EXCEEDED, check.message or "", data=check.to_dict())

    def _store_failure(self, action: str, **ctx) -> ActionResult:
        self.db.rollback()
        logger.exception("gallery.store_error", extra={"action": action, **ctx})
        return ActionResult.fail(ErrorCode.STORE_ERROR, STORE_ERROR_MESSAGE)

    # -- queries ---------------------------------------------------------

    def list_galleries(self, account: Account, state: Optional[GalleryState] = None) -> ActionResult:
        q = self.db.query(Gallery).filter(Gallery.UserID == account.UserID)
        if state is GalleryState.ACTIVE:
            q = q.filter(~Gallery.IsDeleted, ~Gallery.IsArchived)
        elif state is GalleryState.ARCHIVED:
            q = q.filter(~Gallery.IsDeleted, Gallery.IsArchived)
        elif state is GalleryState.TRASHED:
            q = q.filter(Gallery.IsDeleted)
        elif state is not None:
            return ActionResult.fail(ErrorCode.VALIDATION, f"Unknown gallery status: {state}")
        rows: List[Gallery] = q.order_by(Gallery.EventDate.desc(), Gallery.GalleryID.desc()).all()
        return ActionResult.ok({"galleries": [gallery_to_dict(g) for g in rows]})

    def get(self, account: Account, gallery_id: int) -> ActionResult:
        gallery = self._get_owned(account.UserID, gallery_id)
        if gallery is None:
            return ActionResult.fail(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        return ActionResult.ok(gallery_to_dict(gallery))

    # -- create / update -------------------------------------------------

    def create(
        self,
        account: Account,
        title: str,
        event_date: Any,
        location: Optional[str] = None,
        client_name: Optional[str] = None,
        category: Optional[str] = None,
        is_public: bool = True,
        show_on_profile: bool = True,
    ) -> ActionResult:
        title = (title or "").strip()
        if not title:
            return ActionResult.fail(ErrorCode.VALIDATION, "Title is required.")
        try:
            when = _as_datetime(event_date)
        except ValueError:
            return ActionResult.fail(ErrorCode.VALIDATION, INVALID_DATE_MESSAGE)
        if when is None:
            return ActionResult.fail(ErrorCode.VALIDATION, "Event date is required.")

        user_id = account.UserID
        handle = account.Username
        tier = resolve_tier(account.PlanKey)
        try:
            self._lock_owner(user_id)
            check = can_create(self.db, user_id, tier, self.matrix)
            if not check.allowed:
                return self._quota_failure(check)
            slug = generate_slug(handle, title, when, slug_lookup(self.db))
            gallery = Gallery(
                UserID=user_id,
                Title=title,
                Slug=slug,
                EventDate=when,
                Location=location,
                ClientName=client_name,
                Category=category,
                IsPublic=bool(is_public),
                ShowOnProfile=bool(show_on_profile),
                IsArchived=False,
                IsDeleted=False,
            )
            self.db.add(gallery)
            self.db.commit()
            self.db.refresh(gallery)
        except SQLAlchemyError:
            return self._store_failure("create", user_id=user_id)

        audit_logger.info(
            "gallery.created",
            extra={"user_id": user_id, "gallery_id": gallery.GalleryID, "slug": gallery.Slug},
        )
        return ActionResult.ok(gallery_to_dict(gallery), message="Gallery created.")

    def update(self, account: Account, gallery_id: int, **changes: Any) -> ActionResult:
        """Edit an Active gallery. Changing title or date regenerates the slug."""
        unknown = sorted(set(changes) - set(_EDITABLE))
        if unknown:
            return ActionResult.fail(ErrorCode.VALIDATION, f"Unknown fields: {', '.join(unknown)}")
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                return ActionResult.fail(ErrorCode.VALIDATION, "Title is required.")
        if "event_date" in changes:
            try:
                changes["event_date"] = _as_datetime(changes["event_date"])
            except ValueError:
                return ActionResult.fail(ErrorCode.VALIDATION, INVALID_DATE_MESSAGE)
            if changes["event_date"] is None:
                return ActionResult.fail(ErrorCode.VALIDATION, "Event date is required.")
        if "is_public" in changes and changes["is_public"] is None:
            return ActionResult.fail(ErrorCode.VALIDATION, "is_public must be true or false.")

        gallery = self._get_owned(account.UserID, gallery_id)
        if gallery is None:
            return ActionResult.fail(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)
        state = gallery.state
        if state is not GalleryState.ACTIVE:
            return ActionResult.fail(
                ErrorCode.ARCHIVED_READ_ONLY,
                f"This gallery is {state.value} and cannot be edited.",
                data={"state": state.value},
            )

        title = changes.get("title", gallery.Title)
        when = changes.get("event_date", gallery.EventDate)
        rename = title != gallery.Title or when.date() != gallery.EventDate.date()
        try:
            for key, value in changes.items():
                setattr(gallery, _EDITABLE[key], value)
            if rename:
                gallery.Slug = generate_slug(
                    account.Username, title, when, slug_lookup(self.db), exclude_id=gallery.GalleryID
                )
            gallery.UpdatedAt = self.clock()
            self.db.commit()
            self.db.refresh(gallery)
        except SQLAlchemyError:
            return self._store_failure("update", user_id=account.UserID, gallery_id=gallery_id)

        audit_logger.info(
            "gallery.updated",
            extra={
                "user_id": account.UserID,
                "gallery_id": gallery_id,
                "fields": sorted(changes),
                "slug": gallery.Slug,
            },
        )
        return ActionResult.ok(gallery_to_dict(gallery), message="Gallery updated.")

    # -- state transitions -----------------------------------------------

    def archive(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.ARCHIVE)

    def unarchive(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.UNARCHIVE)

    def trash(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.TRASH)

    def restore(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.RESTORE)

    def purge(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.PURGE)

    def toggle_visibility(self, account: Account, gallery_id: int) -> ActionResult:
        return self._transition(account, gallery_id, GalleryEvent.TOGGLE_VISIBILITY)

    def _transition(self, account: Account, gallery_id: int, event: GalleryEvent) -> ActionResult:
        user_id = account.UserID
        gallery = self._get_owned(user_id, gallery_id)
        if gallery is None:
            return ActionResult.fail(ErrorCode.NOT_FOUND, NOT_FOUND_MESSAGE)

        current = gallery.state
        target = next_state(current, event)
        if target is None:
            return ActionResult.fail(
                ErrorCode.INVALID_TRANSITION,
                f"Cannot {event.value.replace('_', ' ')} a gallery that is {current.value}.",
                data={"state": current.value},
            )

        try:
            if event in _REACTIVATING:
                self._lock_owner(user_id)
                check = can_reactivate(
                    self.db, user_id, resolve_tier(account.PlanKey), gallery_id, self.matrix
                )
                if check is not None and not check.allowed:
                    return self._quota_failure(check)

            slug = gallery.Slug
            if event is GalleryEvent.PURGE:
                self.db.delete(gallery)
            else:
                self._apply(gallery, event)
            self.db.commit()
        except SQLAlchemyError:
            return self._store_failure(event.value, user_id=user_id, gallery_id=gallery_id)

        audit_logger.info(
            "gallery.transition",
            extra={
                "user_id": user_id,
                "gallery_id": gallery_id,
                "event": event.value,
                "from_state": current.value,
                "to_state": target.value,
            },
        )
        if event is GalleryEvent.PURGE:
            return ActionResult.ok(
                {"id": gallery_id, "slug": slug, "state": target.value},
                message="Gallery permanently deleted.",
            )
        self.db.refresh(gallery)
        return ActionResult.ok(gallery_to_dict(gallery))

    def _apply(self, gallery: Gallery, event: GalleryEvent) -> None:
        now = self.clock()
        if event is GalleryEvent.ARCHIVE:
            gallery.IsArchived = True
        elif event is GalleryEvent.UNARCHIVE:
            gallery.IsArchived = False
        elif event is GalleryEvent.TRASH:
            # IsArchived is left as-is; the derived state is Trashed either way
            gallery.IsDeleted = True
            gallery.DeletedAt = now
        elif event is GalleryEvent.RESTORE:
            gallery.IsDeleted = False
            gallery.IsArchived = False
            gallery.DeletedAt = None
        elif event is GalleryEvent.TOGGLE_VISIBILITY:
            gallery.ShowOnProfile = not bool(gallery.ShowOnProfile)
        else:
            raise ValueError(f"No side effects defined for {event!r}")
        gallery.UpdatedAt = now
