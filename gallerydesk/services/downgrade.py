from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from gallerydesk.core.clock import utcnow
from gallerydesk.core.plan_features import (
    PERMISSION_MATRIX,
    UNLIMITED,
    Limit,
    PermissionMatrix,
    PlanTier,
    resolve_tier,
    serialize_value,
)
from gallerydesk.models.account import Account
from gallerydesk.models.audit import PlanChangeAudit
from gallerydesk.models.gallery import Gallery
from gallerydesk.services.gallery_service import ActionResult

logger = logging.getLogger("billing")


def _plan_code(plan: Any) -> Optional[str]:
    if plan is None:
        return None
    if isinstance(plan, PlanTier):
        return plan.code
    return str(plan)


def reconcile(
    db: Session,
    user_id: int,
    new_limit: Limit,
    old_plan: Any = None,
    new_plan: Any = None,
    now: Optional[datetime] = None,
) -> int:
    """Archive the least recent Active galleries beyond ``new_limit``.

    The most recent ``new_limit`` galleries (by EventDate, then GalleryID)
    stay Active. One audit row is written per call, also when nothing is
    archived, and everything lands in a single commit. Running it again with
    the same limit archives nothing. Store failures roll back and re-raise.
    Returns the number of galleries archived.
    """
    if new_limit is not UNLIMITED and new_limit < 0:
        raise ValueError(f"new_limit must be >= 0, got {new_limit!r}")
    now = now or utcnow()

    try:
        to_archive = []
        if new_limit is not UNLIMITED:
            active_ids = [
                row[0]
                for row in db.query(Gallery.GalleryID)
                .filter(Gallery.UserID == user_id, ~Gallery.IsDeleted, ~Gallery.IsArchived)
                .order_by(Gallery.EventDate.desc(), Gallery.GalleryID.desc())
                .all()
            ]
            to_archive = active_ids[new_limit:]
        if to_archive:
            db.query(Gallery).filter(Gallery.GalleryID.in_(to_archive)).update(
                {"IsArchived": True, "UpdatedAt": now}, synchronize_session=False
            )
        db.add(
            PlanChangeAudit(
                UserID=user_id,
                OldPlan=_plan_code(old_plan),
                NewPlan=_plan_code(new_plan),
                NewLimit=None if new_limit is UNLIMITED else int(new_limit),
                ArchivedCount=len(to_archive),
                ArchivedIDs=json.dumps(to_archive),
                CreatedAt=now,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "plan.reconcile_failed", extra={"user_id": user_id, "new_limit": serialize_value(new_limit)}
        )
        raise

    logger.info(
        "plan.reconciled",
        extra={
            "user_id": user_id,
            "old_plan": _plan_code(old_plan),
            "new_plan": _plan_code(new_plan),
            "new_limit": serialize_value(new_limit),
            "archived_count": len(to_archive),
            "archived_ids": to_archive,
        },
    )
    return len(to_archive)


def change_plan(
    db: Session,
    account: Account,
    new_tier: PlanTier,
    now: Optional[datetime] = None,
    matrix: PermissionMatrix = PERMISSION_MATRIX,
) -> ActionResult:
    """Persist a new tier for ``account``; a downgrade also reconciles its galleries."""
    old = resolve_tier(account.PlanKey)
    new = resolve_tier(new_tier)
    user_id = account.UserID

    account.PlanKey = new.code
    archived = 0
    if new < old:
        # reconcile commits the plan change together with the archiving
        archived = reconcile(
            db, user_id, matrix.entitlements(new).max_galleries, old, new, now=now
        )
    else:
        try:
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("plan.change_failed", extra={"user_id": user_id, "new_plan": new.code})
            raise

    logger.info(
        "plan.changed",
        extra={"user_id": user_id, "old_plan": old.code, "new_plan": new.code, "archived_count": archived},
    )
    return ActionResult.ok(
        {
            "user_id": user_id,
            "old_plan": old.code,
            "new_plan": new.code,
            "archived_count": archived,
        },
        message="Plan updated." if archived == 0 else f"Plan updated; {archived} gallery(ies) archived.",
    )
