from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from gallerydesk.core.plan_features import (
    PERMISSION_MATRIX,
    UNLIMITED,
    Limit,
    PermissionMatrix,
    PlanTier,
    resolve_tier,
    serialize_value,
)
from gallerydesk.models.gallery import Gallery, GalleryState

logger = logging.getLogger("quota")


@dataclass(frozen=True)
class QuotaCheck:
    allowed: bool
    current_count: int
    limit: Limit
    message: Optional[str] = None
    tier: Optional[PlanTier] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["limit"] = serialize_value(self.limit)
        data["tier"] = self.tier.code if self.tier is not None else None
        return data


def limit_message(tier: PlanTier, current: int, cap: Limit) -> str:
    return (
        f"Gallery limit of {cap} reached for the {tier.label} plan "
        f"({current}/{cap}). Archive a gallery or upgrade."
    )


def check_limit(current: int, tier: PlanTier, cap: Limit) -> QuotaCheck:
    """Pure decision: a new Active gallery fits iff ``current < cap``."""
    if cap is UNLIMITED or current < cap:
        return QuotaCheck(True, current, cap, None, tier)
    return QuotaCheck(False, current, cap, limit_message(tier, current, cap), tier)


def count_active_galleries(db: Session, user_id: int) -> int:
    return (
        db.query(Gallery)
        .filter(
            Gallery.UserID == user_id,
            ~Gallery.IsDeleted,
            ~Gallery.IsArchived,
        )
        .count()
    )


def can_create(
    db: Session, user_id: int, tier: PlanTier, matrix: PermissionMatrix = PERMISSION_MATRIX
) -> QuotaCheck:
    tier = resolve_tier(tier)
    cap = matrix.entitlements(tier).max_galleries
    result = check_limit(count_active_galleries(db, user_id), tier, cap)
    if not result.allowed:
        logger.info(
            "quota.rejected",
            extra={"user_id": user_id, "tier": tier.code, "count": result.current_count, "limit": cap},
        )
    return result


def can_reactivate(
    db: Session,
    user_id: int,
    tier: PlanTier,
    gallery_id: int,
    matrix: PermissionMatrix = PERMISSION_MATRIX,
) -> Optional[QuotaCheck]:
    """Quota decision for bringing ``gallery_id`` back to Active.

    Returns None when the gallery does not exist for this owner. An already
    Active gallery does not consume an extra slot.
    """
    gallery = (
        db.query(Gallery)
        .filter(Gallery.GalleryID == gallery_id, Gallery.UserID == user_id)
        .first()
    )
    if gallery is None:
        return None
    tier = resolve_tier(tier)
    if gallery.state is GalleryState.ACTIVE:
        cap = matrix.entitlements(tier).max_galleries
        return QuotaCheck(True, count_active_galleries(db, user_id), cap, None, tier)
    return can_create(db, user_id, tier, matrix)
