from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from gallerydesk.core.clock import utcnow
from gallerydesk.core.settings import settings
from gallerydesk.models.gallery import Gallery

logger = logging.getLogger("retention")


class PurgedGallery(NamedTuple):
    gallery_id: int
    user_id: int
    slug: str


def trash_expiry(gallery, retention_days: int) -> Optional[datetime]:
    """When a trashed gallery becomes eligible for purge (None if not trashed)."""
    deleted_at = getattr(gallery, "DeletedAt", None)
    if not getattr(gallery, "IsDeleted", False) or deleted_at is None:
        return None
    return deleted_at + timedelta(days=retention_days)


def sweep(
    db: Session,
    retention_days: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[PurgedGallery]:
    """Hard-delete galleries trashed for longer than ``retention_days``.

    Galleries whose ``DeletedAt`` is exactly on the cutoff are kept. The
    delete is one statement; on failure the transaction is rolled back and
    the error re-raised so the scheduler can retry the whole sweep.
    """
    days = settings.TRASH_RETENTION_DAYS if retention_days is None else int(retention_days)
    now = now or utcnow()
    cutoff = now - timedelta(days=days)

    rows = (
        db.query(Gallery.GalleryID, Gallery.UserID, Gallery.Slug)
        .filter(
            Gallery.IsDeleted,
            Gallery.DeletedAt.isnot(None),
            Gallery.DeletedAt < cutoff,
        )
        .order_by(Gallery.GalleryID)
        .all()
    )
    if not rows:
        logger.info("retention.sweep", extra={"cutoff": cutoff.isoformat(), "purged": 0})
        return []

    purged = [PurgedGallery(r[0], r[1], r[2]) for r in rows]
    ids = [p.gallery_id for p in purged]
    try:
        db.execute(delete(Gallery).where(Gallery.GalleryID.in_(ids)))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "retention.sweep_failed", extra={"cutoff": cutoff.isoformat(), "gallery_ids": ids}
        )
        raise

    logger.info(
        "retention.sweep",
        extra={"cutoff": cutoff.isoformat(), "purged": len(purged), "gallery_ids": ids},
    )
    return purged
