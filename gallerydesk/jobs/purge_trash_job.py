"""Scheduled purge of galleries left in the trash past the retention window.

Run from cron or a scheduler: ``python -m gallerydesk.jobs.purge_trash_job``.
"""
import argparse
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from gallerydesk.core.logging_utils import configure_logging
from gallerydesk.core.settings import settings
from gallerydesk.services.retention import PurgedGallery, sweep

logger = logging.getLogger("retention")


def run_purge(db: Session, retention_days: Optional[int] = None) -> List[PurgedGallery]:
    """Run one sweep and return the purged galleries."""
    purged = sweep(db, retention_days=retention_days)
    for p in purged:
        # Downstream cleanup (stored photos, notifications) keys off these records
        logger.info(
            "retention.purged",
            extra={"gallery_id": p.gallery_id, "user_id": p.user_id, "slug": p.slug},
        )
    return purged


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Purge galleries trashed longer than the retention window")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help=f"Retention window in days (default: TRASH_RETENTION_DAYS={settings.TRASH_RETENTION_DAYS})",
    )
    args = parser.parse_args(argv)
    if args.days is not None and args.days < 1:
        parser.error("--days must be at least 1")

    configure_logging(settings)
    from db import SessionLocal

    db = SessionLocal()
    try:
        purged = run_purge(db, retention_days=args.days)
    finally:
        db.close()
    print(f"Purged {len(purged)} gallery(ies)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
