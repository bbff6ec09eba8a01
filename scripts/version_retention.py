# scripts/version_retention.py
# Poda de versiones antiguas: conserva las N más recientes (y siempre la publicada)
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

# --- Ensure repo root is on sys.path so "pagecraft.*" imports work when run as a script
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import select
from sqlalchemy.orm import Session

from pagecraft.core.logging import configure_logging
from pagecraft.core.settings import settings
from pagecraft.db.session import SessionLocal
from pagecraft.models.content import Page
from pagecraft.services.versioning_service import apply_retention_policy, versions_beyond_retention

logger = logging.getLogger("version_retention")


def apply_retention(
    db: Session,
    *,
    keep: int,
    page_id: Optional[int] = None,
    dry_run: bool = False,
) -> Dict[int, int]:
    """``{page_id: versions deleted (or that would be deleted)}`` for every page processed."""
    if page_id is not None:
        page_ids = [page_id]
    else:
        page_ids = list(db.scalars(select(Page.id).order_by(Page.id.asc())))

    result: Dict[int, int] = {}
    for pid in page_ids:
        if dry_run:
            doomed = versions_beyond_retention(db, pid, keep)
            for v in doomed:
                print(f"[DRY-RUN] page={pid} would delete version id={v.id} #{v.version_number}")
            result[pid] = len(doomed)
        else:
            result[pid] = apply_retention_policy(db, pid, keep)
    return result


def run(keep: int, page_id: Optional[int] = None, dry_run: bool = False) -> int:
    db: Session = SessionLocal()
    try:
        result = apply_retention(db, keep=keep, page_id=page_id, dry_run=dry_run)
    finally:
        db.close()

    total = sum(result.values())
    verb = "would delete" if dry_run else "deleted"
    print(f"[OK] {len(result)} page(s) processed, {verb} {total} version(s) (keep={keep})")
    return total


def main(argv=None):
    ap = argparse.ArgumentParser(
        description="Apply the page version retention policy.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("--keep", type=int, default=settings.VERSION_RETENTION_KEEP, help="Versions to keep per page")
    ap.add_argument("--page", type=int, default=None, help="Only this page id (default: all pages)")
    ap.add_argument("--dry-run", action="store_true", help="List what would be deleted without deleting")
    args = ap.parse_args(argv)

    if args.keep < 1:
        ap.error("--keep must be >= 1")

    configure_logging(settings.LOG_LEVEL)
    run(keep=args.keep, page_id=args.page, dry_run=args.dry_run)


if __name__ == "__main__":
    main()
