"""Report image records without files and files without records."""

import argparse
import logging
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.db import session_scope
from app.core.logging import configure_logging
from app.core.storage import get_asset_store
from app.services import CatalogService

logger = logging.getLogger("scripts.audit_product_images")

DEFAULT_MIN_ORPHAN_AGE_SECONDS = 15 * 60


def main() -> int:
    parser = argparse.ArgumentParser(description="Audit product image records against files on disk.")
    parser.add_argument(
        "--delete-orphans",
        action="store_true",
        help="Remove files that no image record references",
    )
    parser.add_argument(
        "--min-age-seconds",
        type=float,
        default=DEFAULT_MIN_ORPHAN_AGE_SECONDS,
        help="Only remove orphans at least this old; younger files may belong to an upload in progress",
    )
    args = parser.parse_args()

    configure_logging()
    assets = get_asset_store()
    with session_scope() as db:
        service = CatalogService(db, assets)
        audit = service.audit_assets()

    for url in audit.missing_files:
        print(f"MISSING  {url}")
    for url in audit.orphaned_files:
        print(f"ORPHAN   {url}")
    print(f"{len(audit.missing_files)} missing, {len(audit.orphaned_files)} orphaned")

    if args.delete_orphans:
        removed = service.purge_orphans(audit.orphaned_files, min_age_seconds=args.min_age_seconds)
        logger.info("Removed %d of %d orphaned files", len(removed), len(audit.orphaned_files))

    return 0 if audit.is_consistent else 1


if __name__ == "__main__":
    sys.exit(main())
