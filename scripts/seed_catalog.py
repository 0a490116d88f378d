"""Import catalog exports (subjects, topics, categories, exercises) into the database.

Usage::

    python -m scripts.seed_catalog --data-dir ./catalog-export
    python scripts/seed_catalog.py --exercise exercise.fixed.json

The data directory may hold ``subject.json``, ``topic.json``, ``category.json``
and ``exercise.json`` (or the ``*_export.csv`` files). Rows are upserted by id,
so running the import twice is harmless.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on sys.path when executed as a module or script.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from eduup.db.base import Base  # noqa: E402
from eduup.db import session as session_module  # noqa: E402
from eduup.utils.catalog_import import IMPORT_ORDER, find_export_file, import_catalog, load_records  # noqa: E402

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def collect_datasets(args: argparse.Namespace) -> dict[str, list[dict]]:
    datasets: dict[str, list[dict]] = {}
    for kind in IMPORT_ORDER:
        path = getattr(args, kind)
        if path is None and args.data_dir:
            path = find_export_file(args.data_dir, kind)
        if path is None:
            continue
        datasets[kind] = load_records(path)
        logger.info("Loaded %s %s records from %s", len(datasets[kind]), kind, path)
    return datasets


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Import catalog exports")
    parser.add_argument("--data-dir", dest="data_dir", type=Path, default=None, help="Directory holding the exports.")
    for kind in IMPORT_ORDER:
        parser.add_argument(f"--{kind}", type=Path, default=None, help=f"Explicit {kind} export file.")
    parser.add_argument(
        "--database-url",
        dest="database_url",
        default=None,
        help="Override settings.DATABASE_URL (useful for targeting another environment).",
    )
    args = parser.parse_args(argv)

    if args.database_url:
        session_module.configure_database(args.database_url, allow_fallback=False)

    datasets = collect_datasets(args)
    if not datasets:
        parser.error("No export found. Use --data-dir or one of the per-entity options.")

    Base.metadata.create_all(bind=session_module.sync_engine)

    db = session_module.SessionLocal()
    try:
        counts = import_catalog(db, datasets)
    finally:
        db.close()

    for kind, count in counts.items():
        print(f"✅ {kind}: {count}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
