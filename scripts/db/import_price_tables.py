#!/usr/bin/env python3
"""
Load the price table CSV files into the price_tables database table.

Usage:
  python scripts/db/import_price_tables.py [CSV_DIR]

CSV_DIR defaults to PRICE_DATA_DIR. The target database is
SQLALCHEMY_DATABASE_URL (see backend/capquote/core/config.py). Existing
rows are replaced. Set PRICE_TABLE_SOURCE=database afterwards to serve
prices from the database.
"""
from __future__ import annotations

import os
import sys

# Run from anywhere: put backend/ on the import path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "backend")))

from capquote.core.config import settings  # noqa: E402
from capquote.database import Base, SessionLocal, engine  # noqa: E402
from capquote.models import PriceTableRecord  # noqa: E402,F401
from capquote.services.pricing.errors import DataUnavailable  # noqa: E402
from capquote.services.pricing.sources import import_csv_tables  # noqa: E402


def main() -> int:
    directory = sys.argv[1] if len(sys.argv) > 1 else settings.PRICE_DATA_DIR
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as db:
        try:
            count = import_csv_tables(db, directory)
        except DataUnavailable as exc:
            print(f"Import failed: {exc}")
            return 1
    print(f"Imported {count} price tables from {directory}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
