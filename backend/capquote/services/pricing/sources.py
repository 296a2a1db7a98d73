"""Backing stores for price tables.

A source is anything with a blocking ``fetch_all()`` returning every
:class:`PriceTable`; the repository runs it off the event loop.
"""

from __future__ import annotations

import csv
import logging
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...models.price_table import PriceTableRecord
from .errors import DataUnavailable
from .models import Breakpoint, ItemType, PriceTable

logger = logging.getLogger(__name__)

CSV_FILES: Dict[ItemType, str] = {
    ItemType.PRODUCT: "products.csv",
    ItemType.LOGO: "logos.csv",
    ItemType.FABRIC: "fabrics.csv",
    ItemType.CLOSURE: "closures.csv",
    ItemType.ACCESSORY: "accessories.csv",
    ItemType.DELIVERY: "delivery.csv",
}

_PRICE_COLUMN_RE = re.compile(r"^price(\d+)$", re.IGNORECASE)
_UNAVAILABLE = {"", "not applicable", "n/a", "na", "-"}


class TableSource(Protocol):
    def fetch_all(self) -> List[PriceTable]:
        ...


def _parse_price(raw: Optional[str]) -> Optional[Decimal]:
    cleaned = (raw or "").strip()
    if cleaned.lower() in _UNAVAILABLE:
        return None
    try:
        return Decimal(cleaned.replace("$", "").replace(",", ""))
    except InvalidOperation:
        logger.warning("Unparseable price cell %r; skipping", raw)
        return None


def _cell(row: Dict[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = (row.get(name) or "").strip()
        if value:
            return value
    return None


def table_from_row(item_type: ItemType, row: Dict[str, str]) -> Optional[PriceTable]:
    """Build a table from one CSV row; rows without any price are dropped."""
    name = _cell(row, "Name", "Tier")
    if not name:
        return None
    breakpoints = []
    for column, raw in row.items():
        match = _PRICE_COLUMN_RE.match((column or "").strip())
        if not match:
            continue
        price = _parse_price(raw)
        if price is not None:
            breakpoints.append(Breakpoint(int(match.group(1)), price))
    if not breakpoints:
        logger.warning("Dropping %s row '%s': no usable prices", item_type.value, name)
        return None
    return PriceTable(
        name=name,
        item_type=item_type,
        breakpoints=tuple(breakpoints),
        size=_cell(row, "Size"),
        application=_cell(row, "Application"),
        cost_type=_cell(row, "Cost Type", "Type"),
    )


class CsvTableSource:
    """One CSV file per item type in ``directory``."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def fetch_all(self) -> List[PriceTable]:
        if not self.directory.is_dir():
            raise DataUnavailable(f"Price data directory not found: {self.directory}")
        tables: List[PriceTable] = []
        for item_type, filename in CSV_FILES.items():
            path = self.directory / filename
            if not path.exists():
                logger.warning("Price file %s missing; no %s tables loaded", path, item_type.value)
                continue
            try:
                with path.open(newline="", encoding="utf-8-sig") as fh:
                    for row in csv.DictReader(fh):
                        table = table_from_row(item_type, row)
                        if table is not None:
                            tables.append(table)
            except OSError as exc:
                raise DataUnavailable(f"Could not read {path}", exc) from exc
        logger.info("Loaded %d price tables from %s", len(tables), self.directory)
        return tables


def _record_to_table(record: PriceTableRecord) -> PriceTable:
    return PriceTable(
        name=record.name,
        item_type=ItemType(record.item_type),
        breakpoints=tuple(Breakpoint(int(q), Decimal(str(p))) for q, p in record.breakpoints),
        size=record.size,
        application=record.application,
        cost_type=record.cost_type,
    )


class DatabaseTableSource:
    """Reads the ``price_tables`` table through SQLAlchemy."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self.session_factory = session_factory

    def fetch_all(self) -> List[PriceTable]:
        try:
            with get_db_session(self.session_factory) as db:
                records = db.query(PriceTableRecord).order_by(PriceTableRecord.id).all()
                tables = [_record_to_table(r) for r in records]
        except SQLAlchemyError as exc:
            raise DataUnavailable("Price table database unreachable", exc) from exc
        logger.info("Loaded %d price tables from database", len(tables))
        return tables


def import_csv_tables(db: Session, directory: str | Path) -> int:
    """Replace the ``price_tables`` rows with the contents of the CSV files."""
    tables = CsvTableSource(directory).fetch_all()
    db.query(PriceTableRecord).delete()
    for table in tables:
        db.add(
            PriceTableRecord(
                item_type=table.item_type.value,
                name=table.name,
                size=table.size,
                application=table.application,
                cost_type=table.cost_type,
                breakpoints=[[bp.min_qty, str(bp.unit_price)] for bp in table.breakpoints],
            )
        )
    db.commit()
    logger.info("Imported %d price tables into the database", len(tables))
    return len(tables)
