"""Immutable value objects shared by the pricing engine."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .errors import NotFoundError

_CENT = Decimal("0.01")
ZERO = Decimal("0")

# Quantity breakpoints used by every bundled price table, ascending.
STANDARD_BREAKPOINTS: Tuple[int, ...] = (48, 144, 576, 1152, 2880, 10000, 20000)

# Largest order quantity accepted anywhere; well above the top price break.
MAX_QUANTITY = 1_000_000


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def normalize_name(value: str | None) -> str:
    return " ".join((value or "").split()).lower()


class ItemType(str, Enum):
    PRODUCT = "product"
    LOGO = "logo"
    FABRIC = "fabric"
    CLOSURE = "closure"
    ACCESSORY = "accessory"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class Breakpoint:
    min_qty: int
    unit_price: Decimal


def make_table_id(
    item_type: ItemType | str,
    name: str,
    size: str | None = None,
    application: str | None = None,
) -> str:
    """Canonical, case-insensitive identifier for a price table."""
    kind = ItemType(item_type).value
    parts = [kind, normalize_name(name)]
    if size or application:
        parts.append(normalize_name(size))
    if application:
        parts.append(normalize_name(application))
    return ":".join(parts)


@dataclass(frozen=True)
class PriceTable:
    """A named tiered price table.

    Breakpoints are kept sorted ascending by ``min_qty``; the first one is
    the floor used for quantities below every breakpoint.
    """

    name: str
    item_type: ItemType
    breakpoints: Tuple[Breakpoint, ...]
    size: Optional[str] = None
    application: Optional[str] = None
    cost_type: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.breakpoints:
            raise ValueError(f"Price table '{self.name}' has no breakpoints")
        ordered = tuple(sorted(self.breakpoints, key=lambda bp: bp.min_qty))
        quantities = [bp.min_qty for bp in ordered]
        if len(set(quantities)) != len(quantities):
            raise ValueError(f"Price table '{self.name}' repeats a breakpoint")
        if quantities[0] < 1:
            raise ValueError(f"Price table '{self.name}' has a breakpoint below 1")
        object.__setattr__(self, "breakpoints", ordered)
        object.__setattr__(self, "item_type", ItemType(self.item_type))

    @property
    def table_id(self) -> str:
        return make_table_id(self.item_type, self.name, self.size, self.application)

    @property
    def floor(self) -> Breakpoint:
        return self.breakpoints[0]

    @property
    def is_free(self) -> bool:
        return normalize_name(self.cost_type) == "free"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "item_type": self.item_type.value,
            "size": self.size,
            "application": self.application,
            "cost_type": self.cost_type,
            "breakpoints": [[bp.min_qty, str(bp.unit_price)] for bp in self.breakpoints],
        }


class PriceCatalog:
    """Immutable snapshot of every price table, addressed by table id.

    ``version`` is a content hash, so two snapshots with identical tables
    share a version regardless of load order.
    """

    def __init__(self, tables: Iterable[PriceTable]):
        index: Dict[str, PriceTable] = {}
        for table in tables:
            index[table.table_id] = table
        self._tables = index
        digest = hashlib.sha256()
        for table_id in sorted(index):
            table = index[table_id]
            digest.update(table_id.encode("utf-8"))
            for bp in table.breakpoints:
                digest.update(f"|{bp.min_qty}={bp.unit_price}".encode("utf-8"))
            digest.update(f"|{normalize_name(table.cost_type)}\n".encode("utf-8"))
        self.version = digest.hexdigest()[:16]
        self.quantity_brackets: Tuple[int, ...] = tuple(
            sorted({bp.min_qty for table in index.values() for bp in table.breakpoints})
        )

    def bracket_for(self, quantity: int) -> int:
        """Highest breakpoint of any table at or below ``quantity`` (0 below all).

        Every table resolves identically for two quantities in the same
        bracket, which makes the bracket a safe cache key component.
        """
        best = 0
        for min_qty in self.quantity_brackets:
            if min_qty > quantity:
                break
            best = min_qty
        return best

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, table_id: str) -> bool:
        return table_id in self._tables

    def get(self, table_id: str) -> PriceTable:
        try:
            return self._tables[table_id]
        except KeyError:
            item_type, _, rest = table_id.partition(":")
            raise NotFoundError(item_type, rest.split(":", 1)[0]) from None

    def find(
        self,
        item_type: ItemType,
        name: str,
        size: str | None = None,
        application: str | None = None,
    ) -> PriceTable:
        table_id = make_table_id(item_type, name, size, application)
        table = self._tables.get(table_id)
        if table is None:
            raise NotFoundError(ItemType(item_type).value, name)
        return table

    def tables(self, item_type: ItemType | None = None) -> list[PriceTable]:
        if item_type is None:
            return list(self._tables.values())
        kind = ItemType(item_type)
        return [t for t in self._tables.values() if t.item_type is kind]


@dataclass(frozen=True)
class ResolvedTier:
    min_qty: int
    unit_price: Decimal
    below_floor: bool = False

    @property
    def label(self) -> str:
        return f"{self.min_qty}+"


@dataclass(frozen=True)
class SimpleLogo:
    """Canonical logo: one value per axis plus where it sits on the cap."""

    decoration: str
    size: str
    application: str
    position: Optional[str] = None
    pattern: Optional[str] = None


@dataclass(frozen=True)
class CompositeLogo:
    """Logo given as a free-form descriptor that still needs decomposing.

    ``size`` and ``application`` hold any separately supplied structured
    values; tokens found in ``raw_tokens`` take precedence over them.
    """

    raw_tokens: Tuple[str, ...]
    position: Optional[str] = None
    size: Optional[str] = None
    application: Optional[str] = None
    pattern: Optional[str] = None


LogoDescriptor = Union[SimpleLogo, CompositeLogo]


@dataclass(frozen=True)
class CostLineItem:
    name: str
    quantity: int
    unit_price: Decimal
    total_cost: Decimal
    tier_used: Optional[str]
    details: Dict[str, Any] = field(default_factory=dict, hash=False)
    found: bool = True
    category: str = ""

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_cost": self.total_cost,
            "tier_used": self.tier_used,
            "details": dict(self.details),
            "found": self.found,
        }


def logo_as_dict(logo: LogoDescriptor) -> Dict[str, Any]:
    if isinstance(logo, CompositeLogo):
        return {
            "kind": "composite",
            "raw_tokens": list(logo.raw_tokens),
            "position": logo.position,
            "size": logo.size,
            "application": logo.application,
            "pattern": logo.pattern,
        }
    return {
        "kind": "simple",
        "decoration": logo.decoration,
        "size": logo.size,
        "application": logo.application,
        "position": logo.position,
        "pattern": logo.pattern,
    }


@dataclass(frozen=True)
class QuoteSpecification:
    """Complete, immutable description of an order being quoted.

    ``fabric`` may name two fabrics as ``"A/B"`` for split-fabric caps.
    """

    quantity: int
    product_tier: str
    colors: Tuple[str, ...] = ()
    fabric: Optional[str] = None
    logos: Tuple[LogoDescriptor, ...] = ()
    closure: Optional[str] = None
    accessories: Tuple[str, ...] = ()
    delivery_method: Optional[str] = None
    previous_order_number: Optional[str] = None

    @property
    def fabrics(self) -> Tuple[str, ...]:
        if not self.fabric:
            return ()
        return tuple(part.strip() for part in self.fabric.split("/") if part.strip())

    def as_dict(self) -> Dict[str, Any]:
        return {
            "quantity": self.quantity,
            "product_tier": self.product_tier,
            "colors": list(self.colors),
            "fabric": self.fabric,
            "logos": [logo_as_dict(logo) for logo in self.logos],
            "closure": self.closure,
            "accessories": list(self.accessories),
            "delivery_method": self.delivery_method,
            "previous_order_number": self.previous_order_number,
        }


@dataclass(frozen=True)
class QuoteResult:
    spec: QuoteSpecification
    line_items: Tuple[CostLineItem, ...]
    subtotal: Decimal
    per_unit_cost: Decimal
    warnings: Tuple[str, ...] = ()
    lead_time: Optional[str] = None
    catalog_version: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "spec": self.spec.as_dict(),
            "line_items": [item.as_dict() for item in self.line_items],
            "subtotal": self.subtotal,
            "per_unit_cost": self.per_unit_cost,
            "warnings": list(self.warnings),
            "lead_time": self.lead_time,
            "catalog_version": self.catalog_version,
        }
