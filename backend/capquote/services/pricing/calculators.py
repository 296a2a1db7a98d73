"""Component cost calculators.

Each calculator prices one part of the order at the quantity's price break.
Items missing from the tables come back as zero-cost lines with
``found=False`` and a warning in ``details["warnings"]`` so the quote can
still be assembled.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cache import PricingCache
from .errors import NotFoundError
from .logo_parser import MOLD_DECORATIONS
from .models import (
    ZERO,
    CostLineItem,
    ItemType,
    PriceCatalog,
    PriceTable,
    ResolvedTier,
    SimpleLogo,
    normalize_name,
    quantize_money,
)
from .tiers import resolve_tier

logger = logging.getLogger(__name__)

FREE_FABRICS = frozenset({"polyester", "chino twill", "cotton polyester mix", "cotton"})
STANDARD_CLOSURES = frozenset({"snapback", "velcro"})
MOLD_CHARGE_NAME = "Mold Charge"
MAX_FABRIC_SIDES = 2
# Shortest word accepted as the start of a delivery table word
MIN_PREFIX = 3

_MISSING = object()


class PriceLookup:
    """Table lookups at a resolved price break, memoized per catalog version."""

    def __init__(self, catalog: PriceCatalog, cache: Optional[PricingCache] = None):
        self.catalog = catalog
        self.cache = cache

    def _key(self, item_type: ItemType, name: str, size, application, quantity: int) -> str:
        return "|".join(
            (
                "lookup",
                item_type.value,
                normalize_name(name),
                normalize_name(size),
                normalize_name(application),
                str(self.catalog.bracket_for(quantity)),
                self.catalog.version,
            )
        )

    def _load(self, item_type, name, size, application, quantity):
        try:
            table = self.catalog.find(item_type, name, size, application)
        except NotFoundError:
            return _MISSING
        return table, resolve_tier(table, quantity)

    def price(
        self,
        item_type: ItemType,
        name: str,
        quantity: int,
        size: Optional[str] = None,
        application: Optional[str] = None,
    ) -> Tuple[PriceTable, ResolvedTier]:
        """Return the table and resolved tier, raising NotFoundError if absent."""
        if self.cache is None:
            found = self._load(item_type, name, size, application, quantity)
        else:
            found = self.cache.get_or_load(
                self._key(item_type, name, size, application, quantity),
                lambda: self._load(item_type, name, size, application, quantity),
            )
        if found is _MISSING:
            raise NotFoundError(item_type.value, name)
        return found

    def tables(self, item_type: ItemType) -> List[PriceTable]:
        return sorted(self.catalog.tables(item_type), key=lambda t: t.table_id)


def _priced_line(
    name: str,
    category: str,
    quantity: int,
    tier: ResolvedTier,
    details: Optional[Dict[str, Any]] = None,
    unit_price: Optional[Decimal] = None,
) -> CostLineItem:
    unit = tier.unit_price if unit_price is None else unit_price
    return CostLineItem(
        name=name,
        quantity=quantity,
        unit_price=unit,
        total_cost=quantize_money(unit * quantity),
        tier_used=tier.label,
        details=details or {},
        found=True,
        category=category,
    )


def _free_line(name: str, category: str, quantity: int, details: Dict[str, Any]) -> CostLineItem:
    return CostLineItem(name, quantity, ZERO, ZERO, None, details, True, category)


def _missing_line(name: str, category: str, quantity: int, warning: str) -> CostLineItem:
    logger.info("No price table for %s '%s'", category, name)
    return CostLineItem(name, quantity, ZERO, ZERO, None, {"warnings": [warning]}, False, category)


def base_product_cost(lookup: PriceLookup, product_tier: str, quantity: int) -> CostLineItem:
    name = f"Base Product ({product_tier})"
    try:
        _, tier = lookup.price(ItemType.PRODUCT, product_tier, quantity)
    except NotFoundError:
        return _missing_line(name, "product", quantity, f"Unknown product tier '{product_tier}'")
    return _priced_line(name, "product", quantity, tier, {"tier": product_tier})


def _fabric_side_cost(lookup: PriceLookup, fabric: str, quantity: int) -> CostLineItem:
    name = f"Fabric: {fabric}"
    if normalize_name(fabric) in FREE_FABRICS:
        return _free_line(name, "fabric", quantity, {"fabric": fabric, "free": True})
    try:
        table, tier = lookup.price(ItemType.FABRIC, fabric, quantity)
    except NotFoundError:
        return _missing_line(name, "fabric", quantity, f"Fabric '{fabric}' not found; priced at 0")
    if table.is_free:
        return _free_line(name, "fabric", quantity, {"fabric": fabric, "free": True})
    return _priced_line(name, "fabric", quantity, tier, {"fabric": fabric, "premium": True})


def premium_fabric_cost(lookup: PriceLookup, fabric: Optional[str], quantity: int) -> List[CostLineItem]:
    """Price one fabric or a split ``"A/B"`` fabric, one line per side."""
    if not fabric or not fabric.strip():
        return []
    sides = [part.strip() for part in fabric.split("/") if part.strip()]
    lines = [_fabric_side_cost(lookup, side, quantity) for side in sides[:MAX_FABRIC_SIDES]]
    if len(sides) > MAX_FABRIC_SIDES and lines:
        ignored = ", ".join(sides[MAX_FABRIC_SIDES:])
        first = lines[0]
        details = dict(first.details)
        details["warnings"] = list(details.get("warnings", [])) + [
            f"Split fabric supports two fabrics; ignored: {ignored}"
        ]
        lines[0] = CostLineItem(
            first.name,
            first.quantity,
            first.unit_price,
            first.total_cost,
            first.tier_used,
            details,
            first.found,
            first.category,
        )
    return lines


def _logo_label(logo: SimpleLogo) -> str:
    label = f"Logo: {logo.size} {logo.decoration} ({logo.application})"
    if logo.position:
        label += f" - {logo.position}"
    return label


def _pattern_key(logo: SimpleLogo) -> Tuple[str, ...]:
    if logo.pattern:
        return ("pattern", normalize_name(logo.pattern))
    return (normalize_name(logo.decoration), normalize_name(logo.size), normalize_name(logo.position))


def _mold_line(
    lookup: PriceLookup,
    logo: SimpleLogo,
    previous_order_number: Optional[str],
) -> CostLineItem:
    name = f"Mold Charge: {logo.size} {logo.decoration}"
    if logo.position:
        name += f" - {logo.position}"
    try:
        table, _ = lookup.price(ItemType.LOGO, MOLD_CHARGE_NAME, 1, size=logo.size)
    except NotFoundError:
        return _missing_line(name, "mold", 1, f"No mold charge for size '{logo.size}'; priced at 0")
    floor = table.floor
    details: Dict[str, Any] = {"decoration": logo.decoration, "size": logo.size, "one_time": True}
    if previous_order_number:
        details.update({"waived": True, "previous_order_number": previous_order_number})
        unit = ZERO
    else:
        unit = floor.unit_price
    return CostLineItem(name, 1, unit, quantize_money(unit), "one-time", details, True, "mold")


def logo_cost(
    lookup: PriceLookup,
    logos: Sequence[SimpleLogo],
    quantity: int,
    previous_order_number: Optional[str] = None,
) -> List[CostLineItem]:
    """Per-unit decoration lines followed by one mold line per distinct pattern."""
    lines: List[CostLineItem] = []
    molds: List[CostLineItem] = []
    seen_patterns: set = set()
    for logo in logos:
        name = _logo_label(logo)
        details = {
            "decoration": logo.decoration,
            "size": logo.size,
            "application": logo.application,
            "position": logo.position,
        }
        try:
            _, tier = lookup.price(
                ItemType.LOGO, logo.decoration, quantity, size=logo.size, application=logo.application
            )
        except NotFoundError:
            lines.append(
                _missing_line(
                    name,
                    "logo",
                    quantity,
                    f"No price for {logo.size} {logo.decoration} ({logo.application}); priced at 0",
                )
            )
        else:
            lines.append(_priced_line(name, "logo", quantity, tier, details))

        if logo.decoration in MOLD_DECORATIONS:
            key = _pattern_key(logo)
            if key not in seen_patterns:
                seen_patterns.add(key)
                molds.append(_mold_line(lookup, logo, previous_order_number))
    return lines + molds


def closure_cost(lookup: PriceLookup, closure: Optional[str], quantity: int) -> Optional[CostLineItem]:
    if not closure or not closure.strip():
        return None
    name = f"Closure: {closure}"
    try:
        _, tier = lookup.price(ItemType.CLOSURE, closure, quantity)
    except NotFoundError:
        if normalize_name(closure) in STANDARD_CLOSURES:
            return _free_line(name, "closure", quantity, {"closure": closure, "standard": True})
        return _missing_line(name, "closure", quantity, f"Closure '{closure}' not found; priced at 0")
    return _priced_line(name, "closure", quantity, tier, {"closure": closure})


def accessory_cost(lookup: PriceLookup, accessories: Sequence[str], quantity: int) -> List[CostLineItem]:
    lines = []
    for accessory in accessories:
        name = f"Accessory: {accessory}"
        try:
            _, tier = lookup.price(ItemType.ACCESSORY, accessory, quantity)
        except NotFoundError:
            lines.append(
                _missing_line(name, "accessory", quantity, f"Accessory '{accessory}' not found; priced at 0")
            )
            continue
        lines.append(_priced_line(name, "accessory", quantity, tier, {"accessory": accessory}))
    return lines


def _words(text: str) -> List[str]:
    return re.findall(r"\w+", normalize_name(text))


def _words_match(wanted: Sequence[str], have: Sequence[str]) -> bool:
    """Every requested word names a table word, or the table's words all appear."""
    if not wanted or not have:
        return False
    if set(have) <= set(wanted):
        return True
    return all(
        any(word == token or (len(word) >= MIN_PREFIX and token.startswith(word)) for token in have)
        for word in wanted
    )


def _match_delivery(lookup: PriceLookup, method: str) -> Optional[PriceTable]:
    wanted = normalize_name(method)
    tables = lookup.tables(ItemType.DELIVERY)
    for table in tables:
        if normalize_name(table.name) == wanted:
            return table
    words = _words(method)
    matches = [table for table in tables if _words_match(words, _words(table.name))]
    if len(matches) == 1:
        return matches[0]
    if matches:
        logger.info(
            "Delivery method '%s' matches %s; not guessing",
            method,
            ", ".join(t.name for t in matches),
        )
    return None


def delivery_cost(
    lookup: PriceLookup,
    method: Optional[str],
    quantity: int,
    fallback_price: Decimal,
) -> Optional[CostLineItem]:
    """Delivery by exact name, then by a unique word match, else the fallback price."""
    if not method or not method.strip():
        return None
    table = _match_delivery(lookup, method)
    if table is None:
        logger.warning(
            "Delivery method '%s' not in price tables; using fallback %s/unit", method, fallback_price
        )
        return CostLineItem(
            name=f"Delivery: {method}",
            quantity=quantity,
            unit_price=fallback_price,
            total_cost=quantize_money(fallback_price * quantity),
            tier_used=None,
            details={
                "degraded": True,
                "fallback_price": fallback_price,
                "warnings": [
                    f"Delivery method '{method}' not found; using fallback price {fallback_price}/unit"
                ],
            },
            found=False,
            category="delivery",
        )
    _, tier = lookup.price(ItemType.DELIVERY, table.name, quantity)
    details: Dict[str, Any] = {"method": table.name}
    if normalize_name(table.name) != normalize_name(method):
        details["matched"] = method
    if tier.below_floor:
        details["warnings"] = [
            f"{table.name} is below minimum quantity ({tier.min_qty}); priced at the minimum tier"
        ]
    return _priced_line(f"Delivery: {table.name}", "delivery", quantity, tier, details)
