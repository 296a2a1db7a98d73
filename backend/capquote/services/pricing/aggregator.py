from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from .models import ZERO, CostLineItem, QuoteResult, QuoteSpecification, quantize_money

LEAD_TIME_STANDARD = "15-20 business days"
LEAD_TIME_LOGOS = "20-25 business days"
LEAD_TIME_PREMIUM_FABRIC = "25-30 business days"


def estimate_lead_time(line_items: Sequence[CostLineItem]) -> str:
    """Production lead time; premium fabric outranks decoration."""
    if any(i.category == "fabric" and i.found and i.total_cost > ZERO for i in line_items):
        return LEAD_TIME_PREMIUM_FABRIC
    if any(i.category == "logo" for i in line_items):
        return LEAD_TIME_LOGOS
    return LEAD_TIME_STANDARD


def collect_warnings(line_items: Iterable[CostLineItem], extra: Iterable[str] = ()) -> List[str]:
    warnings: List[str] = []
    for item in line_items:
        messages = list(item.details.get("warnings", []))
        if not item.found and not messages:
            messages.append(f"{item.name} not found in price tables")
        for message in messages:
            if message not in warnings:
                warnings.append(message)
    for message in extra:
        if message not in warnings:
            warnings.append(message)
    return warnings


def aggregate_quote(
    spec: QuoteSpecification,
    line_items: Sequence[CostLineItem],
    extra_warnings: Iterable[str] = (),
    catalog_version: Optional[str] = None,
) -> QuoteResult:
    """Sum line totals into a QuoteResult.

    Table prices already include margin, so no markup is applied here.
    """
    subtotal = sum((item.total_cost for item in line_items), Decimal("0"))
    subtotal = quantize_money(subtotal)
    per_unit = quantize_money(subtotal / spec.quantity) if spec.quantity else ZERO
    return QuoteResult(
        spec=spec,
        line_items=tuple(line_items),
        subtotal=subtotal,
        per_unit_cost=per_unit,
        warnings=tuple(collect_warnings(line_items, extra_warnings)),
        lead_time=estimate_lead_time(line_items),
        catalog_version=catalog_version,
    )
