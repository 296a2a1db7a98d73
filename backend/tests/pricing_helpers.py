"""Shared builders for pricing tests."""

from decimal import Decimal

from capquote.services.pricing.cache import PricingCache
from capquote.services.pricing.engine import QuoteEngine
from capquote.services.pricing.errors import DataUnavailable
from capquote.services.pricing.models import STANDARD_BREAKPOINTS, Breakpoint, ItemType, PriceTable
from capquote.services.pricing.repository import PriceTableRepository


def make_table(item_type, name, prices, size=None, application=None, cost_type=None, breakpoints=None):
    """Build a table from prices aligned with the standard breakpoints; None skips one."""
    quantities = breakpoints or STANDARD_BREAKPOINTS
    return PriceTable(
        name=name,
        item_type=ItemType(item_type),
        breakpoints=tuple(
            Breakpoint(q, Decimal(str(p))) for q, p in zip(quantities, prices) if p is not None
        ),
        size=size,
        application=application,
        cost_type=cost_type,
    )


class StaticSource:
    """In-memory table source that can be told to fail."""

    def __init__(self, tables, fail=False):
        self.tables = list(tables)
        self.fail = fail
        self.calls = 0

    def fetch_all(self):
        self.calls += 1
        if self.fail:
            raise DataUnavailable("store offline")
        return list(self.tables)


def build_test_engine(source, **kwargs) -> QuoteEngine:
    repository = PriceTableRepository(source, timeout=2.0, retries=1, backoff=0, max_age=None)
    return QuoteEngine(
        repository,
        lookup_cache=PricingCache("lookup", max_size=256),
        quote_cache=PricingCache("quote", max_size=64),
        **kwargs,
    )
