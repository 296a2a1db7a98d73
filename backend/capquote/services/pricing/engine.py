"""Quote engine: ties the repository, caches, calculators and merge together."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ...core.config import Settings, settings as default_settings
from ...utils.json import dumps_bytes
from ...utils.metrics import Timer, incr
from .aggregator import aggregate_quote
from .cache import PricingCache
from .calculators import (
    PriceLookup,
    accessory_cost,
    base_product_cost,
    closure_cost,
    delivery_cost,
    logo_cost,
    premium_fabric_cost,
)
from .errors import NotFoundError, PricingError, ValidationError
from .logo_parser import resolve_logo
from .merge import MergeResult, SpecificationDelta, merge_specification
from .models import (
    MAX_QUANTITY,
    ItemType,
    PriceCatalog,
    QuoteResult,
    QuoteSpecification,
    make_table_id,
)
from .repository import PriceTableRepository
from .sources import CsvTableSource, DatabaseTableSource, TableSource

logger = logging.getLogger(__name__)

SpecBuilder = Callable[[PriceCatalog], QuoteSpecification]


def spec_hash(spec: QuoteSpecification) -> str:
    """Content hash of a specification; equal specs hash equal."""
    return hashlib.sha256(dumps_bytes(spec.as_dict(), sort_keys=True)).hexdigest()


@dataclass(frozen=True)
class BatchOutcome:
    index: int
    result: Optional[QuoteResult] = None
    error: Optional[Exception] = None


class QuoteEngine:
    def __init__(
        self,
        repository: PriceTableRepository,
        *,
        lookup_cache: Optional[PricingCache] = None,
        quote_cache: Optional[PricingCache] = None,
        delivery_fallback_price: Decimal = Decimal("2.71"),
        default_product_tier: str = "Tier 2",
        default_quantity: int = 48,
        batch_max_items: int = 100,
        batch_concurrency: int = 8,
    ):
        self.repository = repository
        self.lookup_cache = lookup_cache or PricingCache("lookup", max_size=2048)
        self.quote_cache = quote_cache or PricingCache("quote", max_size=512)
        self.delivery_fallback_price = delivery_fallback_price
        self.default_product_tier = default_product_tier
        self.default_quantity = default_quantity
        self.batch_max_items = batch_max_items
        self.batch_concurrency = batch_concurrency
        if repository.on_change is None:
            repository.on_change = self.clear_caches

    def clear_caches(self, catalog: Optional[PriceCatalog] = None) -> None:
        self.lookup_cache.invalidate()
        self.quote_cache.invalidate()

    def cache_stats(self) -> Dict[str, Dict]:
        return {"lookup": self.lookup_cache.stats(), "quote": self.quote_cache.stats()}

    async def catalog(self) -> PriceCatalog:
        return await self.repository.snapshot()

    def quote_key(self, catalog: PriceCatalog, spec: QuoteSpecification) -> str:
        return f"quote|{catalog.version}|{spec_hash(spec)}"

    @staticmethod
    def validate(spec: QuoteSpecification) -> None:
        field_errors = {}
        quantity = spec.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            field_errors["quantity"] = "must be a positive integer"
        elif quantity > MAX_QUANTITY:
            field_errors["quantity"] = f"must be at most {MAX_QUANTITY}"
        if not (spec.product_tier or "").strip():
            field_errors["product_tier"] = "required"
        if field_errors:
            raise ValidationError("Invalid quote specification", field_errors)

    @staticmethod
    def require_product_tier(catalog: PriceCatalog, product_tier: str) -> None:
        """Raise NotFoundError when the product tier has no price table."""
        if make_table_id(ItemType.PRODUCT, product_tier) not in catalog:
            raise NotFoundError(ItemType.PRODUCT.value, product_tier, field="tier")

    def _compute(self, catalog: PriceCatalog, spec: QuoteSpecification) -> QuoteResult:
        lookup = PriceLookup(catalog, self.lookup_cache)
        quantity = spec.quantity
        notes: List[str] = []
        logos = []
        for descriptor in spec.logos:
            logo, logo_notes = resolve_logo(descriptor)
            logos.append(logo)
            notes.extend(note.message for note in logo_notes)

        lines = [base_product_cost(lookup, spec.product_tier, quantity)]
        lines.extend(premium_fabric_cost(lookup, spec.fabric, quantity))
        lines.extend(logo_cost(lookup, logos, quantity, spec.previous_order_number))
        closure = closure_cost(lookup, spec.closure, quantity)
        if closure is not None:
            lines.append(closure)
        lines.extend(accessory_cost(lookup, spec.accessories, quantity))
        delivery = delivery_cost(lookup, spec.delivery_method, quantity, self.delivery_fallback_price)
        if delivery is not None:
            lines.append(delivery)
        return aggregate_quote(spec, lines, notes, catalog_version=catalog.version)

    def quote_with(self, catalog: PriceCatalog, spec: QuoteSpecification) -> QuoteResult:
        """Price ``spec`` against a specific catalog snapshot."""
        self.validate(spec)
        with Timer("pricing.quote.ms"):
            return self.quote_cache.get_or_load(
                self.quote_key(catalog, spec), lambda: self._compute(catalog, spec)
            )

    async def quote(self, spec: QuoteSpecification) -> QuoteResult:
        catalog = await self.repository.snapshot()
        return self.quote_with(catalog, spec)

    def merge(
        self, prior: Optional[QuoteSpecification], delta: SpecificationDelta
    ) -> MergeResult:
        return merge_specification(
            prior,
            delta,
            default_quantity=self.default_quantity,
            default_product_tier=self.default_product_tier,
        )

    async def merge_and_quote(
        self, prior: Optional[QuoteSpecification], delta: SpecificationDelta
    ) -> Tuple[MergeResult, QuoteResult]:
        merged = self.merge(prior, delta)
        return merged, await self.quote(merged.spec)

    def _quote_item(self, catalog: PriceCatalog, build: SpecBuilder) -> QuoteResult:
        spec = build(catalog)
        self.require_product_tier(catalog, spec.product_tier)
        return self.quote_with(catalog, spec)

    async def quote_batch(self, builders: Sequence[SpecBuilder]) -> List[BatchOutcome]:
        """Price independent items with bounded parallelism.

        A failing item yields an outcome carrying its error, including
        unexpected ones; the rest of the batch is unaffected. Results keep
        request order.
        """
        if len(builders) > self.batch_max_items:
            raise ValidationError(
                f"Batch exceeds the limit of {self.batch_max_items} items",
                {"requests": f"at most {self.batch_max_items} items"},
            )
        catalog = await self.repository.snapshot()
        semaphore = asyncio.Semaphore(self.batch_concurrency)
        incr("pricing.batch.items", len(builders))

        async def run(index: int, build: SpecBuilder) -> BatchOutcome:
            async with semaphore:
                try:
                    result = await asyncio.to_thread(self._quote_item, catalog, build)
                except PricingError as exc:
                    logger.info("Batch item %s failed: %s", index, exc)
                    return BatchOutcome(index, error=exc)
                except Exception as exc:
                    logger.exception("Batch item %s failed unexpectedly", index)
                    return BatchOutcome(index, error=exc)
                return BatchOutcome(index, result=result)

        return list(await asyncio.gather(*(run(i, b) for i, b in enumerate(builders))))


def build_source(cfg: Settings) -> TableSource:
    if cfg.PRICE_TABLE_SOURCE == "database":
        return DatabaseTableSource()
    return CsvTableSource(cfg.PRICE_DATA_DIR)


def build_engine(cfg: Settings = default_settings, source: Optional[TableSource] = None) -> QuoteEngine:
    repository = PriceTableRepository(
        source or build_source(cfg),
        timeout=cfg.TABLE_LOAD_TIMEOUT,
        retries=cfg.TABLE_LOAD_RETRIES,
        backoff=cfg.TABLE_LOAD_BACKOFF,
        max_age=cfg.TABLE_MAX_AGE_SECONDS,
    )
    return QuoteEngine(
        repository,
        lookup_cache=PricingCache("lookup", max_size=cfg.LOOKUP_CACHE_SIZE, ttl=cfg.LOOKUP_CACHE_TTL),
        quote_cache=PricingCache("quote", max_size=cfg.QUOTE_CACHE_SIZE, ttl=cfg.QUOTE_CACHE_TTL),
        delivery_fallback_price=Decimal(cfg.DELIVERY_FALLBACK_PRICE),
        default_product_tier=cfg.DEFAULT_PRODUCT_TIER,
        default_quantity=cfg.DEFAULT_QUANTITY,
        batch_max_items=cfg.BATCH_MAX_ITEMS,
        batch_concurrency=cfg.BATCH_CONCURRENCY,
    )
