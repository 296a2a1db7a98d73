import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from ..core.config import settings
from ..schemas.pricing import (
    BatchItemError,
    BatchRequest,
    BatchResponse,
    BatchResult,
    BatchSummary,
    CacheStatsResponse,
    DeltaIn,
    EstimateOut,
    EstimateRequest,
    EstimateResponse,
    LineItemOut,
    LogoIn,
    MergeRequest,
    MergeResponse,
    NoteOut,
    PerformanceOut,
    RefreshResponse,
    SpecificationIn,
    SpecificationOut,
)
from ..services.pricing import (
    UNSET,
    ListEdit,
    NotFoundError,
    PricingError,
    QuoteEngine,
    QuoteResult,
    QuoteSpecification,
    SpecificationDelta,
    ValidationError,
)
from ..services.pricing.logo_parser import describe_logo, resolve_logo
from ..services.pricing.models import MAX_QUANTITY, LogoDescriptor, PriceCatalog
from ..services.pricing.tier_detection import choose_product_tier
from ..utils import error_response, redis_cache
from ..utils.errors import pricing_error_response
from .dependencies import get_quote_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["pricing"])

_DELTA_SCALARS = {
    "fabric": "fabric",
    "closure": "closure",
    "delivery_method": "delivery_method",
    "previous_order_number": "previous_order_number",
}


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _logo_descriptor(logo: LogoIn) -> LogoDescriptor:
    return describe_logo(logo.type, logo.size, logo.application, logo.position, logo.pattern)


def _logo_out(descriptor: LogoDescriptor) -> LogoIn:
    logo, _ = resolve_logo(descriptor)
    return LogoIn(
        type=logo.decoration,
        size=logo.size,
        application=logo.application,
        position=logo.position,
        pattern=logo.pattern,
    )


def _spec_from_estimate(
    body: EstimateRequest, engine: QuoteEngine, prefer_description: bool = False
) -> QuoteSpecification:
    return QuoteSpecification(
        quantity=body.quantity,
        product_tier=choose_product_tier(
            body.tier, body.description, engine.default_product_tier, prefer_description
        ),
        colors=tuple(body.colors),
        fabric=body.fabric,
        logos=tuple(_logo_descriptor(logo) for logo in body.logos),
        closure=body.closure,
        accessories=tuple(body.accessories),
        delivery_method=body.delivery,
        previous_order_number=body.previous_order_number,
    )


def _spec_from_in(body: SpecificationIn) -> QuoteSpecification:
    return QuoteSpecification(
        quantity=body.quantity,
        product_tier=body.product_tier,
        colors=tuple(body.colors),
        fabric=body.fabric,
        logos=tuple(_logo_descriptor(logo) for logo in body.logos),
        closure=body.closure,
        accessories=tuple(body.accessories),
        delivery_method=body.delivery_method,
        previous_order_number=body.previous_order_number,
    )


def _spec_out(spec: QuoteSpecification) -> SpecificationOut:
    return SpecificationOut(
        quantity=spec.quantity,
        product_tier=spec.product_tier,
        colors=list(spec.colors),
        fabric=spec.fabric,
        logos=[_logo_out(logo) for logo in spec.logos],
        closure=spec.closure,
        accessories=list(spec.accessories),
        delivery_method=spec.delivery_method,
        previous_order_number=spec.previous_order_number,
    )


def _delta_from_in(body: DeltaIn) -> SpecificationDelta:
    mentioned = body.model_fields_set
    scalars: Dict[str, Any] = {}
    if body.quantity is not None:
        scalars["quantity"] = body.quantity
    if body.product_tier is not None:
        scalars["product_tier"] = body.product_tier
    for attr, name in _DELTA_SCALARS.items():
        scalars[name] = getattr(body, attr) if attr in mentioned else UNSET
    logos = tuple(
        ListEdit(
            edit.op,
            tuple(item if isinstance(item, str) else _logo_descriptor(item) for item in edit.items),
        )
        for edit in body.logos
    )
    return SpecificationDelta(
        logos=logos,
        accessories=tuple(ListEdit(e.op, tuple(e.items)) for e in body.accessories),
        colors=tuple(ListEdit(e.op, tuple(e.items)) for e in body.colors),
        **scalars,
    )


def _estimate_out(result: QuoteResult) -> EstimateOut:
    return EstimateOut(
        product_tier=result.spec.product_tier,
        quantity=result.spec.quantity,
        line_items=[
            LineItemOut(
                name=item.name,
                category=item.category,
                quantity=item.quantity,
                unit_price=float(item.unit_price),
                total_cost=float(item.total_cost),
                tier_used=item.tier_used,
                details=_plain(item.details),
                found=item.found,
            )
            for item in result.line_items
        ],
        subtotal=float(result.subtotal),
        per_unit=float(result.per_unit_cost),
        lead_time=result.lead_time,
        catalog_version=result.catalog_version,
    )


def _priced(
    engine: QuoteEngine, catalog: PriceCatalog, spec: QuoteSpecification
) -> Tuple[EstimateOut, List[str]]:
    """Price through the shared Redis cache, then the engine's own caches."""
    key = engine.quote_key(catalog, spec)
    cached = redis_cache.get_cached_quote(key)
    if cached:
        return EstimateOut.model_validate(cached["estimate"]), list(cached.get("warnings", []))
    result = engine.quote_with(catalog, spec)
    estimate = _estimate_out(result)
    warnings = list(result.warnings)
    redis_cache.cache_quote(
        key,
        {"estimate": estimate.model_dump(), "warnings": warnings},
        expire=settings.QUOTE_CACHE_TTL,
    )
    return estimate, warnings


def _performance(engine: QuoteEngine, started: float) -> PerformanceOut:
    return PerformanceOut(
        response_time_ms=round((time.perf_counter() - started) * 1000.0, 2),
        cache_stats=engine.cache_stats(),
    )


def _field_errors(exc: PydanticValidationError) -> Dict[str, str]:
    return {".".join(str(p) for p in err["loc"]) or "body": err["msg"] for err in exc.errors()}


async def _single_estimate(body: EstimateRequest, engine: QuoteEngine) -> EstimateResponse:
    started = time.perf_counter()
    spec = _spec_from_estimate(body, engine)
    try:
        catalog = await engine.catalog()
        engine.require_product_tier(catalog, spec.product_tier)
        estimate, warnings = _priced(engine, catalog, spec)
    except PricingError as exc:
        raise pricing_error_response(exc)
    return EstimateResponse(
        success=True,
        estimate=estimate,
        warnings=warnings,
        performance=_performance(engine, started),
    )


@router.post("/pricing/estimate", response_model=EstimateResponse)
async def estimate_price(body: EstimateRequest, engine: QuoteEngine = Depends(get_quote_engine)):
    return await _single_estimate(body, engine)


@router.get("/pricing/quick-estimate", response_model=EstimateResponse)
async def quick_estimate(
    quantity: int = Query(..., gt=0, le=MAX_QUANTITY),
    tier: Optional[str] = None,
    description: Optional[str] = None,
    logo: Optional[str] = Query(None, description="Composite logo descriptor"),
    logo_position: Optional[str] = Query(None, alias="logoPosition"),
    fabric: Optional[str] = None,
    closure: Optional[str] = None,
    delivery: Optional[str] = None,
    engine: QuoteEngine = Depends(get_quote_engine),
):
    logos = [LogoIn(type=logo, position=logo_position)] if logo else []
    body = EstimateRequest(
        quantity=quantity,
        tier=tier,
        description=description,
        logos=logos,
        fabric=fabric,
        closure=closure,
        delivery=delivery,
    )
    return await _single_estimate(body, engine)


@router.post("/pricing/bulk", response_model=BatchResponse)
async def bulk_estimate(body: BatchRequest, engine: QuoteEngine = Depends(get_quote_engine)):
    started = time.perf_counter()
    if len(body.requests) > engine.batch_max_items:
        raise error_response(
            f"Batch exceeds the limit of {engine.batch_max_items} items",
            {"requests": f"at most {engine.batch_max_items} items"},
        )
    prefer_description = body.mode == "ai"
    errors: Dict[int, BatchItemError] = {}
    indices: List[int] = []
    builders = []
    for index, raw in enumerate(body.requests):
        try:
            item = EstimateRequest.model_validate(raw)
        except PydanticValidationError as exc:
            errors[index] = BatchItemError(
                index=index, message="Invalid estimate request", field_errors=_field_errors(exc)
            )
            continue
        indices.append(index)
        builders.append(
            lambda catalog, item=item: _spec_from_estimate(item, engine, prefer_description)
        )

    try:
        outcomes = await engine.quote_batch(builders)
    except PricingError as exc:
        raise pricing_error_response(exc)

    results: List[Optional[BatchResult]] = [None] * len(body.requests)
    for outcome in outcomes:
        index = indices[outcome.index]
        error = outcome.error
        if isinstance(error, ValidationError):
            errors[index] = BatchItemError(
                index=index, message=str(error), field_errors=error.field_errors
            )
            continue
        if isinstance(error, NotFoundError):
            errors[index] = BatchItemError(
                index=index, message=str(error), field_errors={error.field: "not_found"}
            )
            continue
        if error is not None:
            # Details are in the engine log; keep internals out of the response
            errors[index] = BatchItemError(
                index=index,
                message="Could not price this item",
                field_errors={"request": "internal_error"},
            )
            continue
        result = outcome.result
        results[index] = BatchResult(
            estimate=_estimate_out(result), warnings=list(result.warnings)
        )

    failed = len(errors)
    return BatchResponse(
        success=failed < len(body.requests),
        mode=body.mode,
        results=results,
        errors=[errors[i] for i in sorted(errors)],
        summary=BatchSummary(
            total=len(body.requests), succeeded=len(body.requests) - failed, failed=failed
        ),
        performance=_performance(engine, started),
    )


@router.post("/quotes/merge", response_model=MergeResponse)
async def merge_quote(body: MergeRequest, engine: QuoteEngine = Depends(get_quote_engine)):
    """Apply one conversational edit to the previous specification and re-price."""
    started = time.perf_counter()
    prior = _spec_from_in(body.prior) if body.prior is not None else None
    try:
        merged = engine.merge(prior, _delta_from_in(body.delta))
        catalog = await engine.catalog()
        estimate, warnings = _priced(engine, catalog, merged.spec)
    except PricingError as exc:
        raise pricing_error_response(exc)
    return MergeResponse(
        success=True,
        spec=_spec_out(merged.spec),
        change_log=list(merged.change_log),
        notes=[NoteOut(field=n.field, message=n.message) for n in merged.notes],
        estimate=estimate,
        warnings=warnings,
        performance=_performance(engine, started),
    )


@router.get("/pricing/cache", response_model=CacheStatsResponse)
async def cache_stats(engine: QuoteEngine = Depends(get_quote_engine)):
    return CacheStatsResponse(cache_stats=engine.cache_stats(), tables=engine.repository.status())


@router.delete("/pricing/cache")
async def clear_cache(engine: QuoteEngine = Depends(get_quote_engine)):
    removed = {
        "lookup": engine.lookup_cache.invalidate(),
        "quote": engine.quote_cache.invalidate(),
        "shared": redis_cache.invalidate_quote_cache(),
    }
    logger.info("Pricing caches cleared: %s", removed)
    return {"success": True, "removed": removed}


@router.post("/pricing/refresh", response_model=RefreshResponse)
async def refresh_tables(engine: QuoteEngine = Depends(get_quote_engine)):
    try:
        catalog = await engine.repository.refresh()
    except PricingError as exc:
        raise pricing_error_response(exc)
    return RefreshResponse(version=catalog.version, tables=len(catalog))
