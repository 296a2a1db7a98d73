# backend/capquote/main.py

import logging
import os
import time

from fastapi import Depends, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import api_pricing
from .api.dependencies import get_quote_engine
from .core.config import settings
from .core.observability import setup_logging
from .services.pricing import DataUnavailable, QuoteEngine
from .utils.redis_cache import close_redis_client

# Configure logging before creating any loggers
setup_logging()
logger = logging.getLogger(__name__)

_BOOT_TS = time.time()

# Always use ORJSONResponse for JSON payloads
app = FastAPI(title="Headwear Pricing API", default_response_class=ORJSONResponse)


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON responses for HTTP errors and log them."""
    try:
        response = await call_next(request)
    except StarletteHTTPException as exc:  # return the original status and detail
        logger.error(
            "HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail
        )
        response = ORJSONResponse(
            status_code=exc.status_code, content={"detail": exc.detail}
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal Server Error"},
        )
    return response


# orjson only encodes integers that fit in 64 bits
_JSON_INT_MIN = -(2**63)
_JSON_INT_MAX = 2**64 - 1


def _json_safe(value):
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    if isinstance(value, int) and not _JSON_INT_MIN <= value <= _JSON_INT_MAX:
        return str(value)
    return value


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = _json_safe(jsonable_encoder(exc.errors()))
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.get("/healthz", tags=["health"])
async def healthz(engine: QuoteEngine = Depends(get_quote_engine)):
    """Liveness plus the state of the loaded price tables."""
    return {
        "status": "ok",
        "uptime_s": round(time.time() - _BOOT_TS, 1),
        "pid": os.getpid(),
        "tables": engine.repository.status(),
    }


api_prefix = settings.API_V1_STR  # usually "/api/v1"

app.include_router(api_pricing.router, prefix=api_prefix)


@app.on_event("startup")
async def warm_price_tables() -> None:
    """Load price tables up front so the first request does not pay for it."""
    try:
        catalog = await get_quote_engine().catalog()
    except DataUnavailable as exc:
        logger.error("Price tables unavailable at startup: %s", exc)
        return
    logger.info("Price tables ready: version %s (%d tables)", catalog.version, len(catalog))


@app.on_event("shutdown")
def shutdown_redis_client() -> None:
    close_redis_client()
