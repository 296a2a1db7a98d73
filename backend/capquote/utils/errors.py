from typing import Dict
from fastapi import HTTPException, status
import logging

from ..services.pricing.errors import (
    DataUnavailable,
    NotFoundError,
    PricingError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def pricing_error_response(exc: PricingError) -> HTTPException:
    """Map a pricing engine error onto the HTTP error shape.

    Validation problems are the caller's to fix (422), unknown product tiers
    are 404 and an unreachable table store with nothing cached is 503.
    """
    if isinstance(exc, ValidationError):
        return error_response(str(exc), exc.field_errors)
    if isinstance(exc, NotFoundError):
        return error_response(
            str(exc),
            {exc.field: "not_found"},
            status.HTTP_404_NOT_FOUND,
        )
    if isinstance(exc, DataUnavailable):
        return error_response(
            "Price tables are temporarily unavailable",
            {"price_tables": "unavailable"},
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return error_response(str(exc), {}, status.HTTP_500_INTERNAL_SERVER_ERROR)
