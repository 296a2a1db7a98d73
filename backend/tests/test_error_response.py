import logging
import pytest
from fastapi import HTTPException

from capquote.services.pricing.errors import (
    DataUnavailable,
    NotFoundError,
    PricingError,
    ValidationError,
)
from capquote.utils.errors import error_response, pricing_error_response


def test_error_response_logs(caplog):
    caplog.set_level(logging.ERROR, logger="capquote.utils.errors")
    with pytest.raises(HTTPException):
        raise error_response("Invalid", {"field": "bad"})
    assert any(
        "Invalid" in r.getMessage() and "'field': 'bad'" in r.getMessage()
        for r in caplog.records
    )


@pytest.mark.parametrize(
    "exc, code, field_errors",
    [
        (ValidationError("bad quantity", {"quantity": "must be a positive integer"}), 422,
         {"quantity": "must be a positive integer"}),
        (NotFoundError("product", "Tier 9", field="tier"), 404, {"tier": "not_found"}),
        (DataUnavailable("db down"), 503, {"price_tables": "unavailable"}),
        (PricingError("boom"), 500, {}),
    ],
)
def test_pricing_error_mapping(exc, code, field_errors):
    http_exc = pricing_error_response(exc)
    assert http_exc.status_code == code
    assert http_exc.detail["field_errors"] == field_errors
