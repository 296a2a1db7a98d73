import pytest
from pydantic import ValidationError

from capquote.core.config import Settings


def test_defaults():
    cfg = Settings(_env_file=None)
    assert cfg.BATCH_MAX_ITEMS == 100
    assert cfg.DEFAULT_PRODUCT_TIER == "Tier 2"
    assert cfg.PRICE_DATA_DIR.endswith("data")


def test_source_is_normalized():
    assert Settings(_env_file=None, PRICE_TABLE_SOURCE=" Database ").PRICE_TABLE_SOURCE == "database"


def test_unknown_source_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, PRICE_TABLE_SOURCE="s3")


@pytest.mark.parametrize("field", ["BATCH_MAX_ITEMS", "BATCH_CONCURRENCY", "TABLE_LOAD_RETRIES"])
def test_limits_must_be_positive(field):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: 0})


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("DEFAULT_QUANTITY", "144")
    monkeypatch.setenv("REDIS_URL", "  redis://cache:6379/0 ")
    cfg = Settings(_env_file=None)
    assert cfg.DEFAULT_QUANTITY == 144
    assert cfg.REDIS_URL == "redis://cache:6379/0"
