from pathlib import Path
from dotenv import load_dotenv
import pytest

# Load environment variables for tests before the app settings are built
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')

import fakeredis
from fastapi.testclient import TestClient

import capquote
from capquote.main import app
from capquote.api.dependencies import get_quote_engine
from capquote.services.pricing.models import PriceCatalog
from capquote.services.pricing.sources import CsvTableSource
from capquote.utils import redis_cache

from pricing_helpers import build_test_engine, make_table

DATA_DIR = Path(capquote.__file__).resolve().parent / "data"


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def small_tables():
    return [
        make_table("product", "Tier 2", [5.50, 4.25, 3.75, 3.63, 3.50, 3.38, 3.25]),
        make_table("fabric", "Polyester", [0, 0, 0, 0, 0, 0, 0], cost_type="Free"),
        make_table("fabric", "Laser Cut", [0.90, 0.80, 0.75, 0.72, 0.70, 0.68, 0.66]),
        make_table("fabric", "Canvas", [0.40, 0.30, 0.25, 0.22, 0.20, 0.18, 0.16], cost_type="Free"),
        make_table("logo", "Laser Cut", [1.20, 1.00, 0.95, 0.92, 0.90, 0.87, 0.85], "Large", "Direct"),
        make_table("logo", "Rubber Patch", [1.60, 1.40, 1.35, 1.30, 1.28, 1.25, 1.23], "Large", "Run"),
        make_table("logo", "Rubber Patch", [1.10, 0.95, 0.90, 0.86, 0.84, 0.82, 0.80], "Small", "Run"),
        make_table("logo", "Mold Charge", [80.00], "Large"),
        make_table("logo", "Mold Charge", [40.00], "Small"),
        make_table("closure", "Fitted", [0.75, 0.65, 0.60, 0.58, 0.56, 0.54, 0.52]),
        make_table("accessory", "Hang Tag", [0.50, 0.40, 0.35, 0.32, 0.30, 0.28, 0.26]),
        make_table("accessory", "Sticker", [0.25, 0.20, 0.18, 0.16, 0.15, 0.14, 0.13]),
        make_table("delivery", "Regular Delivery", [3.00, 2.71, 2.60, 2.50, 2.45, 2.40, 2.35]),
        make_table("delivery", "Air Freight", [None, None, None, None, 1.20, 1.10, 1.00]),
    ]


@pytest.fixture
def small_catalog(small_tables):
    return PriceCatalog(small_tables)


@pytest.fixture
def bundled_catalog():
    return PriceCatalog(CsvTableSource(DATA_DIR).fetch_all())


@pytest.fixture
def engine():
    return build_test_engine(CsvTableSource(DATA_DIR))


@pytest.fixture
def fake_redis(monkeypatch):
    fake = fakeredis.FakeStrictRedis()
    monkeypatch.setattr(redis_cache, "get_redis_client", lambda: fake)
    return fake


@pytest.fixture
def client(engine, fake_redis):
    app.dependency_overrides[get_quote_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()
