from typing import Optional

from ..core.config import settings
from ..services.pricing import QuoteEngine, build_engine

_engine: Optional[QuoteEngine] = None


def get_quote_engine() -> QuoteEngine:
    """Process-wide engine; tests swap it via ``app.dependency_overrides``."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings)
    return _engine


def reset_quote_engine() -> None:
    global _engine
    _engine = None
