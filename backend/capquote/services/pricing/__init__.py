from .errors import DataUnavailable, MergeAmbiguity, NotFoundError, PricingError, ValidationError
from .models import (
    CompositeLogo,
    CostLineItem,
    ItemType,
    PriceCatalog,
    PriceTable,
    QuoteResult,
    QuoteSpecification,
    SimpleLogo,
)
from .merge import UNSET, ListEdit, ListOp, MergeResult, SpecificationDelta, merge_specification
from .engine import QuoteEngine, build_engine
