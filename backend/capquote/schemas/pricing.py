"""Request/response schemas for the pricing API.

JSON field names are camelCase; Python attributes stay snake_case and
either spelling is accepted on input.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..services.pricing.models import MAX_QUANTITY


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LogoIn(_CamelModel):
    """A logo; ``type`` may be a plain method or a composite descriptor."""

    type: str = Field(..., min_length=1, description="e.g. 'Laser Cut' or 'Large 3D Embroidery + Run'")
    size: Optional[str] = None
    application: Optional[str] = None
    position: Optional[str] = None
    pattern: Optional[str] = Field(None, description="Pattern id; logos sharing it share one mold")


class EstimateRequest(_CamelModel):
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY)
    tier: Optional[str] = None
    description: Optional[str] = None
    logos: List[LogoIn] = Field(default_factory=list)
    fabric: Optional[str] = None
    closure: Optional[str] = None
    accessories: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    delivery: Optional[str] = None
    previous_order_number: Optional[str] = None


class LineItemOut(_CamelModel):
    name: str
    category: str
    quantity: int
    unit_price: float
    total_cost: float
    tier_used: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    found: bool = True


class EstimateOut(_CamelModel):
    product_tier: str
    quantity: int
    line_items: List[LineItemOut]
    subtotal: float
    per_unit: float
    lead_time: Optional[str] = None
    catalog_version: Optional[str] = None


class PerformanceOut(_CamelModel):
    response_time_ms: float
    cache_stats: Dict[str, Dict[str, Any]]


class EstimateResponse(_CamelModel):
    success: bool = True
    estimate: EstimateOut
    warnings: List[str] = Field(default_factory=list)
    performance: PerformanceOut


class BatchRequest(_CamelModel):
    # Items stay raw so one malformed entry fails alone instead of the batch
    requests: List[Dict[str, Any]] = Field(..., min_length=1)
    mode: Literal["standard", "ai"] = "standard"


class BatchItemError(_CamelModel):
    index: int
    message: str
    field_errors: Dict[str, str] = Field(default_factory=dict)


class BatchResult(_CamelModel):
    estimate: EstimateOut
    warnings: List[str] = Field(default_factory=list)


class BatchSummary(_CamelModel):
    total: int
    succeeded: int
    failed: int


class BatchResponse(_CamelModel):
    success: bool
    mode: str
    results: List[Optional[BatchResult]]
    errors: List[BatchItemError]
    summary: BatchSummary
    performance: PerformanceOut


class SpecificationIn(_CamelModel):
    quantity: int = Field(..., gt=0, le=MAX_QUANTITY)
    product_tier: str = Field(..., min_length=1)
    colors: List[str] = Field(default_factory=list)
    fabric: Optional[str] = None
    logos: List[LogoIn] = Field(default_factory=list)
    closure: Optional[str] = None
    accessories: List[str] = Field(default_factory=list)
    delivery_method: Optional[str] = None
    previous_order_number: Optional[str] = None


class SpecificationOut(SpecificationIn):
    pass


class LogoEditIn(_CamelModel):
    op: Literal["ADD", "REMOVE", "REPLACE_ALL"]
    # REMOVE accepts bare positions ("Back") as well as logo objects
    items: List[Union[LogoIn, str]] = Field(default_factory=list)

    @model_validator(mode="after")
    def positions_only_for_remove(self) -> "LogoEditIn":
        if self.op != "REMOVE" and any(isinstance(item, str) for item in self.items):
            raise ValueError(f"{self.op} needs logo objects; bare positions are only valid for REMOVE")
        return self


class TextEditIn(_CamelModel):
    op: Literal["ADD", "REMOVE", "REPLACE_ALL"]
    items: List[str] = Field(default_factory=list)


class DeltaIn(_CamelModel):
    """Only the fields present in the JSON body count as mentioned.

    Sending ``null`` for fabric, closure, delivery or previous order clears it.
    """

    quantity: Optional[int] = Field(None, gt=0, le=MAX_QUANTITY)
    product_tier: Optional[str] = None
    fabric: Optional[str] = None
    closure: Optional[str] = None
    delivery_method: Optional[str] = None
    previous_order_number: Optional[str] = None
    logos: List[LogoEditIn] = Field(default_factory=list)
    accessories: List[TextEditIn] = Field(default_factory=list)
    colors: List[TextEditIn] = Field(default_factory=list)

    @field_validator("product_tier")
    def tier_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("product tier cannot be blank")
        return v


class MergeRequest(_CamelModel):
    prior: Optional[SpecificationIn] = None
    delta: DeltaIn


class NoteOut(_CamelModel):
    field: str
    message: str


class MergeResponse(_CamelModel):
    success: bool = True
    spec: SpecificationOut
    change_log: List[str]
    notes: List[NoteOut]
    estimate: EstimateOut
    warnings: List[str] = Field(default_factory=list)
    performance: PerformanceOut


class CacheStatsResponse(_CamelModel):
    cache_stats: Dict[str, Dict[str, Any]]
    tables: Dict[str, Any]


class RefreshResponse(_CamelModel):
    version: str
    tables: int
