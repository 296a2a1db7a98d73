from sqlalchemy import Column, Integer, JSON, String, UniqueConstraint

from .base import BaseModel


class PriceTableRecord(BaseModel):
    __tablename__ = "price_tables"
    __table_args__ = (
        UniqueConstraint("item_type", "name", "size", "application", name="uq_price_table_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # product | logo | fabric | closure | accessory | delivery
    item_type = Column(String(32), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    size = Column(String(32), nullable=True)
    application = Column(String(32), nullable=True)
    cost_type = Column(String(32), nullable=True)

    # Ascending [[min_qty, "unit_price"], ...]; prices kept as strings so the
    # Decimal value survives the JSON column unchanged.
    breakpoints = Column(JSON, nullable=False)
