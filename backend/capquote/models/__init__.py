from .price_table import PriceTableRecord
