from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field


class ProductStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    """
    A stocked item.  The product set is the single source of truth for
    current stock; orders and requisitions only hold copies of its price.

    INACTIVE products stay in the catalogue but are excluded from stock
    value, low-stock counts, and replenishment analysis.
    """
    id: str
    sku: str
    name: str
    category: str = "Uncategorized"
    stock_level: int = Field(default=0, ge=0)
    reorder_point: int = Field(default=0, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    supplier_id: str = "unknown"            # May reference a deleted / unknown supplier
    last_updated: datetime = Field(default_factory=utcnow)
    status: ProductStatus = ProductStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    @property
    def stock_value(self) -> Decimal:
        """Current stock valued at the live unit price."""
        return self.unit_price * self.stock_level

    @property
    def is_low_stock(self) -> bool:
        return self.stock_level <= self.reorder_point
