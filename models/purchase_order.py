from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field

from .product import utcnow


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    ORDERED = "ORDERED"
    RECEIVED = "RECEIVED"


class LineItem(BaseModel):
    """
    A product/quantity pair on a requisition or purchase order.

    unit_price is a snapshot taken when the line was created and is never
    refreshed from the live Product afterwards.
    """
    product_id: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class StatusEvent(BaseModel):
    """One entry in a document's append-only status history."""
    status: str
    at: datetime = Field(default_factory=utcnow)
    note: Optional[str] = None


def sum_items(items: List[LineItem]) -> Decimal:
    """Σ quantity × unit_price over a list of line items."""
    return sum((item.line_total for item in items), Decimal("0"))


class PurchaseOrder(BaseModel):
    """
    A committed order against one supplier, usually converted from a
    requisition.  total_amount is computed once at creation from the
    copied line items and never recomputed.
    """
    id: str
    order_number: str                       # Display only, e.g. "PO-1001"
    supplier_id: str
    status: OrderStatus = OrderStatus.DRAFT
    date_created: datetime = Field(default_factory=utcnow)
    date_expected: Optional[datetime] = None
    items: List[LineItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    original_requisition_id: Optional[str] = None
    received_at: Optional[datetime] = None
    status_history: List[StatusEvent] = Field(default_factory=list)
