from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field

from .product import utcnow
from .purchase_order import LineItem, StatusEvent


class RequisitionStatus(str, Enum):
    PENDING = "PENDING"
    CONVERTED = "CONVERTED"
    REJECTED = "REJECTED"


class PurchaseRequisition(BaseModel):
    """
    An internal request to buy products, pending conversion into a
    purchase order.  Once CONVERTED or REJECTED it no longer changes.
    """
    id: str
    req_number: str                         # Display only, e.g. "PR-1001"
    suggested_supplier_id: Optional[str] = None
    status: RequisitionStatus = RequisitionStatus.PENDING
    date_created: datetime = Field(default_factory=utcnow)
    items: List[LineItem] = Field(min_length=1)
    reason: str = "Auto-replenishment"
    rejection_reason: Optional[str] = None
    status_history: List[StatusEvent] = Field(default_factory=list)
