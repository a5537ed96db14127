from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional, List, Dict

from .purchase_order import PurchaseOrder, OrderStatus
from .requisition import PurchaseRequisition


class StockAdjustment(BaseModel):
    """A single stock increment applied while receiving an order."""
    product_id: str
    sku: str
    quantity: int
    stock_before: int
    stock_after: int


class ReceiptResult(BaseModel):
    """
    Outcome of a purchase order status change.

    adjustments is only populated on the transition into RECEIVED; a repeated
    RECEIVED (or any no-op status change) reports changed=False and no stock
    movement.
    """
    order: PurchaseOrder
    previous_status: OrderStatus
    changed: bool = True
    adjustments: List[StockAdjustment] = Field(default_factory=list)
    skipped_product_ids: List[str] = Field(default_factory=list)   # Lines with no matching product


class ConversionResult(BaseModel):
    """A requisition converted into a new draft purchase order."""
    requisition: PurchaseRequisition
    order: PurchaseOrder
    supplier_known: bool = True             # False when supplier_id did not resolve


class AnalysisResult(BaseModel):
    """
    The output of one replenishment analysis run.

    requisitions holds the PRs that were appended to the store (empty when the
    provider was skipped, failed, or the run was superseded).
    """
    summary: str
    requisitions: List[PurchaseRequisition] = Field(default_factory=list)
    provider_called: bool = False
    at_risk_count: int = 0
    healthy_count: int = 0
    dropped_suggestions: int = 0            # Malformed groups / lines discarded
    error: Optional[str] = None
    superseded: bool = False


class CategoryStat(BaseModel):
    count: int = 0
    value: Decimal = Decimal("0")


class InventoryReport(BaseModel):
    """Aggregates over ACTIVE products plus order counts."""
    product_count: int
    total_value: Decimal
    low_stock_count: int
    pending_orders: int
    received_orders: int
    categories: Dict[str, CategoryStat] = Field(default_factory=dict)


class SeedResult(BaseModel):
    product_count: int
    supplier_count: int
    unresolved_suppliers: List[str] = Field(default_factory=list)   # Product SKUs with no supplier match
