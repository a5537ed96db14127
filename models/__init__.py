from .product import Product, ProductStatus
from .supplier import Supplier
from .purchase_order import PurchaseOrder, OrderStatus, LineItem, StatusEvent
from .requisition import PurchaseRequisition, RequisitionStatus
from .result import (
    AnalysisResult, ConversionResult, ReceiptResult, StockAdjustment,
    CategoryStat, InventoryReport, SeedResult,
)

__all__ = [
    "Product", "ProductStatus",
    "Supplier",
    "PurchaseOrder", "OrderStatus", "LineItem", "StatusEvent",
    "PurchaseRequisition", "RequisitionStatus",
    "AnalysisResult", "ConversionResult", "ReceiptResult", "StockAdjustment",
    "CategoryStat", "InventoryReport", "SeedResult",
]
