"""
Read-only stock metrics.

Every function takes the product (or order) collection and returns a fresh
aggregate; nothing here mutates state.  INACTIVE products are excluded unless
active_only=False is passed.  Empty input yields zero aggregates.
"""
from decimal import Decimal
from typing import Iterable

from models.product import Product
from models.purchase_order import PurchaseOrder, OrderStatus
from models.result import CategoryStat, InventoryReport


def _filter(products: Iterable[Product], active_only: bool) -> list[Product]:
    if active_only:
        return [p for p in products if p.is_active]
    return list(products)


def total_value(products: Iterable[Product], active_only: bool = True) -> Decimal:
    """Σ stock_level × unit_price."""
    return sum((p.stock_value for p in _filter(products, active_only)), Decimal("0"))


def low_stock_count(products: Iterable[Product], active_only: bool = True) -> int:
    """Number of products at or below their reorder point."""
    return sum(1 for p in _filter(products, active_only) if p.is_low_stock)


def by_category(
    products: Iterable[Product],
    active_only: bool = True,
) -> dict[str, CategoryStat]:
    """
    Product count and stock value per category.

    Categories appear in the order they are first seen.
    """
    stats: dict[str, CategoryStat] = {}
    for p in _filter(products, active_only):
        stat = stats.setdefault(p.category, CategoryStat())
        stat.count += 1
        stat.value += p.stock_value
    return stats


def order_counts(orders: Iterable[PurchaseOrder]) -> tuple[int, int]:
    """Return (pending, received) where pending is any status other than RECEIVED."""
    pending = received = 0
    for o in orders:
        if o.status == OrderStatus.RECEIVED:
            received += 1
        else:
            pending += 1
    return pending, received


def build_report(
    products: Iterable[Product],
    orders: Iterable[PurchaseOrder],
) -> InventoryReport:
    active = _filter(products, active_only=True)
    pending, received = order_counts(orders)
    return InventoryReport(
        product_count=len(active),
        total_value=total_value(active),
        low_stock_count=low_stock_count(active),
        pending_orders=pending,
        received_orders=received,
        categories=by_category(active),
    )
