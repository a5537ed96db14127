"""
Unit tests for the read-only stock ledger.
"""
from decimal import Decimal

import pytest

from conftest import make_product
from models.product import ProductStatus
from models.purchase_order import PurchaseOrder, OrderStatus
from procurement import ledger


@pytest.mark.unit
class TestLedger:
    """Tests for stock value / low stock / category aggregates."""

    def test_empty_input_yields_zero(self):
        assert ledger.total_value([]) == Decimal("0")
        assert ledger.low_stock_count([]) == 0
        assert ledger.by_category([]) == {}
        assert ledger.order_counts([]) == (0, 0)

    def test_total_value(self, sample_products):
        # 5*2.00 + 100*10.00 + 8*3.50
        assert ledger.total_value(sample_products) == Decimal("1038.00")

    def test_inactive_products_excluded(self):
        products = [
            make_product("A", stock_level=10, unit_price="1.00"),
            make_product("B", stock_level=0, reorder_point=5, unit_price="50.00",
                         status=ProductStatus.INACTIVE),
        ]
        assert ledger.total_value(products) == Decimal("10.00")
        assert ledger.low_stock_count(products) == 0
        assert ledger.low_stock_count(products, active_only=False) == 1

    def test_low_stock_is_inclusive_of_reorder_point(self):
        products = [
            make_product("A", stock_level=5, reorder_point=5),
            make_product("B", stock_level=6, reorder_point=5),
        ]
        assert ledger.low_stock_count(products) == 1

    def test_by_category_keeps_first_seen_order(self, sample_products):
        stats = ledger.by_category(sample_products)

        assert list(stats) == ["Cables", "Audio"]
        assert stats["Cables"].count == 2
        assert stats["Cables"].value == Decimal("38.00")
        assert stats["Audio"].value == Decimal("1000.00")

    def test_build_report(self, sample_products):
        orders = [
            PurchaseOrder(id="O1", order_number="PO-1", supplier_id="S1", status=OrderStatus.DRAFT),
            PurchaseOrder(id="O2", order_number="PO-2", supplier_id="S1", status=OrderStatus.ORDERED),
            PurchaseOrder(id="O3", order_number="PO-3", supplier_id="S1", status=OrderStatus.RECEIVED),
        ]

        report = ledger.build_report(sample_products, orders)

        assert report.product_count == 3
        assert report.low_stock_count == 1
        assert report.pending_orders == 2
        assert report.received_orders == 1
        assert list(report.categories) == ["Cables", "Audio"]
