"""
Integration tests for ProcurementEngine against a real SQLite database.
"""
import sqlite3
import threading
from decimal import Decimal

import pytest

from conftest import FakeProvider, make_product
from models.product import ProductStatus
from models.purchase_order import OrderStatus
from models.requisition import RequisitionStatus
from procurement.engine import ProcurementEngine, FAILED_SUMMARY, NO_PRODUCTS_SUMMARY
from procurement.errors import ProviderFailure, ProviderTimeout
from procurement.store import InventoryStore


@pytest.fixture
def provider(mock_provider_response):
    return FakeProvider(mock_provider_response)


@pytest.fixture
def engine(test_config, test_db, provider, sample_products, sample_suppliers):
    eng = ProcurementEngine(test_config, provider=provider, database=test_db)
    eng.store.commit(products=sample_products, suppliers=sample_suppliers)
    return eng


@pytest.mark.integration
class TestAnalyzeReplenishment:

    def test_success_appends_priced_requisitions(self, engine, provider):
        result = engine.analyze_replenishment()

        assert result.summary == "Two items need restocking."
        assert result.provider_called is True
        assert result.at_risk_count == 2        # P1 (5 <= 20) and P3 (8 <= 10)
        assert result.healthy_count == 1
        [req] = engine.store.requisitions
        assert req.status == RequisitionStatus.PENDING
        assert req.req_number == "PR-1001"
        assert {(i.product_id, i.unit_price) for i in req.items} == {
            ("P1", Decimal("2.00")), ("P3", Decimal("3.50")),
        }
        sent = [p.id for p in provider.calls[0]["products"]]
        assert sent == ["P1", "P3"]
        assert provider.calls[0]["healthy_count"] == 1

    def test_healthy_inventory_skips_provider(self, engine, provider):
        engine.store.commit(products=[
            make_product("H1", stock_level=100, reorder_point=5),
            make_product("H2", stock_level=0, reorder_point=0, status=ProductStatus.INACTIVE),
        ])

        result = engine.analyze_replenishment()

        assert provider.calls == []
        assert result.provider_called is False
        assert "All 1 items" in result.summary
        assert engine.store.requisitions == []

    def test_no_active_products(self, engine, provider):
        engine.store.commit(products=[])

        result = engine.analyze_replenishment()

        assert result.summary == NO_PRODUCTS_SUMMARY
        assert provider.calls == []

    @pytest.mark.parametrize("error", [
        ProviderFailure("backend down"),
        ProviderTimeout("too slow"),
        RuntimeError("boom"),
    ])
    def test_provider_failure_changes_nothing(self, engine, provider, error):
        provider.error = error

        result = engine.analyze_replenishment()

        assert result.summary == FAILED_SUMMARY
        assert result.error
        assert result.requisitions == []
        assert engine.store.requisitions == []

    def test_unusable_response_changes_nothing(self, engine, provider):
        provider.response = ["not", "an", "object"]

        result = engine.analyze_replenishment()

        assert result.summary == FAILED_SUMMARY
        assert engine.store.requisitions == []

    def test_repeated_runs_keep_numbering(self, engine):
        engine.analyze_replenishment()
        engine.analyze_replenishment()

        assert [r.req_number for r in engine.store.requisitions] == ["PR-1001", "PR-1002"]

    def test_older_run_is_superseded(self, engine, mock_provider_response):
        started = threading.Event()
        release = threading.Event()

        class SlowProvider(FakeProvider):
            def analyze(self, products, suppliers, healthy_count=0):
                started.set()
                release.wait(timeout=5)
                return super().analyze(products, suppliers, healthy_count)

        engine.provider = SlowProvider(mock_provider_response)
        results = {}
        slow = threading.Thread(target=lambda: results.update(old=engine.analyze_replenishment()))
        slow.start()
        started.wait(timeout=5)

        engine.provider = FakeProvider(mock_provider_response)
        results["new"] = engine.analyze_replenishment()
        release.set()
        slow.join(timeout=5)

        assert results["old"].superseded is True
        assert results["new"].superseded is False
        assert len(engine.store.requisitions) == 1


@pytest.mark.integration
class TestPersistence:

    def test_full_cycle_survives_restart(self, engine, test_config, test_db):
        engine.analyze_replenishment()
        req = engine.store.requisitions[0]
        order = engine.workflow.convert_to_order(req.id, "S1").order
        engine.workflow.set_order_status(order.id, OrderStatus.ORDERED)
        engine.workflow.receive_order(order.id)

        reloaded = InventoryStore(test_db)

        assert reloaded.get_product("P1").stock_level == 25
        assert reloaded.get_product("P3").stock_level == 18
        stored = reloaded.get_order(order.id)
        assert stored.status == OrderStatus.RECEIVED
        assert stored.total_amount == Decimal("75.00")
        assert isinstance(stored.items[0].unit_price, Decimal)
        assert reloaded.get_requisition(req.id).status == RequisitionStatus.CONVERTED
        assert reloaded.next_order_number() == "PO-1002"

    def test_audit_trail(self, engine, test_db):
        engine.analyze_replenishment()
        req = engine.store.requisitions[0]
        engine.workflow.convert_to_order(req.id, "S1")

        actions = [e["action"] for e in test_db.get_audit_log(req.id)]
        assert actions == ["requisition_added", "converted"]

    def test_failed_audit_insert_keeps_state_change(self, engine, test_db, monkeypatch):
        engine.analyze_replenishment()
        req = engine.store.requisitions[0]

        def locked(*args, **kwargs):
            raise sqlite3.OperationalError("database is locked")
        monkeypatch.setattr(test_db, "log_audit", locked)

        result = engine.workflow.convert_to_order(req.id, "S1")

        assert result.order.status == OrderStatus.DRAFT
        reloaded = InventoryStore(test_db)
        assert reloaded.get_requisition(req.id).status == RequisitionStatus.CONVERTED
        assert reloaded.get_order(result.order.id) is not None

    def test_import_validates_before_committing(self, engine, test_db):
        before = engine.store.products
        bad = {"products": [{"id": "X", "sku": "X", "name": "X", "stock_level": -1}]}

        with pytest.raises(ValueError):
            engine.store.import_collections(bad)

        assert engine.store.products == before
        assert len(InventoryStore(test_db).products) == len(before)

    def test_export_import_round_trip(self, engine, temp_dir, test_db):
        engine.analyze_replenishment()
        path = temp_dir / "backup.json"
        engine.db.export_json(path)
        engine.store.commit(products=[], requisitions=[])

        engine.store.import_collections(test_db.read_export(path))

        assert len(engine.store.products) == 3
        assert len(engine.store.requisitions) == 1


@pytest.mark.integration
class TestSeeding:

    def test_seed_from_data_replaces_products(self, engine, seed_payload):
        result = engine.seed_from_data(seed_payload)

        assert result.product_count == 2
        assert sorted(p.sku for p in engine.store.products) == ["CB-200", "HP-100"]
        assert len(engine.store.suppliers) == 2

    def test_seed_from_provider_requires_generator(self, engine):
        with pytest.raises(ProviderFailure):
            engine.seed_from_provider()

    def test_seed_from_provider(self, engine, provider, seed_payload):
        provider.generate_inventory = lambda **kwargs: seed_payload

        result = engine.seed_from_provider()

        assert result.supplier_count == 2

    def test_report(self, engine):
        report = engine.report()

        assert report.product_count == 3
        assert report.total_value == Decimal("1038.00")
        assert report.low_stock_count == 1
