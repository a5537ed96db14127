"""
Pytest configuration and shared fixtures for the procurement test suite.
"""
import shutil
import tempfile
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Generator, Optional

import pytest

from models.product import Product, ProductStatus
from models.supplier import Supplier
from models.purchase_order import LineItem
from models.requisition import PurchaseRequisition


FIXED_TIME = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_product(
    id: str,
    stock_level: int = 10,
    reorder_point: int = 5,
    unit_price: str = "1.00",
    category: str = "General",
    status: ProductStatus = ProductStatus.ACTIVE,
    supplier_id: str = "S1",
) -> Product:
    return Product(
        id=id,
        sku=f"SKU-{id}",
        name=f"Product {id}",
        category=category,
        stock_level=stock_level,
        reorder_point=reorder_point,
        unit_price=Decimal(unit_price),
        supplier_id=supplier_id,
        last_updated=FIXED_TIME,
        status=status,
    )


def make_requisition(
    id: str,
    items: list[tuple[str, int, str]],
    req_number: Optional[str] = None,
    suggested_supplier_id: Optional[str] = "S1",
) -> PurchaseRequisition:
    return PurchaseRequisition(
        id=id,
        req_number=req_number or f"PR-{id}",
        suggested_supplier_id=suggested_supplier_id,
        date_created=FIXED_TIME,
        items=[
            LineItem(product_id=pid, quantity=qty, unit_price=Decimal(price))
            for pid, qty, price in items
        ],
        reason="Restock",
    )


class FakeProvider:
    """Analysis provider double that records calls and returns a canned response."""

    def __init__(self, response=None, error: Optional[Exception] = None):
        self.response = response if response is not None else {"summary": "ok", "requisitions": []}
        self.error = error
        self.calls: list[dict] = []

    def analyze(self, products, suppliers, healthy_count=0):
        self.calls.append({
            "products": list(products),
            "suppliers": list(suppliers),
            "healthy_count": healthy_count,
        })
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="procurement_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    config = Config()
    config.data_dir = temp_dir / "data"
    config.db_path = temp_dir / "data" / "procurement.db"
    config.provider_timeout_seconds = 5
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from procurement.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def sample_suppliers() -> list[Supplier]:
    return [
        Supplier(id="S1", name="Acme Components", contact_email="sales@acme.test", lead_time_days=7),
        Supplier(id="S2", name="Global Parts Ltd", contact_email="orders@global.test", lead_time_days=14),
    ]


@pytest.fixture
def sample_products() -> list[Product]:
    return [
        make_product("P1", stock_level=5, reorder_point=10, unit_price="2.00", category="Cables"),
        make_product("P2", stock_level=100, reorder_point=5, unit_price="10.00", category="Audio"),
        make_product("P3", stock_level=8, reorder_point=5, unit_price="3.50", category="Cables",
                     supplier_id="S2"),
    ]


@pytest.fixture
def store(sample_products, sample_suppliers) -> "InventoryStore":
    """An in-memory store (no database) holding the sample data."""
    from procurement.store import InventoryStore

    s = InventoryStore()
    s.commit(products=sample_products, suppliers=sample_suppliers)
    return s


@pytest.fixture
def workflow(store) -> "ProcurementWorkflow":
    from procurement.workflow import ProcurementWorkflow
    return ProcurementWorkflow(store)


@pytest.fixture
def mock_provider_response() -> dict:
    """A well-formed analysis provider response."""
    return {
        "summary": "Two items need restocking.",
        "requisitions": [
            {
                "suggestedSupplierId": "S1",
                "reason": "Cables below reorder point",
                "items": [
                    {"productId": "P1", "quantity": 20},
                    {"productId": "P3", "quantity": 10},
                ],
            }
        ],
    }


@pytest.fixture
def seed_payload() -> dict:
    """A generated inventory dataset as returned by generate_inventory."""
    return {
        "suppliers": [
            {"name": "SoundWave Distributors", "contactEmail": "hi@soundwave.test", "leadTimeDays": 5},
            {"name": "CableCo", "contactEmail": "sales@cableco.test", "leadTimeDays": 10},
        ],
        "products": [
            {"sku": "HP-100", "name": "Studio Headphones", "category": "Audio",
             "stockLevel": 4, "reorderPoint": 10, "unitPrice": 199.99,
             "supplierName": "SoundWave Distributors"},
            {"sku": "CB-200", "name": "USB-C Cable", "category": "Cables",
             "stockLevel": 250, "reorderPoint": 50, "unitPrice": 9.5,
             "supplierName": "Cable Co"},
        ],
    }


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
