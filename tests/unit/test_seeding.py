"""
Unit tests for generated-dataset seeding and supplier name resolution.
"""
import json
from decimal import Decimal

import pytest

from models.product import ProductStatus
from models.supplier import Supplier
from procurement.seeding import (
    UNKNOWN_SUPPLIER,
    build_seed_data,
    load_seed_file,
    resolve_supplier,
)


@pytest.fixture
def suppliers():
    return [
        Supplier(id="A", name="SoundWave Distributors"),
        Supplier(id="B", name="CableCo"),
        Supplier(id="C", name="Global Parts Ltd"),
    ]


@pytest.mark.unit
class TestResolveSupplier:

    def test_exact_match_is_case_insensitive(self, suppliers):
        assert resolve_supplier("cableco", suppliers).id == "B"

    def test_fuzzy_match(self, suppliers):
        assert resolve_supplier("Cable Co", suppliers).id == "B"

    def test_word_order_does_not_matter(self, suppliers):
        assert resolve_supplier("Parts Ltd Global", suppliers).id == "C"

    def test_no_close_match(self, suppliers):
        assert resolve_supplier("Zebra Logistics International", suppliers) is None

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_blank_name(self, suppliers, name):
        assert resolve_supplier(name, suppliers) is None


@pytest.mark.unit
class TestBuildSeedData:

    def test_maps_generated_dataset(self, seed_payload):
        products, suppliers, result = build_seed_data(seed_payload)

        assert [s.name for s in suppliers] == ["SoundWave Distributors", "CableCo"]
        assert suppliers[1].lead_time_days == 10
        by_sku = {p.sku: p for p in products}
        assert by_sku["HP-100"].supplier_id == suppliers[0].id
        assert by_sku["CB-200"].supplier_id == suppliers[1].id
        assert by_sku["HP-100"].unit_price == Decimal("199.99")
        assert all(p.status == ProductStatus.ACTIVE for p in products)
        assert result.product_count == 2
        assert result.supplier_count == 2
        assert result.unresolved_suppliers == []

    def test_unmatched_name_falls_back_to_first_supplier(self, seed_payload):
        seed_payload["products"][0]["supplierName"] = "Nobody At All Incorporated"

        products, suppliers, result = build_seed_data(seed_payload)

        assert products[0].supplier_id == suppliers[0].id
        assert result.unresolved_suppliers == ["HP-100"]

    def test_no_suppliers_leaves_products_unassigned(self, seed_payload):
        seed_payload["suppliers"] = []

        products, suppliers, result = build_seed_data(seed_payload)

        assert suppliers == []
        assert {p.supplier_id for p in products} == {UNKNOWN_SUPPLIER}

    def test_invalid_and_duplicate_entries_are_skipped(self, seed_payload):
        seed_payload["products"].extend([
            {"sku": "hp-100", "name": "Duplicate"},
            {"sku": "NEG-1", "name": "Negative", "stockLevel": -3},
            {"name": "No SKU"},
        ])
        seed_payload["suppliers"].append({"contactEmail": "nameless@test"})

        products, suppliers, result = build_seed_data(seed_payload)

        assert [p.sku for p in products] == ["HP-100", "CB-200"]
        assert len(suppliers) == 2

    def test_ids_are_fresh(self, seed_payload):
        first, _, _ = build_seed_data(seed_payload)
        second, _, _ = build_seed_data(seed_payload)

        assert {p.id for p in first}.isdisjoint({p.id for p in second})

    def test_duplicate_sku_with_whitespace_is_skipped(self, seed_payload):
        seed_payload["products"].append({"sku": "  hp-100 ", "name": "Padded duplicate"})

        products, _, result = build_seed_data(seed_payload)

        assert [p.sku for p in products] == ["HP-100", "CB-200"]
        assert result.product_count == 2


@pytest.mark.unit
class TestLoadSeedFile:

    def test_reads_object(self, temp_dir, seed_payload):
        path = temp_dir / "seed.json"
        path.write_text(json.dumps(seed_payload), encoding="utf-8")

        assert load_seed_file(path) == seed_payload

    def test_rejects_non_object(self, temp_dir):
        path = temp_dir / "seed.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(ValueError):
            load_seed_file(path)
