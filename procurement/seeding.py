"""
Seed data mapping.

Converts a generated dataset (from LLMAnalysisProvider.generate_inventory or a
JSON file of the same shape) into Product and Supplier records:

  {"suppliers": [{"name", "contactEmail", "leadTimeDays"}],
   "products":  [{"sku", "name", "category", "stockLevel", "reorderPoint",
                  "unitPrice", "supplierName"}]}

Each product's supplierName is resolved against the generated suppliers in
priority order:
  1. Name exact match (case-insensitive)
  2. Fuzzy name match (using rapidfuzz)
  3. The first supplier in the list
Products are left with supplier_id "unknown" when there are no suppliers.
"""
import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from rapidfuzz import fuzz

from models.product import Product, ProductStatus, utcnow
from models.supplier import Supplier
from models.result import SeedResult
from .store import new_id

logger = logging.getLogger(__name__)

# Minimum fuzzy score (0-100) to accept a supplier name match
FUZZY_THRESHOLD = 75
UNKNOWN_SUPPLIER = "unknown"


class GeneratedSupplier(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    contact_email: str = Field(default="", alias="contactEmail")
    lead_time_days: int = Field(default=7, alias="leadTimeDays")


class GeneratedProduct(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    category: str = "Uncategorized"
    stock_level: int = Field(default=0, alias="stockLevel")
    reorder_point: int = Field(default=0, alias="reorderPoint")
    unit_price: float = Field(default=0, alias="unitPrice")
    supplier_name: Optional[str] = Field(default=None, alias="supplierName")


def resolve_supplier(name: Optional[str], suppliers: list[Supplier]) -> Optional[Supplier]:
    """Find the supplier a generated product refers to, or None if none is close."""
    wanted = (name or "").strip().lower()
    if not wanted:
        return None

    for s in suppliers:
        if s.name.lower() == wanted:
            return s

    best_score = 0.0
    best: Optional[Supplier] = None
    for s in suppliers:
        score = fuzz.token_sort_ratio(wanted, s.name.lower())
        if score > best_score:
            best_score = score
            best = s

    if best and best_score >= FUZZY_THRESHOLD:
        logger.debug("Supplier fuzzy matched: '%s' -> '%s' (score=%d)", name, best.name, best_score)
        return best
    return None


def build_seed_data(raw: dict) -> tuple[list[Product], list[Supplier], SeedResult]:
    """
    Map a generated dataset into fresh Product and Supplier records.

    Invalid entries and duplicate SKUs are skipped with a warning.
    """
    suppliers: list[Supplier] = []
    for entry in raw.get("suppliers") or []:
        try:
            gen = GeneratedSupplier.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping invalid generated supplier: %s", e)
            continue
        suppliers.append(Supplier(
            id=new_id(),
            name=gen.name.strip(),
            contact_email=gen.contact_email,
            lead_time_days=max(1, gen.lead_time_days),
        ))

    products: list[Product] = []
    seen_skus: set[str] = set()
    unresolved: list[str] = []
    now = utcnow()
    for entry in raw.get("products") or []:
        try:
            gen = GeneratedProduct.model_validate(entry)
        except ValidationError as e:
            logger.warning("Skipping invalid generated product: %s", e)
            continue
        if gen.sku.strip().upper() in seen_skus:
            logger.warning("Skipping duplicate generated SKU: %s", gen.sku)
            continue

        supplier = resolve_supplier(gen.supplier_name, suppliers)
        if supplier is None:
            unresolved.append(gen.sku)
            supplier = suppliers[0] if suppliers else None

        try:
            product = Product(
                id=new_id(),
                sku=gen.sku.strip(),
                name=gen.name.strip(),
                category=gen.category or "Uncategorized",
                stock_level=gen.stock_level,
                reorder_point=gen.reorder_point,
                unit_price=str(gen.unit_price),
                supplier_id=supplier.id if supplier else UNKNOWN_SUPPLIER,
                last_updated=now,
                status=ProductStatus.ACTIVE,
            )
        except ValidationError as e:
            logger.warning("Skipping generated product %s: %s", gen.sku, e)
            continue
        seen_skus.add(gen.sku.strip().upper())
        products.append(product)

    if unresolved:
        logger.warning(
            "%d product(s) had no matching supplier name: %s",
            len(unresolved), ", ".join(unresolved),
        )
    logger.info("Built seed data: %d products, %d suppliers", len(products), len(suppliers))
    return products, suppliers, SeedResult(
        product_count=len(products),
        supplier_count=len(suppliers),
        unresolved_suppliers=unresolved,
    )


def load_seed_file(path: str | Path) -> dict:
    """Read a seed dataset from a JSON file."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Seed file {path} must contain a JSON object")
    return data
