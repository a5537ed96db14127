"""
In-memory repository for the four procurement collections.

InventoryStore is the only object that holds products, suppliers, orders and
requisitions.  Writers build the new version of a collection and hand it to
commit(); the store persists it first and only then swaps it in, so a failed
write leaves the in-memory state unchanged.

All mutating callers must hold `store.lock` for the whole read-modify-commit
sequence; it is re-entrant so nested helpers can take it again.
"""
import itertools
import logging
import re
import sqlite3
import threading
import uuid
from typing import Iterator, Optional, Sequence

from models.product import Product
from models.supplier import Supplier
from models.purchase_order import PurchaseOrder
from models.requisition import PurchaseRequisition
from .database import (
    Database,
    COLLECTION_PRODUCTS,
    COLLECTION_SUPPLIERS,
    COLLECTION_ORDERS,
    COLLECTION_REQUISITIONS,
)
from .errors import NotFoundError

logger = logging.getLogger(__name__)

# Display numbers start after this value, e.g. PO-1001
NUMBER_BASE = 1000


def new_id() -> str:
    return uuid.uuid4().hex


def _max_number(numbers: Sequence[str], prefix: str) -> int:
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    highest = NUMBER_BASE
    for number in numbers:
        m = pattern.match(number or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return highest


class InventoryStore:
    """Holds the collections and mirrors every commit to the Database."""

    def __init__(self, database: Optional[Database] = None) -> None:
        self.db = database
        self.lock = threading.RLock()
        self._products: dict[str, Product] = {}
        self._suppliers: dict[str, Supplier] = {}
        self._orders: dict[str, PurchaseOrder] = {}
        self._requisitions: dict[str, PurchaseRequisition] = {}
        if database is not None:
            self._load()

    def _load(self) -> None:
        data = self.db.load_collections()
        self._products = _index(Product.model_validate(r) for r in data[COLLECTION_PRODUCTS])
        self._suppliers = _index(Supplier.model_validate(r) for r in data[COLLECTION_SUPPLIERS])
        self._orders = _index(PurchaseOrder.model_validate(r) for r in data[COLLECTION_ORDERS])
        self._requisitions = _index(
            PurchaseRequisition.model_validate(r) for r in data[COLLECTION_REQUISITIONS]
        )

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def products(self) -> list[Product]:
        return list(self._products.values())

    @property
    def suppliers(self) -> list[Supplier]:
        return list(self._suppliers.values())

    @property
    def orders(self) -> list[PurchaseOrder]:
        return list(self._orders.values())

    @property
    def requisitions(self) -> list[PurchaseRequisition]:
        return list(self._requisitions.values())

    def get_product(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def get_supplier(self, supplier_id: str) -> Optional[Supplier]:
        return self._suppliers.get(supplier_id)

    def get_order(self, order_id: str) -> Optional[PurchaseOrder]:
        return self._orders.get(order_id)

    def get_requisition(self, requisition_id: str) -> Optional[PurchaseRequisition]:
        return self._requisitions.get(requisition_id)

    def require_product(self, product_id: str) -> Product:
        product = self.get_product(product_id)
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def require_supplier(self, supplier_id: str) -> Supplier:
        supplier = self.get_supplier(supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier", supplier_id)
        return supplier

    def require_order(self, order_id: str) -> PurchaseOrder:
        order = self.get_order(order_id)
        if order is None:
            raise NotFoundError("PurchaseOrder", order_id)
        return order

    def require_requisition(self, requisition_id: str) -> PurchaseRequisition:
        requisition = self.get_requisition(requisition_id)
        if requisition is None:
            raise NotFoundError("PurchaseRequisition", requisition_id)
        return requisition

    def find_order(self, key: str) -> Optional[PurchaseOrder]:
        """Look up an order by id, or by display number (case-insensitive)."""
        if key in self._orders:
            return self._orders[key]
        return next(
            (o for o in self._orders.values() if o.order_number.upper() == key.upper()),
            None,
        )

    def find_requisition(self, key: str) -> Optional[PurchaseRequisition]:
        """Look up a requisition by id, or by display number (case-insensitive)."""
        if key in self._requisitions:
            return self._requisitions[key]
        return next(
            (r for r in self._requisitions.values() if r.req_number.upper() == key.upper()),
            None,
        )

    # ------------------------------------------------------------------
    # Display numbers
    # ------------------------------------------------------------------

    def next_order_number(self) -> str:
        current = _max_number([o.order_number for o in self._orders.values()], "PO")
        return f"PO-{current + 1}"

    def requisition_numbers(self) -> Iterator[str]:
        """Yield consecutive unused PR numbers, for numbering a batch."""
        current = _max_number([r.req_number for r in self._requisitions.values()], "PR")
        return (f"PR-{n}" for n in itertools.count(current + 1))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit(
        self,
        products: Optional[Sequence[Product]] = None,
        suppliers: Optional[Sequence[Supplier]] = None,
        orders: Optional[Sequence[PurchaseOrder]] = None,
        requisitions: Optional[Sequence[PurchaseRequisition]] = None,
    ) -> None:
        """
        Replace the given collections.  Collections passed as None are left
        untouched.  Persistence happens before the in-memory swap.
        """
        changes = {
            COLLECTION_PRODUCTS: products,
            COLLECTION_SUPPLIERS: suppliers,
            COLLECTION_ORDERS: orders,
            COLLECTION_REQUISITIONS: requisitions,
        }
        changes = {name: list(records) for name, records in changes.items() if records is not None}
        if not changes:
            return

        with self.lock:
            if self.db is not None:
                self.db.save_collections({
                    name: [r.model_dump(mode="json") for r in records]
                    for name, records in changes.items()
                })
            if products is not None:
                self._products = _index(changes[COLLECTION_PRODUCTS])
            if suppliers is not None:
                self._suppliers = _index(changes[COLLECTION_SUPPLIERS])
            if orders is not None:
                self._orders = _index(changes[COLLECTION_ORDERS])
            if requisitions is not None:
                self._requisitions = _index(changes[COLLECTION_REQUISITIONS])

    def import_collections(self, data: dict[str, list[dict]]) -> None:
        """
        Validate raw collections (e.g. from Database.read_export) and commit
        them.  A validation error leaves both memory and database untouched.
        """
        with self.lock:
            self.commit(
                products=_validated(Product, data.get(COLLECTION_PRODUCTS)),
                suppliers=_validated(Supplier, data.get(COLLECTION_SUPPLIERS)),
                orders=_validated(PurchaseOrder, data.get(COLLECTION_ORDERS)),
                requisitions=_validated(PurchaseRequisition, data.get(COLLECTION_REQUISITIONS)),
            )
            self.audit("import", "imported", {name: len(records) for name, records in data.items()})
        logger.info("Imported collections: %s", ", ".join(data))

    def audit(self, entity_id: str, action: str, detail: Optional[dict] = None) -> None:
        """
        Record an audit entry when a database is attached.

        Runs after the state change is committed, so a failed insert is
        logged rather than raised.
        """
        if self.db is None:
            return
        try:
            self.db.log_audit(entity_id, action, actor="system", detail=detail)
        except sqlite3.Error as e:
            logger.error("Audit entry %s for %s not recorded: %s", action, entity_id, e)


def _index(records) -> dict:
    return {r.id: r for r in records}


def _validated(model, records: Optional[list[dict]]):
    if records is None:
        return None
    return [model.model_validate(r) for r in records]
