"""
Requisition / purchase order state machine.

  PR:  PENDING -> CONVERTED        (convert_to_order)
       PENDING -> REJECTED         (reject_requisition)
  PO:  DRAFT -> ORDERED -> RECEIVED  (set_order_status / receive_order)

CONVERTED, REJECTED and RECEIVED are terminal and there is no rollback path.
Re-setting a PO to its current status is a no-op; any other move raises
InvalidTransitionError and leaves the store unchanged.

Stock is reconciled only on the transition into RECEIVED (previous status is
not RECEIVED and the new one is), so each order adds its quantities exactly
once no matter how often RECEIVED is requested.

ProcurementWorkflow also carries the product / supplier edits and the seeding
bulk-replace so every write to the store goes through one place.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from models.product import Product, utcnow
from models.supplier import Supplier
from models.purchase_order import (
    PurchaseOrder, OrderStatus, LineItem, StatusEvent, sum_items,
)
from models.requisition import PurchaseRequisition, RequisitionStatus
from models.result import ConversionResult, ReceiptResult, StockAdjustment
from .errors import InvalidTransitionError
from .store import InventoryStore, new_id

logger = logging.getLogger(__name__)

REQUISITION_TRANSITIONS: dict[RequisitionStatus, set[RequisitionStatus]] = {
    RequisitionStatus.PENDING:   {RequisitionStatus.CONVERTED, RequisitionStatus.REJECTED},
    RequisitionStatus.CONVERTED: set(),
    RequisitionStatus.REJECTED:  set(),
}

ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.DRAFT:    {OrderStatus.ORDERED},
    OrderStatus.ORDERED:  {OrderStatus.RECEIVED},
    OrderStatus.RECEIVED: set(),
}


def apply_receipt(
    products: list[Product],
    items: list[LineItem],
    now: datetime,
) -> tuple[list[Product], list[StockAdjustment], list[str]]:
    """
    Add each line's quantity to its product's stock.

    Returns (updated product list, adjustments, skipped product ids).  Lines
    whose product does not exist are skipped rather than failing the receipt.
    """
    by_id = {p.id: p for p in products}
    adjustments: list[StockAdjustment] = []
    skipped: list[str] = []

    for item in items:
        product = by_id.get(item.product_id)
        if product is None:
            logger.warning(
                "Receipt line skipped: product %s not found (qty %d not added to stock)",
                item.product_id, item.quantity,
            )
            skipped.append(item.product_id)
            continue
        updated = product.model_copy(update={
            "stock_level": product.stock_level + item.quantity,
            "last_updated": now,
        })
        by_id[product.id] = updated
        adjustments.append(StockAdjustment(
            product_id=product.id,
            sku=product.sku,
            quantity=item.quantity,
            stock_before=product.stock_level,
            stock_after=updated.stock_level,
        ))

    return list(by_id.values()), adjustments, skipped


def _replace(records: list, updated) -> list:
    return [updated if r.id == updated.id else r for r in records]


class ProcurementWorkflow:
    """
    Applies state transitions and edits to an InventoryStore.

    Every public method holds the store lock for its whole
    read-modify-commit sequence.
    """

    def __init__(self, store: InventoryStore):
        self.store = store

    # ------------------------------------------------------------------
    # Requisitions
    # ------------------------------------------------------------------

    def add_requisitions(self, requisitions: list[PurchaseRequisition]) -> None:
        """Append a batch of new PENDING requisitions in a single commit."""
        if not requisitions:
            return
        with self.store.lock:
            existing = {r.id for r in self.store.requisitions}
            for req in requisitions:
                if req.id in existing:
                    raise ValueError(f"Requisition id {req.id!r} already exists")
                if req.status != RequisitionStatus.PENDING:
                    raise ValueError(f"New requisition {req.req_number} must be PENDING")
            self.store.commit(requisitions=self.store.requisitions + list(requisitions))
            for req in requisitions:
                self.store.audit(req.id, "requisition_added", {
                    "req_number": req.req_number,
                    "items": len(req.items),
                    "suggested_supplier_id": req.suggested_supplier_id,
                })
        logger.info("Added %d requisition(s)", len(requisitions))

    def convert_to_order(self, requisition_id: str, supplier_id: str) -> ConversionResult:
        """
        Convert a PENDING requisition into a new DRAFT purchase order.

        Items (with their snapshot prices) are copied verbatim; the order total
        is computed here once.  An unknown supplier_id is accepted but flagged.

        Raises NotFoundError for an unknown requisition and
        InvalidTransitionError if it is no longer PENDING.
        """
        with self.store.lock:
            req = self.store.require_requisition(requisition_id)
            self._check_requisition_transition(req, RequisitionStatus.CONVERTED)

            supplier = self.store.get_supplier(supplier_id)
            if supplier is None:
                logger.warning(
                    "Converting %s to unknown supplier %s", req.req_number, supplier_id
                )

            now = utcnow()
            items = [item.model_copy() for item in req.items]
            order = PurchaseOrder(
                id=new_id(),
                order_number=self.store.next_order_number(),
                supplier_id=supplier_id,
                status=OrderStatus.DRAFT,
                date_created=now,
                date_expected=now + timedelta(days=supplier.lead_time_days) if supplier else None,
                items=items,
                total_amount=sum_items(items),
                original_requisition_id=req.id,
                status_history=[StatusEvent(
                    status=OrderStatus.DRAFT.value, at=now, note=f"Converted from {req.req_number}",
                )],
            )
            converted = req.model_copy(update={
                "status": RequisitionStatus.CONVERTED,
                "status_history": req.status_history + [StatusEvent(
                    status=RequisitionStatus.CONVERTED.value, at=now, note=order.order_number,
                )],
            })

            self.store.commit(
                requisitions=_replace(self.store.requisitions, converted),
                orders=self.store.orders + [order],
            )
            self.store.audit(req.id, "converted", {
                "order_id": order.id,
                "order_number": order.order_number,
                "supplier_id": supplier_id,
                "unknown_supplier": supplier is None,
            })

        logger.info(
            "Converted %s -> %s (supplier=%s, total=%s)",
            req.req_number, order.order_number, supplier_id, order.total_amount,
        )
        return ConversionResult(
            requisition=converted, order=order, supplier_known=supplier is not None,
        )

    def reject_requisition(
        self,
        requisition_id: str,
        reason: Optional[str] = None,
    ) -> PurchaseRequisition:
        """Move a PENDING requisition to REJECTED."""
        with self.store.lock:
            req = self.store.require_requisition(requisition_id)
            self._check_requisition_transition(req, RequisitionStatus.REJECTED)
            rejected = req.model_copy(update={
                "status": RequisitionStatus.REJECTED,
                "rejection_reason": reason,
                "status_history": req.status_history + [StatusEvent(
                    status=RequisitionStatus.REJECTED.value, note=reason,
                )],
            })
            self.store.commit(requisitions=_replace(self.store.requisitions, rejected))
            self.store.audit(req.id, "rejected", {"reason": reason})
        logger.info("Rejected %s", req.req_number)
        return rejected

    @staticmethod
    def _check_requisition_transition(
        req: PurchaseRequisition,
        target: RequisitionStatus,
    ) -> None:
        if target not in REQUISITION_TRANSITIONS[req.status]:
            raise InvalidTransitionError(
                "PurchaseRequisition", req.id, req.status.value, target.value,
            )

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def set_order_status(self, order_id: str, status: OrderStatus | str) -> ReceiptResult:
        """
        Move an order forward one step (DRAFT -> ORDERED -> RECEIVED).

        Requesting the current status is a no-op and returns changed=False.
        Entering RECEIVED adds every line's quantity to stock and stamps
        received_at; missing products are skipped and reported.
        """
        status = OrderStatus(status)
        with self.store.lock:
            order = self.store.require_order(order_id)
            previous = order.status

            if status == previous:
                logger.info(
                    "%s already %s, nothing to do", order.order_number, status.value
                )
                return ReceiptResult(order=order, previous_status=previous, changed=False)

            if status not in ORDER_TRANSITIONS[previous]:
                raise InvalidTransitionError(
                    "PurchaseOrder", order.id, previous.value, status.value,
                )

            now = utcnow()
            update = {
                "status": status,
                "status_history": order.status_history + [StatusEvent(status=status.value, at=now)],
            }
            products = None
            adjustments: list[StockAdjustment] = []
            skipped: list[str] = []
            if previous != OrderStatus.RECEIVED and status == OrderStatus.RECEIVED:
                products, adjustments, skipped = apply_receipt(
                    self.store.products, order.items, now,
                )
                update["received_at"] = now

            updated = order.model_copy(update=update)
            self.store.commit(
                orders=_replace(self.store.orders, updated),
                products=products,
            )
            self.store.audit(order.id, "status_changed", {
                "from": previous.value,
                "to": status.value,
                "stock_adjustments": len(adjustments),
                "skipped_product_ids": skipped,
            })

        logger.info(
            "%s: %s -> %s%s",
            order.order_number, previous.value, status.value,
            f" ({len(adjustments)} stock line(s) updated, {len(skipped)} skipped)"
            if status == OrderStatus.RECEIVED else "",
        )
        return ReceiptResult(
            order=updated,
            previous_status=previous,
            adjustments=adjustments,
            skipped_product_ids=skipped,
        )

    def receive_order(self, order_id: str) -> ReceiptResult:
        """Mark an ORDERED purchase order RECEIVED and reconcile stock."""
        return self.set_order_status(order_id, OrderStatus.RECEIVED)

    # ------------------------------------------------------------------
    # Products / suppliers
    # ------------------------------------------------------------------

    def add_product(self, product: Product) -> Product:
        with self.store.lock:
            if self.store.get_product(product.id) is not None:
                raise ValueError(f"Product id {product.id!r} already exists")
            self._check_unique_sku(product)
            self.store.commit(products=self.store.products + [product])
            self.store.audit(product.id, "product_added", {"sku": product.sku})
        logger.info("Added product %s (%s)", product.sku, product.name)
        return product

    def update_product(self, product: Product) -> Product:
        """
        Replace a product record by id and refresh last_updated.

        Existing orders and requisitions keep their own price snapshots.
        """
        with self.store.lock:
            self.store.require_product(product.id)
            self._check_unique_sku(product)
            updated = Product.model_validate({
                **product.model_dump(), "last_updated": utcnow(),
            })
            self.store.commit(products=_replace(self.store.products, updated))
            self.store.audit(product.id, "product_updated", {
                "sku": updated.sku,
                "stock_level": updated.stock_level,
                "unit_price": str(updated.unit_price),
                "status": updated.status.value,
            })
        logger.info("Updated product %s", updated.sku)
        return updated

    def _check_unique_sku(self, product: Product) -> None:
        for other in self.store.products:
            if other.id != product.id and other.sku.upper() == product.sku.upper():
                raise ValueError(f"SKU {product.sku!r} is already used by product {other.id}")

    def add_supplier(self, supplier: Supplier) -> Supplier:
        with self.store.lock:
            if self.store.get_supplier(supplier.id) is not None:
                raise ValueError(f"Supplier id {supplier.id!r} already exists")
            self.store.commit(suppliers=self.store.suppliers + [supplier])
            self.store.audit(supplier.id, "supplier_added", {"name": supplier.name})
        logger.info("Added supplier %s", supplier.name)
        return supplier

    def update_supplier(self, supplier: Supplier) -> Supplier:
        with self.store.lock:
            self.store.require_supplier(supplier.id)
            self.store.commit(suppliers=_replace(self.store.suppliers, supplier))
            self.store.audit(supplier.id, "supplier_updated", {"name": supplier.name})
        logger.info("Updated supplier %s", supplier.name)
        return supplier

    def delete_supplier(self, supplier_id: str) -> Supplier:
        """
        Remove a supplier.  Products and documents that reference it keep the
        now dangling id.
        """
        with self.store.lock:
            supplier = self.store.require_supplier(supplier_id)
            self.store.commit(
                suppliers=[s for s in self.store.suppliers if s.id != supplier_id]
            )
            self.store.audit(supplier_id, "supplier_deleted", {"name": supplier.name})
        referencing = sum(1 for p in self.store.products if p.supplier_id == supplier_id)
        if referencing:
            logger.warning(
                "Deleted supplier %s is still referenced by %d product(s)",
                supplier.name, referencing,
            )
        return supplier

    def seed_data(self, products: list[Product], suppliers: list[Supplier]) -> None:
        """
        Replace the product and supplier collections wholesale.

        No merge: whatever was there before is overwritten, orders and
        requisitions are left alone.
        """
        with self.store.lock:
            if self.store.products:
                logger.warning(
                    "Seeding over %d existing product(s); they will be replaced",
                    len(self.store.products),
                )
            self.store.commit(products=products, suppliers=suppliers)
            self.store.audit("seed", "seeded", {
                "products": len(products), "suppliers": len(suppliers),
            })
        logger.info("Seeded %d products and %d suppliers", len(products), len(suppliers))
