"""
Replenishment suggestion ingestion.

Turns the analysis provider's raw JSON into PENDING PurchaseRequisitions
without trusting its shape:

  - groups and lines are validated one by one; a malformed entry is dropped
    and counted, the rest of the batch survives
  - quantities must be positive (fractional values are rounded up)
  - prices are never taken from the provider: each line is priced from the
    current Product record, or 0 when the product id does not resolve
  - a group left with no valid lines is dropped, since a requisition must
    have at least one item

Also owns the selection policy deciding which products are "at risk" and
worth sending to the provider at all.
"""
import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from models.product import Product, utcnow
from models.purchase_order import LineItem, StatusEvent
from models.requisition import PurchaseRequisition, RequisitionStatus
from .errors import ProviderFailure
from .store import new_id

logger = logging.getLogger(__name__)

DEFAULT_AT_RISK_MULTIPLIER = 2
DEFAULT_REASON = "Auto-replenishment"
DEFAULT_SUMMARY = "Analysis complete."


# ---------------------------------------------------------------------------
# Provider output schema (untrusted)
# ---------------------------------------------------------------------------

class SuggestedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId", min_length=1)
    quantity: float


class SuggestedRequisition(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    suggested_supplier_id: Optional[str] = Field(default=None, alias="suggestedSupplierId")
    reason: Optional[str] = None
    items: list[Any] = Field(default_factory=list)


class ProviderResponse(BaseModel):
    summary: Optional[str] = None
    requisitions: Optional[list[Any]] = None


@dataclass
class IngestedSuggestions:
    summary: str
    requisitions: list[PurchaseRequisition] = field(default_factory=list)
    dropped: int = 0            # Groups + lines discarded as malformed


def _to_quantity(value: float) -> Optional[int]:
    if not math.isfinite(value) or value <= 0:
        return None
    return math.ceil(value)


class SuggestionIngestor:
    """
    Usage:
        ingestor = SuggestionIngestor()
        at_risk = ingestor.select_at_risk(products)
        result = ingestor.ingest(raw_response, products, store.requisition_numbers())
    """

    def __init__(self, at_risk_multiplier: int = DEFAULT_AT_RISK_MULTIPLIER):
        self.at_risk_multiplier = at_risk_multiplier

    # ------------------------------------------------------------------
    # Selection policy
    # ------------------------------------------------------------------

    def select_at_risk(self, products: list[Product]) -> list[Product]:
        """ACTIVE products with stock_level <= multiplier x reorder_point."""
        return [
            p for p in products
            if p.is_active and p.stock_level <= p.reorder_point * self.at_risk_multiplier
        ]

    @staticmethod
    def healthy_summary(product_count: int) -> str:
        return (
            f"Inventory is in excellent health. All {product_count} items are well "
            f"above reorder points. No immediate action required."
        )

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def ingest(
        self,
        raw: Any,
        products: list[Product],
        numbers: Iterator[str],
    ) -> IngestedSuggestions:
        """
        Map a provider response into new PENDING requisitions.

        Raises ProviderFailure when the response as a whole is unusable
        (not an object, or summary/requisitions of the wrong type).
        """
        if not isinstance(raw, dict):
            raise ProviderFailure(f"Provider returned {type(raw).__name__}, expected an object")
        try:
            response = ProviderResponse.model_validate(raw)
        except ValidationError as e:
            raise ProviderFailure(f"Provider response failed validation: {e}", cause=e)

        prices = {p.id: p.unit_price for p in products}
        result = IngestedSuggestions(summary=response.summary or DEFAULT_SUMMARY)

        for index, group in enumerate(response.requisitions or []):
            try:
                suggestion = SuggestedRequisition.model_validate(group)
            except ValidationError as e:
                logger.warning("Dropping malformed requisition #%d: %s", index, e)
                result.dropped += 1
                continue

            items, dropped_lines = self._map_items(index, suggestion.items, prices)
            result.dropped += dropped_lines
            if not items:
                logger.warning("Dropping requisition #%d: no valid items", index)
                result.dropped += 1
                continue

            now = utcnow()
            result.requisitions.append(PurchaseRequisition(
                id=new_id(),
                req_number=next(numbers),
                suggested_supplier_id=suggestion.suggested_supplier_id or None,
                status=RequisitionStatus.PENDING,
                date_created=now,
                items=items,
                reason=suggestion.reason or DEFAULT_REASON,
                status_history=[StatusEvent(
                    status=RequisitionStatus.PENDING.value, at=now, note="Suggested by analysis",
                )],
            ))

        logger.info(
            "Ingested %d requisition(s) from provider (%d malformed entries dropped)",
            len(result.requisitions), result.dropped,
        )
        return result

    def _map_items(
        self,
        group_index: int,
        raw_items: list[Any],
        prices: dict[str, Decimal],
    ) -> tuple[list[LineItem], int]:
        items: list[LineItem] = []
        dropped = 0
        for raw_item in raw_items:
            try:
                suggested = SuggestedItem.model_validate(raw_item)
            except ValidationError as e:
                logger.warning("Requisition #%d: dropping malformed line: %s", group_index, e)
                dropped += 1
                continue

            quantity = _to_quantity(suggested.quantity)
            if quantity is None:
                logger.warning(
                    "Requisition #%d: dropping line for %s with quantity %s",
                    group_index, suggested.product_id, suggested.quantity,
                )
                dropped += 1
                continue

            price = prices.get(suggested.product_id)
            if price is None:
                logger.warning(
                    "Requisition #%d: unknown product %s, pricing at 0",
                    group_index, suggested.product_id,
                )
                price = Decimal("0")

            items.append(LineItem(
                product_id=suggested.product_id,
                quantity=quantity,
                unit_price=price,
            ))
        return items, dropped
