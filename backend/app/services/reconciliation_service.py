"""
Stock reconciliation: re-check cart lines against the latest catalog.

Quantities are captured when items are added and may have gone stale since
(other purchases, admin edits). Reconciliation is pure; the caller decides
whether to apply the returned cart and how to surface the adjustments.
"""

import logging
from typing import Dict, Iterable, List

from app.models.cart import Cart, CartLine
from app.models.product import Product
from app.schemas.cart import (
    Adjustment,
    AdjustmentKind,
    ReconcileResult,
    REASON_INSUFFICIENT_STOCK,
    REASON_NO_LONGER_AVAILABLE,
    REASON_OUT_OF_STOCK,
)

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service for cart/stock reconciliation."""

    @staticmethod
    def index_catalog(catalog: Iterable[Product]) -> Dict[str, Product]:
        """Map products by stringified id."""
        return {str(product.id): product for product in catalog}

    @staticmethod
    def removal(line: CartLine, reason: str) -> Adjustment:
        return Adjustment(
            product_id=line.product_id,
            kind=AdjustmentKind.REMOVED,
            reason=reason,
            name=line.name,
            from_quantity=line.quantity,
            to_quantity=0,
        )

    @staticmethod
    def reconcile(cart: Cart, catalog: Iterable[Product]) -> ReconcileResult:
        """
        Drop or clamp lines that no longer fit current stock.

        - product missing from catalog: removed ("no longer available")
        - finite stock <= 0 below the line quantity: removed ("out of stock")
        - finite stock below the line quantity: clamped ("insufficient stock")
        """
        products = ReconciliationService.index_catalog(catalog)
        lines: List[CartLine] = []
        adjustments: List[Adjustment] = []

        for line in cart.lines:
            product = products.get(line.product_id)

            if product is None:
                adjustments.append(ReconciliationService.removal(line, REASON_NO_LONGER_AVAILABLE))
                continue

            if product.stock is not None and line.quantity > product.stock:
                if product.stock <= 0:
                    adjustments.append(ReconciliationService.removal(line, REASON_OUT_OF_STOCK))
                    continue

                adjustments.append(Adjustment(
                    product_id=line.product_id,
                    kind=AdjustmentKind.CLAMPED,
                    reason=REASON_INSUFFICIENT_STOCK,
                    name=line.name,
                    from_quantity=line.quantity,
                    to_quantity=product.stock,
                ))
                lines.append(line.model_copy(update={"quantity": product.stock, "stock": product.stock}))
                continue

            lines.append(line.model_copy())

        if adjustments:
            logger.info(f"Reconciliation adjusted {len(adjustments)} cart line(s)")

        return ReconcileResult(cart=Cart(lines=lines), adjustments=adjustments)
