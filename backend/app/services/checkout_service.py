"""
CHECKOUT ORCHESTRATOR

Turns "cart + buyer info" into a submitted order:

    IDLE -> VALIDATING -> RECONCILING -> SUBMITTING -> {SUCCEEDED | FAILED}

Rules:
- Stock is re-checked right before submission, against a fresh catalog.
- If reconciliation changes the cart, the change is applied and shown to the
  buyer; by default the attempt stops there instead of submitting an order
  the buyer hasn't seen.
- A failed submission never touches the cart. Only a confirmed order clears it.
- No automatic retry; a new call starts a new attempt at VALIDATING.
- Every attempt has an id. Results that arrive after the attempt was
  cancelled or superseded are flagged stale and change nothing.
"""

import logging
import uuid
from typing import List, Optional, Protocol, Union

from app.core.config import settings
from app.core.errors import (
    NotFoundError,
    StockConflictError,
    StorefrontError,
    TransientNetworkError,
    ValidationError,
    error_from_kind,
)
from app.models.cart import Cart
from app.models.order import BuyerInfo, OrderDraft, OrderItem, ShippingAddress, SubmissionResult
from app.models.product import Product
from app.schemas.cart import Adjustment, AdjustmentKind, REASON_NO_LONGER_AVAILABLE
from app.schemas.checkout import CheckoutResult, CheckoutState, IN_FLIGHT_STATES, OrderSummary
from app.services.cart_service import CartService
from app.services.reconciliation_service import ReconciliationService
from app.services.settings_service import ShopPricing
from app.utils.money import compute_totals, format_currency

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "Please fill in your name, email, contact number, and address."
EMPTY_CART_MESSAGE = "Your cart is empty."
ITEMS_CHANGED_MESSAGE = "Some items in your cart changed. Please review your cart before placing the order."
CATALOG_UNAVAILABLE_MESSAGE = "We couldn't check current stock. Please try again."
PRICING_UNAVAILABLE_MESSAGE = "We couldn't load shipping and tax settings. Please try again."
SUBMIT_FAILED_MESSAGE = "Failed to place order. Please try again."


class CatalogProvider(Protocol):
    async def list_products(self) -> List[Product]: ...


class PricingProvider(Protocol):
    async def get_pricing(self) -> ShopPricing: ...


class OrderSubmitter(Protocol):
    async def submit_order(self, draft: OrderDraft) -> SubmissionResult: ...


class CheckoutOrchestrator:
    """Drives one cart through checkout."""

    def __init__(
        self,
        cart: CartService,
        catalog: CatalogProvider,
        orders: OrderSubmitter,
        pricing: PricingProvider,
        abort_on_adjustment: Optional[bool] = None,
        skip_reconcile_on_catalog_error: Optional[bool] = None
    ):
        self.cart = cart
        self.catalog = catalog
        self.orders = orders
        self.pricing = pricing
        self.abort_on_adjustment = (
            settings.CHECKOUT_ABORT_ON_ADJUSTMENT if abort_on_adjustment is None else abort_on_adjustment
        )
        self.skip_reconcile_on_catalog_error = (
            settings.CHECKOUT_SKIP_RECONCILE_ON_CATALOG_ERROR
            if skip_reconcile_on_catalog_error is None
            else skip_reconcile_on_catalog_error
        )

        self.state = CheckoutState.IDLE
        self.attempt = 0
        self.last_order = None
        self.last_error: Optional[StorefrontError] = None
        self.adjustments: List[Adjustment] = []

    # ── Attempt bookkeeping ──────────────────────────────────────────────────

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES

    def _is_current(self, attempt: int) -> bool:
        return attempt == self.attempt and self.in_flight

    def cancel(self) -> bool:
        """Abandon the in-flight attempt, if any, and return to IDLE."""
        if not self.in_flight:
            return False
        logger.info(f"Checkout attempt {self.attempt} cancelled in state {self.state.value}")
        self.attempt += 1
        self.state = CheckoutState.IDLE
        return True

    def _stale(self, attempt: int) -> CheckoutResult:
        logger.info(f"Ignoring result of abandoned checkout attempt {attempt}")
        return CheckoutResult(state=self.state, attempt=attempt, stale=True)

    def _finish(
        self,
        attempt: int,
        state: CheckoutState,
        error: Optional[StorefrontError] = None,
        **kwargs
    ) -> CheckoutResult:
        self.state = state
        self.last_error = error
        if error is not None:
            logger.warning(f"Checkout attempt {attempt} ended in {state.value}: {error.kind.value}: {error.message}")
        return CheckoutResult(state=state, attempt=attempt, error=error, **kwargs)

    # ── Draft building ───────────────────────────────────────────────────────

    @staticmethod
    def build_draft(cart: Cart, buyer: BuyerInfo, pricing: ShopPricing) -> OrderDraft:
        """Assemble the order draft with computed totals and a fresh idempotency key."""
        totals = compute_totals(cart.subtotal, pricing.shipping_fee, pricing.tax_rate)
        return OrderDraft(
            email=buyer.email,
            shipping_address=ShippingAddress(
                name=buyer.name,
                email=buyer.email,
                phone=buyer.phone,
                address=buyer.address,
            ),
            items=[
                OrderItem(
                    product_id=line.product_id,
                    name=line.name,
                    quantity=line.quantity,
                    price=line.unit_price,
                )
                for line in cart.lines
            ],
            notes=buyer.notes,
            idempotency_key=uuid.uuid4().hex,
            **totals,
        )

    @staticmethod
    def adjustment_error(adjustments: List[Adjustment]) -> StorefrontError:
        product_ids = [a.product_id for a in adjustments]
        all_unavailable = all(
            a.kind == AdjustmentKind.REMOVED and a.reason == REASON_NO_LONGER_AVAILABLE
            for a in adjustments
        )
        if all_unavailable:
            return NotFoundError(ITEMS_CHANGED_MESSAGE, product_ids=product_ids)
        return StockConflictError(ITEMS_CHANGED_MESSAGE, product_ids=product_ids)

    async def preview_totals(self) -> OrderSummary:
        """Order summary for the current cart. Nothing is submitted."""
        pricing = await self.pricing.get_pricing()
        totals = compute_totals(self.cart.subtotal(), pricing.shipping_fee, pricing.tax_rate)
        return OrderSummary(
            total_items=self.cart.total_items(),
            formatted_total=format_currency(totals["total"]),
            **totals,
        )

    # ── Checkout ─────────────────────────────────────────────────────────────

    async def checkout(self, buyer: Union[BuyerInfo, dict]) -> CheckoutResult:
        """Run one checkout attempt."""
        if isinstance(buyer, dict):
            buyer = BuyerInfo(**buyer)

        self.attempt += 1
        attempt = self.attempt
        self.state = CheckoutState.VALIDATING
        self.adjustments = []
        logger.info(f"Checkout attempt {attempt} started")

        # VALIDATING
        missing = buyer.missing_fields()
        if missing:
            return self._finish(attempt, CheckoutState.FAILED, ValidationError(MISSING_FIELDS_MESSAGE, fields=missing))
        if self.cart.total_items() == 0:
            return self._finish(attempt, CheckoutState.FAILED, ValidationError(EMPTY_CART_MESSAGE, fields=["cart"]))
        buyer = buyer.trimmed()

        # RECONCILING
        self.state = CheckoutState.RECONCILING
        adjustments: List[Adjustment] = []
        reconciled = False

        try:
            catalog = await self.catalog.list_products()
        except Exception as e:
            if not self._is_current(attempt):
                return self._stale(attempt)
            if not self.skip_reconcile_on_catalog_error:
                logger.error(f"Catalog fetch failed during checkout: {e}")
                return self._finish(attempt, CheckoutState.FAILED, TransientNetworkError(CATALOG_UNAVAILABLE_MESSAGE))
            logger.warning(f"Catalog fetch failed, submitting cached cart without reconciliation: {e}")
            catalog = None

        if not self._is_current(attempt):
            return self._stale(attempt)

        # Read the cart only once the fetch has returned
        cart = self.cart.cart
        if cart.is_empty:
            return self._finish(attempt, CheckoutState.FAILED, ValidationError(EMPTY_CART_MESSAGE, fields=["cart"]))

        if catalog is not None:
            reconciled = True
            outcome = ReconciliationService.reconcile(cart, catalog)
            if outcome.changed:
                self.cart.apply(outcome)
                adjustments = outcome.adjustments
                self.adjustments = adjustments
                if self.abort_on_adjustment or outcome.cart.is_empty:
                    return self._finish(
                        attempt,
                        CheckoutState.IDLE,
                        self.adjustment_error(adjustments),
                        adjustments=adjustments,
                        reconciled=True,
                    )
                cart = outcome.cart

        try:
            pricing = await self.pricing.get_pricing()
        except Exception as e:
            if not self._is_current(attempt):
                return self._stale(attempt)
            logger.error(f"Pricing fetch failed during checkout: {e}")
            return self._finish(
                attempt,
                CheckoutState.FAILED,
                TransientNetworkError(PRICING_UNAVAILABLE_MESSAGE),
                adjustments=adjustments,
                reconciled=reconciled,
            )

        if not self._is_current(attempt):
            return self._stale(attempt)

        # SUBMITTING
        self.state = CheckoutState.SUBMITTING
        draft = self.build_draft(cart, buyer, pricing)

        try:
            result = await self.orders.submit_order(draft)
        except Exception as e:
            if not self._is_current(attempt):
                logger.warning(f"Abandoned checkout attempt {attempt} failed to submit: {e}")
                return self._stale(attempt)
            logger.error(f"Order submission failed: {e}")
            return self._finish(
                attempt,
                CheckoutState.FAILED,
                TransientNetworkError(SUBMIT_FAILED_MESSAGE),
                draft=draft,
                adjustments=adjustments,
                reconciled=reconciled,
            )

        if not self._is_current(attempt):
            if result.success:
                logger.warning(f"Abandoned checkout attempt {attempt} created order {result.order.id}")
            return self._stale(attempt)

        if not result.success:
            error = result.error
            return self._finish(
                attempt,
                CheckoutState.FAILED,
                error_from_kind(error.kind, error.message, error.product_ids),
                draft=draft,
                adjustments=adjustments,
                reconciled=reconciled,
            )

        # SUCCEEDED
        self.cart.clear()
        self.last_order = result.order
        logger.info(f"Checkout attempt {attempt} placed order {result.order.id}")
        return self._finish(
            attempt,
            CheckoutState.SUCCEEDED,
            order=result.order,
            draft=draft,
            adjustments=adjustments,
            reconciled=reconciled,
        )
