import json
import logging
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from app.core.config import settings
from app.core.errors import PersistenceWarning
from app.models.cart import Cart, CartLine
from app.models.product import Product
from app.schemas.cart import (
    CartOperationResult,
    ReconcileResult,
    REASON_EXCEEDS_STOCK,
    REASON_NOT_IN_CART,
    REASON_OUT_OF_STOCK,
)
from app.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


def serialize_lines(lines: Iterable[CartLine]) -> str:
    """Serialize cart lines to the JSON snapshot format."""
    return json.dumps([line.model_dump(mode="json") for line in lines], ensure_ascii=False)


def parse_snapshot(raw: Optional[str]) -> List[CartLine]:
    """
    Parse a JSON cart snapshot.

    Raises ValueError for anything that isn't a list of valid lines.
    """
    if raw is None:
        return []
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("Cart snapshot must be a JSON array")
    return [CartLine.model_validate(item) for item in data]


class CartService:
    """
    In-memory shopping cart persisted to a key-value store.

    The in-memory lines are authoritative for the session. Every mutation
    writes a snapshot to the store; store failures are logged and ignored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        storage_key: Optional[str] = None,
        watch: bool = False
    ):
        self.store = store
        self.storage_key = storage_key or settings.CART_STORAGE_KEY
        self._lines: List[CartLine] = []
        self._last_written: Optional[str] = None
        self._unsubscribe = store.subscribe(self._on_store_change) if watch else None

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def cart(self) -> Cart:
        """Snapshot of the current cart. Mutating it does not affect the service."""
        return Cart(lines=[line.model_copy() for line in self._lines])

    @property
    def lines(self) -> List[CartLine]:
        return [line.model_copy() for line in self._lines]

    def total_items(self) -> int:
        return sum(line.quantity for line in self._lines)

    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self._lines), Decimal("0"))

    def _index_of(self, product_id: Any) -> int:
        key = str(product_id)
        for index, line in enumerate(self._lines):
            if line.product_id == key:
                return index
        return -1

    # ── Persistence ──────────────────────────────────────────────────────────

    def _persist(self) -> None:
        snapshot = serialize_lines(self._lines)
        self._last_written = snapshot
        try:
            self.store.set(self.storage_key, snapshot)
        except (PersistenceWarning, OSError) as e:
            logger.warning(f"Failed to save cart to store: {e}")

    def rehydrate(self) -> Cart:
        """Load the persisted snapshot. Corrupt or missing data yields an empty cart."""
        try:
            raw = self.store.get(self.storage_key)
        except (PersistenceWarning, OSError) as e:
            logger.warning(f"Failed to read cart from store: {e}")
            raw = None

        try:
            lines = parse_snapshot(raw)
        except ValueError as e:
            logger.warning(f"Discarding corrupt cart snapshot: {e}")
            lines = []

        self.load(lines)
        return self.cart

    def _on_store_change(self, key: str, value: Optional[str]) -> None:
        if key != self.storage_key or value == self._last_written:
            return
        try:
            lines = parse_snapshot(value)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt cart snapshot written by another session: {e}")
            lines = []
        logger.info("Cart changed in another session, reloading")
        self._lines = lines
        self._last_written = value

    def close(self) -> None:
        """Stop watching the store for out-of-band changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # ── Mutations ────────────────────────────────────────────────────────────

    def load(self, lines: Iterable[CartLine]) -> None:
        """Replace every line as-is. No stock or duplicate checks."""
        self._lines = [line.model_copy() for line in lines]
        self._persist()

    def apply(self, reconciled: ReconcileResult) -> None:
        """Adopt a reconciled cart."""
        self.load(reconciled.cart.lines)

    def add_item(self, product: Product) -> CartOperationResult:
        """
        Add one unit of a product.

        Declined (cart unchanged) when the product is out of stock or the
        line is already at the product's stock.
        """
        index = self._index_of(product.id)

        if index >= 0:
            existing = self._lines[index]
            new_quantity = existing.quantity + 1
            if product.stock is not None and new_quantity > product.stock:
                return CartOperationResult(
                    ok=False,
                    reason=REASON_EXCEEDS_STOCK,
                    product_id=product.id,
                    quantity=existing.quantity,
                    available=product.stock,
                )
            self._lines[index] = existing.model_copy(
                update={"quantity": new_quantity, "stock": product.stock}
            )
        else:
            if product.is_out_of_stock:
                return CartOperationResult(
                    ok=False,
                    reason=REASON_OUT_OF_STOCK,
                    product_id=product.id,
                    quantity=0,
                    available=product.stock,
                )
            new_quantity = 1
            self._lines.append(CartLine.from_product(product))

        self._persist()
        return CartOperationResult(
            ok=True,
            product_id=product.id,
            quantity=new_quantity,
            available=product.stock,
            changed=True,
        )

    def remove_item(self, product_id: Any) -> CartOperationResult:
        """Remove a line. Removing a line that isn't there is a no-op."""
        key = str(product_id)
        before = len(self._lines)
        self._lines = [line for line in self._lines if line.product_id != key]
        changed = len(self._lines) != before

        self._persist()
        return CartOperationResult(ok=True, product_id=key, quantity=0, changed=changed)

    def update_quantity(
        self,
        product_id: Any,
        quantity: int,
        max_stock: Optional[int] = None
    ) -> CartOperationResult:
        """
        Set a line's quantity.

        Zero or less removes the line. Anything above `max_stock` is clamped
        to it (None means no ceiling).
        """
        if quantity <= 0:
            return self.remove_item(product_id)

        key = str(product_id)
        index = self._index_of(key)
        if index < 0:
            return CartOperationResult(
                ok=False,
                reason=REASON_NOT_IN_CART,
                product_id=key,
                quantity=0,
                available=max_stock,
            )

        clamped = max_stock is not None and quantity > max_stock
        if clamped:
            quantity = max_stock
        if quantity <= 0:
            result = self.remove_item(key)
            return result.model_copy(update={"clamped": True, "available": max_stock})

        existing = self._lines[index]
        update = {"quantity": quantity}
        if max_stock is not None:
            update["stock"] = max_stock
        self._lines[index] = existing.model_copy(update=update)

        self._persist()
        return CartOperationResult(
            ok=True,
            product_id=key,
            quantity=quantity,
            available=max_stock,
            clamped=clamped,
            changed=existing.quantity != quantity,
        )

    def clear(self) -> CartOperationResult:
        changed = bool(self._lines)
        self._lines = []
        self._persist()
        return CartOperationResult(ok=True, quantity=0, changed=changed)
