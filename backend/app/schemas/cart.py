from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.cart import Cart, CartLine


# Cart operation failure reasons
REASON_EXCEEDS_STOCK = "exceeds stock"
REASON_OUT_OF_STOCK = "out of stock"
REASON_NOT_IN_CART = "not in cart"


class CartOperationResult(BaseModel):
    """
    Outcome of a cart mutation.

    Declined mutations are reported here rather than raised, so the caller
    decides how to surface them.
    """
    ok: bool
    reason: Optional[str] = None
    product_id: Optional[str] = None
    quantity: Optional[int] = None  # quantity of the line after the call (0 if absent)
    available: Optional[int] = None  # stock ceiling used for the check, None = unbounded
    clamped: bool = False
    changed: bool = False


class AdjustmentKind(str, Enum):
    REMOVED = "removed"
    CLAMPED = "clamped"


# Adjustment reasons
REASON_NO_LONGER_AVAILABLE = "no longer available"
REASON_INSUFFICIENT_STOCK = "insufficient stock"


class Adjustment(BaseModel):
    """A change made to a cart line during reconciliation."""
    product_id: str
    kind: AdjustmentKind
    reason: str
    name: str = ""
    from_quantity: Optional[int] = None
    to_quantity: Optional[int] = None

    class Config:
        frozen = True

    def message(self) -> str:
        label = self.name or f"Item {self.product_id}"
        if self.kind == AdjustmentKind.CLAMPED:
            return f"{label}: quantity reduced from {self.from_quantity} to {self.to_quantity} ({self.reason})"
        return f"{label} was removed from your cart ({self.reason})"


class ReconcileResult(BaseModel):
    """Reconciled cart plus the adjustments that produced it."""
    cart: Cart
    adjustments: List[Adjustment] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.adjustments)

    def messages(self) -> List[str]:
        return [adjustment.message() for adjustment in self.adjustments]


# ═══════════════════════════════════════════════════════════════════════════════
# API request / response schemas
# ═══════════════════════════════════════════════════════════════════════════════


class AddToCartRequest(BaseModel):
    """Schema for adding a product to cart."""
    product_id: str

    class Config:
        json_schema_extra = {
            "example": {
                "product_id": "1"
            }
        }


class UpdateCartItemRequest(BaseModel):
    """Schema for updating cart item quantity. Zero or less removes the line."""
    quantity: int

    class Config:
        json_schema_extra = {
            "example": {
                "quantity": 3
            }
        }


class CartItemResponse(BaseModel):
    """Schema for cart item response."""
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    image: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[int] = None
    line_total: Decimal

    @classmethod
    def from_line(cls, line: CartLine) -> "CartItemResponse":
        return cls(
            product_id=line.product_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            image=line.image,
            category=line.category,
            stock=line.stock,
            line_total=line.line_total,
        )


class CartResponse(BaseModel):
    """Schema for cart response."""
    items: List[CartItemResponse]
    total_items: int
    subtotal: Decimal
    result: Optional[CartOperationResult] = None
    adjustments: List[Adjustment] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)

    @classmethod
    def from_cart(
        cls,
        cart: Cart,
        result: Optional[CartOperationResult] = None,
        adjustments: Optional[List[Adjustment]] = None
    ) -> "CartResponse":
        adjustments = list(adjustments or [])
        return cls(
            items=[CartItemResponse.from_line(line) for line in cart.lines],
            total_items=cart.total_items,
            subtotal=cart.subtotal,
            result=result,
            adjustments=adjustments,
            notices=[a.message() for a in adjustments],
        )
