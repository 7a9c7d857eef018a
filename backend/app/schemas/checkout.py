from decimal import Decimal
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.errors import StorefrontError
from app.models.order import OrderDraft, OrderRecord
from app.schemas.cart import Adjustment


class CheckoutState(str, Enum):
    """Checkout attempt lifecycle."""
    IDLE = "idle"
    VALIDATING = "validating"
    RECONCILING = "reconciling"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


IN_FLIGHT_STATES = (CheckoutState.VALIDATING, CheckoutState.RECONCILING, CheckoutState.SUBMITTING)


class CheckoutResult(BaseModel):
    """Outcome of one checkout attempt."""
    state: CheckoutState
    attempt: int
    order: Optional[OrderRecord] = None
    draft: Optional[OrderDraft] = None
    error: Optional[StorefrontError] = None
    adjustments: List[Adjustment] = Field(default_factory=list)
    reconciled: bool = False
    stale: bool = False  # result of an abandoned attempt, ignore it

    class Config:
        arbitrary_types_allowed = True

    @property
    def ok(self) -> bool:
        return self.state == CheckoutState.SUCCEEDED and not self.stale


class OrderSummary(BaseModel):
    """Order summary shown next to the cart."""
    total_items: int
    subtotal: Decimal
    shipping_fee: Decimal
    tax: Decimal
    total: Decimal
    formatted_total: str


class CheckoutRequest(BaseModel):
    """Schema for submitting the checkout form."""
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Lara Santos",
                "email": "lara@example.com",
                "phone": "+63 917 123 4567",
                "address": "12 Mabini St, Quezon City",
                "notes": "Please include a gift note"
            }
        }


class CheckoutResponse(BaseModel):
    """Schema for a successful checkout."""
    state: CheckoutState
    order: OrderRecord
    adjustments: List[Adjustment] = Field(default_factory=list)
    notices: List[str] = Field(default_factory=list)
