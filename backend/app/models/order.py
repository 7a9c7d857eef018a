from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

from app.core.errors import ErrorKind


class OrderStatus(str, Enum):
    """Order fulfilment status."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Manual payment tracking status."""
    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"


class BuyerInfo(BaseModel):
    """Buyer-supplied contact and address fields from the checkout form."""
    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    notes: Optional[str] = None

    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ("name", "email", "phone", "address")

    @field_validator("name", "email", "phone", "address", mode="before")
    @classmethod
    def none_to_blank(cls, value):
        return "" if value is None else value

    def missing_fields(self) -> List[str]:
        """Required fields that are blank after trimming."""
        return [f for f in self.REQUIRED_FIELDS if not getattr(self, f).strip()]

    def trimmed(self) -> "BuyerInfo":
        notes = self.notes.strip() if self.notes else None
        return BuyerInfo(
            name=self.name.strip(),
            email=self.email.strip(),
            phone=self.phone.strip(),
            address=self.address.strip(),
            notes=notes or None,
        )


class ShippingAddress(BaseModel):
    name: str
    email: str
    phone: str
    address: str

    class Config:
        frozen = True


class OrderItem(BaseModel):
    """Line item echoed into the order."""
    product_id: str
    name: str
    quantity: int = Field(gt=0)
    price: Decimal

    class Config:
        frozen = True


class OrderDraft(BaseModel):
    """Assembled, not-yet-submitted order. Immutable once built."""
    user_id: Optional[str] = None
    email: str
    shipping_address: ShippingAddress
    items: List[OrderItem]
    subtotal: Decimal
    shipping_fee: Decimal
    tax: Decimal
    total: Decimal
    notes: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method: str = "manual"
    idempotency_key: Optional[str] = None

    class Config:
        frozen = True

    def to_document(self) -> dict:
        """Serialize for storage. Decimal amounts are stored as strings."""
        return self.model_dump(mode="json")


class OrderRecord(OrderDraft):
    """Confirmed order as returned by the order service."""
    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: dict) -> "OrderRecord":
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls(**data)


class OrderError(BaseModel):
    """Failure reported by the order submission service."""
    kind: ErrorKind
    message: str
    product_ids: List[str] = Field(default_factory=list)


class SubmissionResult(BaseModel):
    """Tagged result of submit_order: either an order or an error."""
    success: bool
    order: Optional[OrderRecord] = None
    error: Optional[OrderError] = None

    @classmethod
    def ok(cls, order: OrderRecord) -> "SubmissionResult":
        return cls(success=True, order=order)

    @classmethod
    def failed(cls, kind: ErrorKind, message: str, product_ids: Optional[List[str]] = None) -> "SubmissionResult":
        return cls(
            success=False,
            error=OrderError(kind=kind, message=message, product_ids=product_ids or []),
        )
