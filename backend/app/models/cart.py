from decimal import Decimal
from typing import Any, List, Optional
from pydantic import AliasChoices, BaseModel, Field, field_validator

from app.models.product import Product
from app.utils.money import to_decimal


class CartLine(BaseModel):
    """One product-quantity pairing in the cart."""
    product_id: str = Field(validation_alias=AliasChoices("product_id", "id"))
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0, validation_alias=AliasChoices("unit_price", "price"))
    stock: Optional[int] = None  # stock at last known check, None = unbounded
    name: str = ""
    image: Optional[str] = None
    category: Optional[str] = None

    class Config:
        populate_by_name = True

    @field_validator("product_id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("unit_price", mode="before")
    @classmethod
    def parse_price(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_product(cls, product: Product, quantity: int = 1) -> "CartLine":
        """Snapshot price and display fields from the product at add time."""
        return cls(
            product_id=product.id,
            quantity=quantity,
            unit_price=product.price,
            stock=product.stock,
            name=product.name,
            image=product.image,
            category=product.category,
        )


class Cart(BaseModel):
    """Ordered cart lines, unique by product id."""
    lines: List[CartLine] = Field(default_factory=list)

    def find(self, product_id: Any) -> Optional[CartLine]:
        key = str(product_id)
        for line in self.lines:
            if line.product_id == key:
                return line
        return None

    @property
    def total_items(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.lines
