from decimal import Decimal
from typing import Any, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.money import to_decimal


class Product(BaseModel):
    """
    Canonical product snapshot as seen by the cart and checkout.

    `stock` of None means inventory is not tracked (unbounded).
    """
    id: str
    name: str
    price: Decimal = Field(ge=0)
    stock: Optional[int] = Field(default=None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    gallery: List[str] = Field(default_factory=list)
    is_new: bool = False

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "1",
                "name": "Rose Fuzzy Bouquet",
                "price": "24.99",
                "stock": 12,
                "category": "Bouquet",
                "image": "https://example.com/rose.jpg",
                "is_new": True
            }
        }

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @property
    def is_unbounded(self) -> bool:
        return self.stock is None

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock is not None and self.stock <= 0

    @classmethod
    def from_document(cls, document: dict) -> "Product":
        """
        Normalize a raw catalog document into a Product.

        Accepts `_id`/`id`, `is_new`/`isNew` and `image`/`image_url`/`images`.
        Negative stock is treated as 0; missing stock means unbounded.
        """
        product_id = document.get("id")
        if product_id is None:
            product_id = document.get("_id")
        if product_id is None:
            raise ValueError("Product document has no id")

        gallery = list(document.get("gallery") or [])
        images = list(document.get("images") or [])
        image = document.get("image") or document.get("image_url")
        if not image and images:
            image = images[0]
        for extra in images:
            if extra != image and extra not in gallery:
                gallery.append(extra)

        stock = document.get("stock")
        if stock is not None:
            stock = max(int(stock), 0)

        is_new = document.get("is_new")
        if is_new is None:
            is_new = document.get("isNew", False)

        return cls(
            id=product_id,
            name=document.get("name") or document.get("title") or "",
            price=document.get("price", 0),
            stock=stock,
            category=document.get("category"),
            description=document.get("description"),
            image=image,
            gallery=gallery,
            is_new=bool(is_new),
        )
