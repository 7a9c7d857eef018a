from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    """Schema for creating a product (admin)."""
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    stock: Optional[int] = Field(default=None, ge=0)  # None = not tracked
    category: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    gallery: List[str] = []
    is_new: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Tulip Fuzzy Bouquet",
                "price": "29.99",
                "stock": 8,
                "category": "Bouquet",
                "image": "https://example.com/tulip.jpg",
                "is_new": True
            }
        }

    def to_document(self) -> dict:
        document = self.model_dump()
        document["price"] = float(self.price)
        return document


class ProductUpdate(BaseModel):
    """
    Schema for updating a product (admin).

    Only fields present in the request are changed. An explicit
    `"stock": null` stops tracking stock for the product.
    """
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    gallery: Optional[List[str]] = None
    is_new: Optional[bool] = None

    def to_document(self) -> dict:
        document = self.model_dump(exclude_unset=True)
        # These fields can't be cleared; a null leaves them unchanged
        for field in ("name", "price", "gallery", "is_new"):
            if field in document and document[field] is None:
                del document[field]
        if "price" in document:
            document["price"] = float(document["price"])
        return document

