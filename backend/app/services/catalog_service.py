"""
Catalog provider backed by the `products` collection.

Raw documents are normalized into `Product` here, so nothing past this
boundary deals with alternate field names.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate
from app.utils.cache import CacheManager, cached_fetch

logger = logging.getLogger(__name__)

CATALOG_CACHE_KEY = "products"


def _product_query(product_id: str) -> dict:
    try:
        return {"_id": ObjectId(product_id)}
    except (InvalidId, TypeError):
        return {"_id": product_id}


class CatalogService:
    """Service for reading and editing the product catalog."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    @staticmethod
    def normalize(documents: List[dict]) -> List[Product]:
        """Normalize raw documents, skipping ones that can't be read."""
        products = []
        for document in documents:
            try:
                products.append(Product.from_document(document))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping malformed product {document.get('_id', document.get('id'))}: {e}")
        return products

    async def list_products(self) -> List[Product]:
        """Fetch every product, newest first."""
        cursor = self.db.products.find({}).sort("created_at", -1)
        documents = await cursor.to_list(length=None)
        return self.normalize(documents)

    async def get_product(self, product_id: str) -> Optional[Product]:
        document = await self.db.products.find_one(_product_query(product_id))
        if not document:
            return None
        return Product.from_document(document)

    async def create_product(self, product: ProductCreate) -> Product:
        now = datetime.now(timezone.utc)
        document = product.to_document()
        document["created_at"] = now
        document["updated_at"] = now

        result = await self.db.products.insert_one(document)
        document["_id"] = result.inserted_id
        logger.info(f"Product {result.inserted_id} created: {product.name}")
        return Product.from_document(document)

    async def update_product(self, product_id: str, updates: ProductUpdate) -> Optional[Product]:
        """Apply the fields present in `updates`. Returns None if the product doesn't exist."""
        update_data = updates.to_document()
        update_data["updated_at"] = datetime.now(timezone.utc)

        result = await self.db.products.update_one(
            _product_query(product_id),
            {"$set": update_data}
        )
        if result.matched_count == 0:
            return None

        logger.info(f"Product {product_id} updated: {', '.join(k for k in update_data if k != 'updated_at')}")
        return await self.get_product(product_id)

    async def delete_product(self, product_id: str) -> bool:
        result = await self.db.products.delete_one(_product_query(product_id))
        if result.deleted_count == 0:
            return False
        logger.info(f"Product {product_id} deleted")
        return True


class CachedCatalogService:
    """Catalog reads through the TTL cache. For browsing, not for checkout."""

    def __init__(self, catalog: CatalogService, cache: CacheManager):
        self.catalog = catalog
        self.cache = cache

    async def list_products(self) -> List[Product]:
        async def fetch():
            products = await self.catalog.list_products()
            return [product.model_dump(mode="json") for product in products]

        data = await cached_fetch(self.cache, CATALOG_CACHE_KEY, fetch)
        return [Product.model_validate(item) for item in data]

    async def list_new_arrivals(self, limit: int = 4) -> List[Product]:
        products = await self.list_products()
        return [product for product in products if product.is_new][:limit]

    def invalidate(self) -> None:
        """Drop cached listings after the catalog is edited."""
        self.cache.invalidate(CATALOG_CACHE_KEY)
