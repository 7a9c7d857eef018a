from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_cached_catalog, get_catalog_service, require_admin
from app.models.product import Product
from app.schemas.product import ProductCreate, ProductUpdate
from app.services.catalog_service import CachedCatalogService, CatalogService

router = APIRouter()


@router.get("", response_model=List[Product])
async def get_products(
    category: Optional[str] = None,
    new_only: bool = False,
    in_stock: Optional[bool] = None,
    catalog: CachedCatalogService = Depends(get_cached_catalog)
):
    """
    Get the product catalog.

    Filters:
    - category: Filter by product category
    - new_only: Only new arrivals
    - in_stock: Only products that can currently be added to the cart
    """
    products = await catalog.list_products()

    if category:
        products = [p for p in products if (p.category or "").lower() == category.lower()]
    if new_only:
        products = [p for p in products if p.is_new]
    if in_stock is not None:
        products = [p for p in products if (not p.is_out_of_stock) == in_stock]

    return products


@router.get("/new-arrivals", response_model=List[Product])
async def get_new_arrivals(
    limit: int = Query(4, ge=1, le=50),
    catalog: CachedCatalogService = Depends(get_cached_catalog)
):
    """Newest products flagged as new arrivals."""
    return await catalog.list_new_arrivals(limit)


@router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str,
    catalog: CatalogService = Depends(get_catalog_service)
):
    """Get a single product with current stock."""
    product = await catalog.get_product(product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    return product


@router.post(
    "",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)]
)
async def create_product(
    product: ProductCreate,
    catalog: CatalogService = Depends(get_catalog_service),
    cached_catalog: CachedCatalogService = Depends(get_cached_catalog)
):
    """
    Create a new product (admin only).
    """
    created = await catalog.create_product(product)
    cached_catalog.invalidate()
    return created


@router.put("/{product_id}", response_model=Product, dependencies=[Depends(require_admin)])
async def update_product(
    product_id: str,
    product_update: ProductUpdate,
    catalog: CatalogService = Depends(get_catalog_service),
    cached_catalog: CachedCatalogService = Depends(get_cached_catalog)
):
    """
    Update a product (admin only).

    Stock edits take effect for carts at their next reconcile or checkout.
    """
    updated = await catalog.update_product(product_id, product_update)
    if not updated:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    cached_catalog.invalidate()
    return updated


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)]
)
async def delete_product(
    product_id: str,
    catalog: CatalogService = Depends(get_catalog_service),
    cached_catalog: CachedCatalogService = Depends(get_cached_catalog)
):
    """
    Delete a product (admin only).
    """
    if not await catalog.delete_product(product_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )
    cached_catalog.invalidate()
    return None
