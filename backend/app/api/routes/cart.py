import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from app.api.deps import get_cart_service, get_catalog_service
from app.schemas.cart import AddToCartRequest, CartResponse, REASON_NO_LONGER_AVAILABLE, UpdateCartItemRequest
from app.services.cart_service import CartService
from app.services.catalog_service import CatalogService
from app.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=CartResponse)
async def get_cart(cart: CartService = Depends(get_cart_service)):
    """
    Get the session's cart as last persisted.
    """
    return CartResponse.from_cart(cart.cart)


@router.post("/items", response_model=CartResponse)
async def add_to_cart(
    request: AddToCartRequest,
    cart: CartService = Depends(get_cart_service),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    Add one unit of a product to the cart.

    A declined add (out of stock, already at the stock limit) is not an
    error: the cart is returned unchanged with `result.ok = false`.
    """
    product = await catalog.get_product(request.product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )

    result = await run_in_threadpool(cart.add_item, product)
    return CartResponse.from_cart(cart.cart, result=result)


@router.put("/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    cart: CartService = Depends(get_cart_service),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    Set the quantity of a cart line.

    Zero or less removes the line; quantities above current stock are
    reduced to the stock. A line whose product has been deleted is removed.
    """
    product = await catalog.get_product(product_id)
    if product is None:
        line = cart.cart.find(product_id)
        result = await run_in_threadpool(cart.remove_item, product_id)
        adjustments = [ReconciliationService.removal(line, REASON_NO_LONGER_AVAILABLE)] if line else []
        return CartResponse.from_cart(
            cart.cart,
            result=result.model_copy(update={"ok": False, "reason": REASON_NO_LONGER_AVAILABLE}),
            adjustments=adjustments
        )

    result = await run_in_threadpool(cart.update_quantity, product_id, request.quantity, product.stock)
    return CartResponse.from_cart(cart.cart, result=result)


@router.delete("/items/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    cart: CartService = Depends(get_cart_service)
):
    """
    Remove an item from the cart.
    """
    result = await run_in_threadpool(cart.remove_item, product_id)
    return CartResponse.from_cart(cart.cart, result=result)


@router.delete("", response_model=CartResponse)
async def clear_cart(cart: CartService = Depends(get_cart_service)):
    """
    Clear all items from the cart.
    """
    result = await run_in_threadpool(cart.clear)
    return CartResponse.from_cart(cart.cart, result=result)


@router.post("/reconcile", response_model=CartResponse)
async def reconcile_cart(
    cart: CartService = Depends(get_cart_service),
    catalog: CatalogService = Depends(get_catalog_service)
):
    """
    Re-check the cart against current stock.

    Lines for products that are gone or out of stock are removed, lines
    above current stock are reduced. Each change is listed in `notices`.
    """
    try:
        products = await catalog.list_products()
    except Exception as e:
        logger.error(f"Catalog fetch failed during cart refresh: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="We couldn't check current stock. Please try again."
        )

    outcome = ReconciliationService.reconcile(cart.cart, products)
    if outcome.changed:
        await run_in_threadpool(cart.apply, outcome)
    return CartResponse.from_cart(cart.cart, adjustments=outcome.adjustments)
