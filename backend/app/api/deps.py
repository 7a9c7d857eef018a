import hmac
import re
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.database import get_database
from app.services.cart_service import CartService
from app.services.catalog_service import CachedCatalogService, CatalogService
from app.services.checkout_service import CheckoutOrchestrator
from app.services.order_board import OrderBoard
from app.services.order_service import OrderService
from app.services.settings_service import SiteSettingsService
from app.storage.kv_store import FileKeyValueStore, KeyValueStore
from app.utils.cache import CacheManager

_SESSION_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# Shared process-wide state
_store: Optional[KeyValueStore] = None
_cache_store: Optional[KeyValueStore] = None
_cache: Optional[CacheManager] = None
_order_board: Optional[OrderBoard] = None


def get_store() -> KeyValueStore:
    """Key-value store holding cart snapshots."""
    global _store
    if _store is None:
        _store = FileKeyValueStore(settings.CART_STORAGE_PATH)
    return _store


def get_cache_store() -> KeyValueStore:
    """Key-value store holding cache entries, kept apart from cart snapshots."""
    global _cache_store
    if _cache_store is None:
        _cache_store = FileKeyValueStore(settings.CACHE_STORAGE_PATH)
    return _cache_store


def get_cache(store: KeyValueStore = Depends(get_cache_store)) -> CacheManager:
    global _cache
    if _cache is None:
        _cache = CacheManager(store)
    return _cache


async def get_db() -> AsyncIOMotorDatabase:
    """Dependency to get database instance."""
    return get_database()


async def get_cart_session(x_cart_session: Optional[str] = Header(default=None)) -> str:
    """
    Cart session id from the X-Cart-Session header.

    Raises:
        HTTPException: If the header is missing or malformed
    """
    if not x_cart_session or not _SESSION_PATTERN.match(x_cart_session):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Cart-Session header is required (letters, digits, '-' or '_', max 64)"
        )
    return x_cart_session


def get_cart_service(
    session_id: str = Depends(get_cart_session),
    store: KeyValueStore = Depends(get_store)
) -> CartService:
    """Cart for the session, rehydrated from the store."""
    cart = CartService(store, storage_key=f"{settings.CART_STORAGE_KEY}:{session_id}")
    cart.rehydrate()
    return cart


def get_catalog_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_cached_catalog(
    catalog: CatalogService = Depends(get_catalog_service),
    cache: CacheManager = Depends(get_cache)
) -> CachedCatalogService:
    return CachedCatalogService(catalog, cache)


def get_order_service(db: AsyncIOMotorDatabase = Depends(get_db)) -> OrderService:
    return OrderService(db)


def get_order_board(order_service: OrderService = Depends(get_order_service)) -> OrderBoard:
    """Admin order board shared by every dashboard request."""
    global _order_board
    if _order_board is None:
        _order_board = OrderBoard(order_service)
    else:
        _order_board.order_service = order_service
    return _order_board


def get_settings_service(
    db: AsyncIOMotorDatabase = Depends(get_db),
    cache: CacheManager = Depends(get_cache)
) -> SiteSettingsService:
    return SiteSettingsService(db, cache)


def get_checkout_orchestrator(
    cart: CartService = Depends(get_cart_service),
    catalog: CatalogService = Depends(get_catalog_service),
    orders: OrderService = Depends(get_order_service),
    site_settings: SiteSettingsService = Depends(get_settings_service)
) -> CheckoutOrchestrator:
    return CheckoutOrchestrator(cart=cart, catalog=catalog, orders=orders, pricing=site_settings)


async def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """
    Dependency to ensure the caller holds the admin key.

    Raises:
        HTTPException: If admin access is not configured or the key is wrong
    """
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access is not configured"
        )
    if not x_admin_key or not hmac.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin key"
        )
