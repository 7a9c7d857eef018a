import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel, Field

from app.core.config import settings
from app.utils.cache import CacheManager, cached_fetch
from app.utils.money import to_decimal

logger = logging.getLogger(__name__)

SETTINGS_CACHE_KEY = "site_settings"
GENERAL_KEY = "general"


class ShopPricing(BaseModel):
    """Pricing inputs used at checkout."""
    shipping_fee: Decimal = Field(ge=0)
    tax_rate: Decimal = Field(ge=0)


class SiteSettingsService:
    """Service for the key/value `site_settings` collection."""

    def __init__(self, db: AsyncIOMotorDatabase, cache: Optional[CacheManager] = None):
        self.db = db
        self.cache = cache

    async def _fetch_settings(self) -> Dict[str, Any]:
        cursor = self.db.site_settings.find({})
        rows = await cursor.to_list(length=None)
        # Fold key/value rows into one object
        return {row["key"]: row.get("value") for row in rows if "key" in row}

    async def get_site_settings(self) -> Dict[str, Any]:
        if self.cache is None:
            return await self._fetch_settings()
        return await cached_fetch(self.cache, SETTINGS_CACHE_KEY, self._fetch_settings)

    async def get_site_setting(self, key: str) -> Optional[Any]:
        site_settings = await self.get_site_settings()
        return site_settings.get(key)

    async def update_site_setting(self, key: str, value: Any) -> dict:
        """
        Upsert one setting and drop the cached copy.

        Raises ValueError if `general` carries an unreadable shipping fee or tax rate.
        """
        if key == GENERAL_KEY:
            self.pricing_from(value)
        await self.db.site_settings.update_one(
            {"key": key},
            {"$set": {"key": key, "value": value}},
            upsert=True
        )
        if self.cache is not None:
            self.cache.delete(SETTINGS_CACHE_KEY)
        return {"key": key, "value": value}

    @staticmethod
    def pricing_from(general: Any) -> ShopPricing:
        """Shipping fee and tax rate from a `general` setting, falling back to configured defaults."""
        if general is None:
            general = {}
        if not isinstance(general, dict):
            raise ValueError("general setting must be an object")
        shipping_fee = general.get("shippingFee", general.get("shipping_fee"))
        tax_rate = general.get("taxRate", general.get("tax_rate"))
        return ShopPricing(
            shipping_fee=to_decimal(shipping_fee) if shipping_fee is not None else settings.DEFAULT_SHIPPING_FEE,
            tax_rate=to_decimal(tax_rate) if tax_rate is not None else settings.DEFAULT_TAX_RATE,
        )

    async def get_pricing(self) -> ShopPricing:
        return self.pricing_from(await self.get_site_setting(GENERAL_KEY))


class StaticPricingProvider:
    """Fixed pricing, for offline sessions and tests."""

    def __init__(self, shipping_fee: Any = None, tax_rate: Any = None):
        self.pricing = SiteSettingsService.pricing_from({"shippingFee": shipping_fee, "taxRate": tax_rate})

    async def get_pricing(self) -> ShopPricing:
        return self.pricing
