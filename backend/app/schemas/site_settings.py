from typing import Any
from pydantic import BaseModel


class SiteSettingUpdate(BaseModel):
    """Schema for replacing one site setting's value."""
    value: Any

    class Config:
        json_schema_extra = {
            "example": {
                "value": {"shippingFee": 350, "taxRate": 0.08}
            }
        }


class SiteSettingResponse(BaseModel):
    key: str
    value: Any
