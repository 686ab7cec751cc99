from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class SubscribeRequest(BaseModel):
    email: str = Field(..., min_length=3)
    # Legacy clients send a fixed amount in major units; newer ones send a plan
    amount: Optional[Decimal] = Field(None, gt=0)
    plan: Optional[str] = None
    device_id: Optional[str] = Field(None, alias="deviceId")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    country_code: Optional[str] = Field(None, alias="countryCode", min_length=2, max_length=2)

    class Config:
        populate_by_name = True


class SubscribeResponse(BaseModel):
    authorization_url: str
    reference: Optional[str] = None
    amount: int
    currency: str


class PremiumStatusResponse(BaseModel):
    email: str
    is_premium: bool = Field(..., alias="isPremium")

    class Config:
        populate_by_name = True
