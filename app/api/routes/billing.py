"""
Checkout and premium status routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.core.errors import ValidationError
from app.dependencies.services import get_checkout_service, get_entitlement_store
from app.schemas.billing import PremiumStatusResponse, SubscribeRequest, SubscribeResponse
from app.services.checkout import CheckoutService
from app.services.entitlements import EntitlementStore

router = APIRouter()


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    body: SubscribeRequest,
    request: Request,
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """
    Initialize a Paystack transaction and return the hosted payment page URL.
    The client redirects the customer to authorization_url.
    """
    result = await checkout.initialize(body, client_ip(request))
    return SubscribeResponse(
        authorization_url=result.authorization_url,
        reference=result.reference,
        amount=result.amount_minor,
        currency=result.currency,
    )


@router.get("/is-premium", response_model=PremiumStatusResponse)
async def is_premium(
    email: Optional[str] = Query(None),
    device_id: Optional[str] = Query(None, alias="deviceId"),
    store: EntitlementStore = Depends(get_entitlement_store),
):
    if not email:
        raise ValidationError("Email is required")
    return PremiumStatusResponse(email=email, is_premium=store.is_premium(email, device_id))
