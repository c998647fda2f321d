from pydantic import BaseModel, Field
from typing import Optional
import uuid


class CheckoutRequest(BaseModel):
    session_id: uuid.UUID = Field(..., description="Session to pay for")


class CheckoutResponse(BaseModel):
    url: str = Field(..., description="Hosted checkout URL")


class PayPalOrderRequest(BaseModel):
    session_id: uuid.UUID = Field(..., description="Session to pay for")


class PayPalOrderResponse(BaseModel):
    order_id: str
    status: str
    approve_url: Optional[str] = None


class PayPalCaptureRequest(BaseModel):
    order_id: str = Field(..., min_length=1, description="PayPal order ID")
    session_id: uuid.UUID = Field(..., description="Session the order pays for")


class PayPalCaptureResponse(BaseModel):
    success: bool
    status: str
    capture_id: Optional[str] = None
    session_confirmed: bool = False


class ConnectAccountResponse(BaseModel):
    url: str = Field(..., description="Stripe-hosted onboarding URL")
    account_id: str


class ConnectStatusResponse(BaseModel):
    has_account: bool
    onboarding_complete: bool
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
