from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class OrderLookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    VERIFICATION_FAILED = "verification_failed"
    IDENTITY_REQUIRED = "identity_required"


class TrackingInfo(BaseModel):
    number: str
    url: Optional[str] = None


class OrderLineItem(BaseModel):
    id: str
    title: str
    quantity: int
    price: str
    imageUrl: Optional[str] = None


class OrderSummary(BaseModel):
    id: str
    name: str
    financialStatus: str
    fulfillmentStatus: str
    tracking: list[TrackingInfo] = Field(default_factory=list)
    estimatedDelivery: Optional[str] = None
    lineItems: list[OrderLineItem] = Field(default_factory=list)
    shippingCity: Optional[str] = None
    shippingCountry: Optional[str] = None
    createdAt: str


class OrderLookup(BaseModel):
    status: OrderLookupStatus
    message: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    order: Optional[OrderSummary] = None

    @property
    def found(self) -> bool:
        return self.status is OrderLookupStatus.FOUND


class ReturnEligibilityItem(BaseModel):
    lineItemId: str
    title: str
    eligible: bool
    reason: str


class ReturnEligibility(BaseModel):
    items: list[ReturnEligibilityItem] = Field(default_factory=list)


class CancelOrderOutcome(BaseModel):
    success: bool
    message: str


class ReturnSubmission(BaseModel):
    success: bool
    referenceNumber: str
    message: str
