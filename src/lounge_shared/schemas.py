"""
Pydantic schemas for request validation.
"""

import datetime as dt

from pydantic import BaseModel, EmailStr, Field, field_validator

from lounge_shared.constants import (
    ActorScope,
    OrderStatus,
    PaymentMethod,
    ReservationStatus,
    TableLocation,
)
from lounge_shared.validation import ValidationError, validate_time_slot


class AvailabilityQuery(BaseModel):
    date: dt.date
    time_slot: str
    party_size: int = Field(..., ge=1)
    location: TableLocation | None = None

    @field_validator("time_slot")
    @classmethod
    def validate_slot(cls, v):
        try:
            return validate_time_slot(v)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc


class ReservationForm(BaseModel):
    table_id: int
    reservation_date: dt.date
    time_slot: str
    party_size: int = Field(..., ge=1)
    customer_name: str = Field(..., min_length=1, max_length=120)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(None, max_length=40)
    special_requests: str | None = None
    pre_order_items: list[str] = Field(default_factory=list)

    @field_validator("time_slot")
    @classmethod
    def validate_slot(cls, v):
        try:
            return validate_time_slot(v)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("customer_name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Customer name is required")
        return v


class CreateReservationRequest(ReservationForm):
    user_id: str = Field(..., min_length=1, max_length=128)


class ReservationStatusRequest(BaseModel):
    status: ReservationStatus
    notes: str | None = None
    actor_scope: ActorScope = ActorScope.STAFF


class CancelReservationRequest(BaseModel):
    reason: str | None = None
    actor_scope: ActorScope = ActorScope.CUSTOMER


class OrderItemRequest(BaseModel):
    menu_item_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    unit_price: float = Field(..., ge=0)
    quantity: int = Field(default=1, ge=1)
    category: str | None = None
    note: str | None = None


class CreateOrderRequest(BaseModel):
    table_number: int = Field(..., ge=1)
    reservation_id: int | None = None
    items: list[OrderItemRequest] = Field(..., min_length=1)
    customer_name: str | None = Field(None, max_length=120)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(None, max_length=40)
    special_instructions: str | None = None
    payment_method: PaymentMethod | None = None

    @property
    def total_amount(self) -> float:
        return round(sum(item.unit_price * item.quantity for item in self.items), 2)


class OrderStatusRequest(BaseModel):
    status: OrderStatus
