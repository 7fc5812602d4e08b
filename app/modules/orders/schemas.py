from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum

from app.core.types import Money


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.DELIVERED, OrderStatus.CANCELLED})


class OrderItem(BaseModel):
    name: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    price: Money

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


def compute_total(items: List[OrderItem]) -> Decimal:
    total = sum((item.line_total for item in items), Decimal("0"))
    return total.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class OrderCreate(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    special_instructions: Optional[str] = None
    items: List[OrderItem] = Field(min_length=1)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None
    special_instructions: Optional[str] = None
    items: List[OrderItem] = []
    total_amount: Money
    status: OrderStatus = OrderStatus.PENDING
    is_read: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
