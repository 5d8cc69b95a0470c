from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.models.enums import OrderStatus, PaymentMethod, PaymentStatus


def _money(value: Decimal) -> str:
    return format(value.quantize(Decimal("0.01")), "f")


class OrderItemCreateRequest(BaseModel):
    product_id: int = Field(gt=0)
    quantity: int = Field(gt=0)


class OrderCreateRequest(BaseModel):
    user_id: int | None = Field(default=None, gt=0)
    total_amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    shipping_address: str = Field(min_length=1, max_length=512)
    # Validated by the order service so unsupported methods map to InvalidPaymentMethod.
    payment_method: str
    status: OrderStatus | None = None
    placed_at: datetime | None = None
    items: list[OrderItemCreateRequest] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "total_amount": "1499.00",
                    "shipping_address": "12 MG Road, Bengaluru 560001",
                    "payment_method": "UPI",
                    "items": [{"product_id": 11, "quantity": 2}],
                }
            ]
        }
    }

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        if value is None or value == "":
            return None
        return OrderStatus.parse(value)


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return OrderStatus.parse(value)


class PaymentStatusUpdateRequest(BaseModel):
    status: PaymentStatus

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, value):
        return PaymentStatus.parse(value)


class OrderResponse(BaseModel):
    id: int
    user_id: int
    total_amount: Decimal
    shipping_address: str
    status: OrderStatus
    placed_at: datetime
    payment_method: PaymentMethod
    payment_reference: str | None = None

    model_config = {"from_attributes": True}

    @field_serializer("total_amount")
    def serialize_amount(self, value: Decimal) -> str:
        return _money(value)


class OrderWithItemRow(BaseModel):
    order_id: int
    total_amount: Decimal
    shipping_address: str
    status: OrderStatus
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal

    @field_serializer("total_amount", "unit_price")
    def serialize_amount(self, value: Decimal) -> str:
        return _money(value)


class DeliveryEstimateResponse(BaseModel):
    buyer_id: int
    product_id: int
    estimated_days: int


class ExpirySweepResponse(BaseModel):
    expired: int
