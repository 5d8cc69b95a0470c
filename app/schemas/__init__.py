from app.schemas.orders import (
    DeliveryEstimateResponse,
    ExpirySweepResponse,
    OrderCreateRequest,
    OrderItemCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderWithItemRow,
    PaymentStatusUpdateRequest,
)

__all__ = [
    "DeliveryEstimateResponse",
    "ExpirySweepResponse",
    "OrderCreateRequest",
    "OrderItemCreateRequest",
    "OrderResponse",
    "OrderStatusUpdateRequest",
    "OrderWithItemRow",
    "PaymentStatusUpdateRequest",
]
