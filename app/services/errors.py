"""Errors raised by the order service layer.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with; ``app.main`` registers one handler for the whole family.
"""

from fastapi import status


class OrderServiceError(Exception):
    code = "ORDER_SERVICE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidPaymentMethod(OrderServiceError):
    code = "INVALID_PAYMENT_METHOD"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, method: str | None):
        super().__init__(f"Payment method not supported: {method}. Allowed: COD, UPI")
        self.method = method


class ResourceNotFound(OrderServiceError):
    code = "RESOURCE_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class OrderAlreadyProcessed(OrderServiceError):
    code = "ORDER_ALREADY_PROCESSED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, order_id: int, order_status):
        super().__init__(
            f"Order {order_id} is already {order_status.value} and can no longer be cancelled"
        )
        self.order_id = order_id
        self.order_status = order_status


class InsufficientStock(OrderServiceError):
    code = "INSUFFICIENT_STOCK"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Only {available} unit(s) of product {product_id} in stock, {requested} requested"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class PersistenceFailure(OrderServiceError):
    code = "PERSISTENCE_FAILURE"


class PaymentNotFound(OrderServiceError):
    code = "PAYMENT_NOT_FOUND"

    def __init__(self, order_id: int):
        super().__init__(f"Payment not found for order {order_id}")
        self.order_id = order_id
