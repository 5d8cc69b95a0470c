from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.dependencies import AdminOnly, AnyRole, BuyerOrAdmin, StaffOnly, get_order_service
from app.models import Order, User, UserRole
from app.schemas.orders import (
    DeliveryEstimateResponse,
    ExpirySweepResponse,
    OrderCreateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderWithItemRow,
    PaymentStatusUpdateRequest,
)
from app.services.order_service import NewOrder, OrderItemRequest, OrderService

router = APIRouter()


def _ensure_visible(order: Order, user: User) -> Order:
    # Buyers only see their own orders; answer as if the order did not exist.
    if user.role is UserRole.BUYER and order.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
)
def create_order(
    body: OrderCreateRequest,
    response: Response,
    current_user: Annotated[User, Depends(BuyerOrAdmin)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    """
    Create an order with a companion PENDING payment.
    Buyers always order for themselves; admins may pass user_id.
    """
    user_id = current_user.id
    if current_user.role is UserRole.ADMIN and body.user_id is not None:
        user_id = body.user_id

    order = service.create_order(
        NewOrder(
            user_id=user_id,
            total_amount=body.total_amount,
            shipping_address=body.shipping_address,
            payment_method=body.payment_method,
            status=body.status,
            placed_at=body.placed_at,
            items=[OrderItemRequest(product_id=i.product_id, quantity=i.quantity) for i in body.items],
        )
    )
    response.headers["Location"] = f"/api/orders/{order.id}"
    return order


@router.get(
    "",
    response_model=list[OrderResponse],
    summary="List all orders",
)
def list_orders(
    _: Annotated[User, Depends(AdminOnly)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    return service.list_orders()


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def my_orders(
    current_user: Annotated[User, Depends(AnyRole)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    """Returns the current user's orders, most recent first."""
    return service.list_orders_for_user(current_user.id)


@router.get(
    "/estimate",
    response_model=DeliveryEstimateResponse,
    summary="Estimate delivery days",
)
def estimate_delivery(
    buyer_id: Annotated[int, Query(gt=0)],
    product_id: Annotated[int, Query(gt=0)],
    _: Annotated[User, Depends(AnyRole)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    days = service.estimate_delivery(buyer_id, product_id)
    return DeliveryEstimateResponse(buyer_id=buyer_id, product_id=product_id, estimated_days=days)


@router.post(
    "/expire",
    response_model=ExpirySweepResponse,
    summary="Expire stale pending orders now",
)
def expire_orders(
    _: Annotated[User, Depends(AdminOnly)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    return ExpirySweepResponse(expired=service.expire_stale_orders())


@router.get(
    "/user/{user_id}",
    response_model=list[OrderResponse],
    summary="List a user's orders",
)
def orders_by_user(
    user_id: int,
    current_user: Annotated[User, Depends(BuyerOrAdmin)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    if current_user.role is UserRole.BUYER and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot list another user's orders")
    return service.list_orders_for_user(user_id)


@router.get(
    "/user/{user_id}/items",
    response_model=list[OrderWithItemRow],
    summary="List a user's orders with their items",
)
def orders_with_items(
    user_id: int,
    current_user: Annotated[User, Depends(AnyRole)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    if current_user.role is UserRole.BUYER and current_user.id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Cannot list another user's orders")
    rows = service.list_orders_with_items(user_id)
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No orders found for user {user_id}",
        )
    return rows


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
def get_order(
    order_id: int,
    current_user: Annotated[User, Depends(AnyRole)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    return _ensure_visible(service.get_order(order_id), current_user)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
)
def update_order_status(
    order_id: int,
    body: OrderStatusUpdateRequest,
    _: Annotated[User, Depends(StaffOnly)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    """Set the order status; the payment status follows automatically."""
    return service.update_order_status(order_id, body.status)


@router.put(
    "/{order_id}/payment-status",
    response_model=OrderResponse,
    summary="Update payment status",
)
def update_payment_status(
    order_id: int,
    body: PaymentStatusUpdateRequest,
    _: Annotated[User, Depends(StaffOnly)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    """Set the payment status; the order status follows automatically."""
    return service.update_payment_status(order_id, body.status)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderResponse,
    summary="Cancel order",
)
def cancel_order(
    order_id: int,
    current_user: Annotated[User, Depends(AnyRole)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    """Cancel an order that has not shipped yet. Paid orders are refunded."""
    _ensure_visible(service.get_order(order_id), current_user)
    return service.cancel_order(order_id)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
)
def delete_order(
    order_id: int,
    _: Annotated[User, Depends(AdminOnly)],
    service: Annotated[OrderService, Depends(get_order_service)],
):
    service.delete_order(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
