from datetime import datetime, timedelta, timezone

from fastapi import status

from app.models.order import Order
from app.models.payment import Payment
from tests.conftest import headers_for


def _create(client, headers, **overrides):
    body = {
        "total_amount": "1499.00",
        "shipping_address": "12 MG Road, Bengaluru",
        "payment_method": "UPI",
    }
    body.update(overrides)
    return client.post("/api/orders", json=body, headers=headers)


def test_create_order_success(client, buyer, buyer_headers, db):
    """Test successful order creation returns the persisted order."""
    response = _create(client, buyer_headers, payment_method="upi")

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert response.headers["location"] == f"/api/orders/{data['id']}"
    assert data["user_id"] == buyer.id
    assert data["status"] == "PENDING"
    assert data["payment_method"] == "UPI"
    assert data["total_amount"] == "1499.00"
    assert data["placed_at"]

    payment = db.query(Payment).filter(Payment.order_id == data["id"]).one()
    assert payment.status.value == "PENDING"


def test_create_order_with_items(client, buyer_headers, products, db):
    kettle, mug = products
    response = _create(
        client,
        buyer_headers,
        items=[{"product_id": kettle.id, "quantity": 2}, {"product_id": mug.id, "quantity": 1}],
    )

    assert response.status_code == status.HTTP_201_CREATED
    db.refresh(kettle)
    assert kettle.stock == 8


def test_create_order_insufficient_stock(client, buyer_headers, products, db):
    kettle, _ = products
    response = _create(client, buyer_headers, items=[{"product_id": kettle.id, "quantity": 50}])

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "INSUFFICIENT_STOCK"
    assert db.query(Order).count() == 0


def test_create_order_unsupported_payment_method(client, buyer_headers, db):
    """Test order creation with unsupported payment method."""
    response = _create(client, buyer_headers, payment_method="CASH")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["code"] == "INVALID_PAYMENT_METHOD"
    assert db.query(Order).count() == 0
    assert db.query(Payment).count() == 0


def test_create_order_invalid_status(client, buyer_headers):
    response = _create(client, buyer_headers, status="LOST")
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_order_empty_status_defaults_to_pending(client, buyer_headers):
    response = _create(client, buyer_headers, status="")
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["status"] == "PENDING"


def test_create_order_buyer_cannot_order_for_someone_else(client, buyer, buyer2, buyer_headers):
    response = _create(client, buyer_headers, user_id=buyer2.id)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["user_id"] == buyer.id


def test_create_order_admin_on_behalf_of_buyer(client, buyer, admin_headers):
    response = _create(client, admin_headers, user_id=buyer.id, payment_method="cod")
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["user_id"] == buyer.id
    assert response.json()["payment_method"] == "COD"


def test_create_order_seller_forbidden(client, seller_headers):
    response = _create(client, seller_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_create_order_unauthorized(client):
    """Test order creation without authentication."""
    response = _create(client, {})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_update_status_by_seller_syncs_payment(client, buyer_headers, seller_headers, db):
    order_id = _create(client, buyer_headers, payment_method="COD").json()["id"]

    response = client.put(
        f"/api/orders/{order_id}/status",
        json={"status": "delivered"},
        headers=seller_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "DELIVERED"
    payment = db.query(Payment).filter(Payment.order_id == order_id).one()
    db.refresh(payment)
    assert payment.status.value == "PAID"


def test_update_status_buyer_forbidden(client, buyer_headers):
    order_id = _create(client, buyer_headers).json()["id"]
    response = client.put(
        f"/api/orders/{order_id}/status",
        json={"status": "SHIPPED"},
        headers=buyer_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_update_status_invalid_value(client, buyer_headers, admin_headers):
    order_id = _create(client, buyer_headers).json()["id"]
    response = client.put(
        f"/api/orders/{order_id}/status",
        json={"status": "TELEPORTED"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_update_status_unknown_order(client, admin_headers):
    response = client.put("/api/orders/999/status", json={"status": "SHIPPED"}, headers=admin_headers)
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["code"] == "PERSISTENCE_FAILURE"


def test_update_payment_status_moves_order(client, buyer_headers, admin_headers):
    order_id = _create(client, buyer_headers).json()["id"]

    response = client.put(
        f"/api/orders/{order_id}/payment-status",
        json={"status": "paid"},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "PROCESSING"


def test_cancel_paid_order_is_refunded(client, buyer_headers, admin_headers):
    order_id = _create(client, buyer_headers).json()["id"]
    client.put(f"/api/orders/{order_id}/payment-status", json={"status": "PAID"}, headers=admin_headers)

    response = client.post(f"/api/orders/{order_id}/cancel", headers=buyer_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "REFUNDED"


def test_cancel_shipped_order_conflict(client, buyer_headers, seller_headers):
    order_id = _create(client, buyer_headers).json()["id"]
    client.put(f"/api/orders/{order_id}/status", json={"status": "SHIPPED"}, headers=seller_headers)

    response = client.post(f"/api/orders/{order_id}/cancel", headers=buyer_headers)

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "ORDER_ALREADY_PROCESSED"
    assert "SHIPPED" in response.json()["detail"]


def test_cancel_other_buyers_order_not_found(client, buyer_headers, buyer2):
    order_id = _create(client, buyer_headers).json()["id"]
    response = client.post(f"/api/orders/{order_id}/cancel", headers=headers_for(buyer2))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_get_order(client, buyer_headers, seller_headers, buyer2):
    order_id = _create(client, buyer_headers).json()["id"]

    assert client.get(f"/api/orders/{order_id}", headers=buyer_headers).status_code == status.HTTP_200_OK
    assert client.get(f"/api/orders/{order_id}", headers=seller_headers).status_code == status.HTTP_200_OK
    other = client.get(f"/api/orders/{order_id}", headers=headers_for(buyer2))
    assert other.status_code == status.HTTP_404_NOT_FOUND


def test_get_order_not_found(client, admin_headers):
    response = client.get("/api/orders/99999", headers=admin_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["code"] == "RESOURCE_NOT_FOUND"


def test_my_orders_most_recent_first(client, buyer_headers):
    now = datetime.now(timezone.utc)
    older = _create(client, buyer_headers, placed_at=(now - timedelta(hours=2)).isoformat()).json()["id"]
    newer = _create(client, buyer_headers, placed_at=(now - timedelta(hours=1)).isoformat()).json()["id"]

    response = client.get("/api/orders/me", headers=buyer_headers)

    assert response.status_code == status.HTTP_200_OK
    assert [o["id"] for o in response.json()] == [newer, older]


def test_list_all_orders_admin_only(client, buyer_headers, admin_headers, buyer2):
    _create(client, buyer_headers)
    _create(client, headers_for(buyer2))

    assert client.get("/api/orders", headers=buyer_headers).status_code == status.HTTP_403_FORBIDDEN
    response = client.get("/api/orders", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert len(response.json()) == 2


def test_orders_by_user(client, buyer, buyer2, buyer_headers, admin_headers):
    _create(client, buyer_headers)

    assert len(client.get(f"/api/orders/user/{buyer.id}", headers=admin_headers).json()) == 1
    response = client.get(f"/api/orders/user/{buyer2.id}", headers=buyer_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_orders_with_items(client, buyer, buyer_headers, products):
    kettle, _ = products
    assert client.get(f"/api/orders/user/{buyer.id}/items", headers=buyer_headers).status_code == 404

    order_id = _create(client, buyer_headers, items=[{"product_id": kettle.id, "quantity": 1}]).json()["id"]
    response = client.get(f"/api/orders/user/{buyer.id}/items", headers=buyer_headers)

    assert response.status_code == status.HTTP_200_OK
    rows = response.json()
    assert rows == [
        {
            "order_id": order_id,
            "total_amount": "1499.00",
            "shipping_address": "12 MG Road, Bengaluru",
            "status": "PENDING",
            "product_id": kettle.id,
            "product_name": "Kettle",
            "quantity": 1,
            "unit_price": "799.00",
        }
    ]


def test_delete_order(client, buyer_headers, admin_headers, db):
    order_id = _create(client, buyer_headers).json()["id"]

    assert client.delete(f"/api/orders/{order_id}", headers=buyer_headers).status_code == 403
    response = client.delete(f"/api/orders/{order_id}", headers=admin_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert db.query(Payment).count() == 0
    again = client.delete(f"/api/orders/{order_id}", headers=admin_headers)
    assert again.status_code == status.HTTP_404_NOT_FOUND


def test_estimate_delivery(client, buyer, buyer_headers, products):
    kettle, _ = products
    response = client.get(
        "/api/orders/estimate",
        params={"buyer_id": buyer.id, "product_id": kettle.id},
        headers=buyer_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"buyer_id": buyer.id, "product_id": kettle.id, "estimated_days": 5}


def test_expire_endpoint(client, buyer_headers, admin_headers):
    stale_at = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    order_id = _create(client, buyer_headers, placed_at=stale_at).json()["id"]

    assert client.post("/api/orders/expire", headers=buyer_headers).status_code == 403
    response = client.post("/api/orders/expire", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"expired": 1}
    assert client.get(f"/api/orders/{order_id}", headers=admin_headers).json()["status"] == "EXPIRED"
