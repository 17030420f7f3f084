from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import add_address, add_to_cart, auth_headers
from storefront import checkout, payments
from storefront.main import app
from storefront.models import Order, Payment, ProductVariant, User
from storefront.payments import PaymentGateway
from storefront.routers import contact_router


def _checkout(client, headers, address_id, method="PIX", **extra_headers):
    return client.post(
        "/api/orders/",
        data={"address_id": address_id, "payment_method": method},
        headers={**headers, **extra_headers},
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# -----------------------------
# Auth
# -----------------------------

def test_register_login_and_profile(client):
    response = client.post(
        "/api/auth/register",
        data={"name": "Clara", "email": "Clara@Example.com", "password": "segredo123"},
    )
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "CUSTOMER"

    duplicate = client.post(
        "/api/auth/register",
        data={"name": "Clara", "email": "clara@example.com", "password": "segredo123"},
    )
    assert duplicate.status_code == 400

    wrong = client.post("/api/auth/login", data={"email": "clara@example.com", "password": "nope"})
    assert wrong.status_code == 401

    login = client.post("/api/auth/login", data={"email": "clara@example.com", "password": "segredo123"})
    assert login.status_code == 200
    token = login.json()["token"]

    profile = client.get("/api/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.status_code == 200
    assert profile.json()["email"] == "clara@example.com"


@pytest.mark.parametrize("password", ["123", "x" * 73])
def test_register_rejects_bad_password_length(client, password):
    response = client.post(
        "/api/auth/register",
        data={"name": "Clara", "email": "clara@example.com", "password": password},
    )
    assert response.status_code == 400


def test_protected_routes_need_a_token(client):
    assert client.get("/api/cart/").status_code == 401
    assert client.get("/api/orders/").status_code == 401

    bad = client.get("/api/orders/", headers={"Authorization": "Bearer not-a-token"})
    assert bad.status_code == 401
    assert bad.json()["error"] == "unauthorized"


def test_admin_routes_reject_customers(client, customer_headers):
    response = client.get("/api/orders/admin/all", headers=customer_headers)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"
    assert client.get("/api/users/", headers=customer_headers).status_code == 403


def test_admin_user_management(client, db, admin, admin_headers, customer, address, watch):
    created = client.post(
        "/api/users/",
        json={
            "name": "Bia",
            "email": "bia@example.com",
            "password": "segredo123",
            "address": {"street": "Rua A", "city": "Recife", "state": "PE", "zip_code": "50000-000"},
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    user = created.json()["user"]
    assert user["addresses"][0]["is_default"] is True

    stats = client.get("/api/users/stats/overview", headers=admin_headers).json()["stats"]
    assert stats == {"total": 3, "admins": 1, "users": 2}

    assert client.delete(f"/api/users/{admin.id}", headers=admin_headers).status_code == 400

    # Users with orders are kept
    add_to_cart(db, customer, watch)
    checkout.place_order(db, customer.id, address.id, "PIX")
    refused = client.delete(f"/api/users/{customer.id}", headers=admin_headers)
    assert refused.status_code == 400
    assert client.delete(f"/api/users/{user['id']}", headers=admin_headers).status_code == 200


def test_addresses_keep_a_single_default(client, customer_headers):
    form = {"street": "Rua B", "city": "Natal", "state": "RN", "zip_code": "59000-000"}
    first = client.post("/api/addresses/", data={**form, "is_default": "true"}, headers=customer_headers)
    second = client.post("/api/addresses/", data=form, headers=customer_headers)
    assert first.status_code == second.status_code == 201

    second_id = second.json()["address"]["id"]
    client.patch(f"/api/addresses/{second_id}/default", headers=customer_headers)

    addresses = client.get("/api/addresses/", headers=customer_headers).json()["addresses"]
    assert [a["is_default"] for a in addresses] == [True, False]
    assert addresses[0]["id"] == second_id

    missing = client.post("/api/addresses/", data={"street": "Rua C"}, headers=customer_headers)
    assert missing.status_code == 400


# -----------------------------
# Orders
# -----------------------------

def test_checkout_over_http(client, db, customer, customer_headers, address, dress, dress_m):
    client.post(
        "/api/cart/add",
        data={"product_id": dress.id, "variant_id": dress_m.id, "quantity": 2},
        headers=customer_headers,
    )

    response = _checkout(client, customer_headers, address.id)

    assert response.status_code == 201
    order = response.json()["order"]
    assert Decimal(order["total"]) == Decimal("140.00")
    assert order["status"] == "PENDING"
    assert order["payment"]["status"] == "PENDING"
    assert order["items"][0]["quantity"] == 2

    cart = client.get("/api/cart/", headers=customer_headers).json()
    assert cart["count"] == 0

    mine = client.get(f"/api/orders/{order['id']}", headers=customer_headers)
    assert mine.status_code == 200
    assert mine.json()["order_number"] == order["order_number"]


def test_checkout_with_foreign_address_creates_nothing(client, db, customer, other_customer,
                                                       customer_headers, dress, dress_m):
    foreign = add_address(db, other_customer)
    add_to_cart(db, customer, dress, dress_m, quantity=1)

    response = _checkout(client, customer_headers, foreign.id)

    assert response.status_code == 404
    assert db.query(Order).count() == 0
    assert db.query(Payment).count() == 0
    db.expire_all()
    assert db.get(ProductVariant, dress_m.id).stock == 5


def test_checkout_insufficient_stock_body(client, db, customer, customer_headers, address, dress, dress_g):
    add_to_cart(db, customer, dress, dress_g, quantity=3)

    response = _checkout(client, customer_headers, address.id)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "insufficient_stock"
    assert body["product_name"] == "Vestido Floral"
    assert body["available"] == 1
    assert body["requested"] == 3


def test_checkout_validation_errors(client, db, customer, customer_headers, address, dress):
    assert _checkout(client, customer_headers, address.id).json()["error"] == "empty_cart"

    add_to_cart(db, customer, dress)
    missing = client.post("/api/orders/", data={"address_id": address.id}, headers=customer_headers)
    assert missing.status_code == 400
    assert missing.json()["error"] == "validation_error"


def test_checkout_replay_with_idempotency_key(client, db, customer, customer_headers, address, dress, dress_m):
    add_to_cart(db, customer, dress, dress_m, quantity=1)

    first = _checkout(client, customer_headers, address.id, **{"Idempotency-Key": "k-1"})
    second = _checkout(client, customer_headers, address.id, **{"Idempotency-Key": "k-1"})

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert db.query(Order).count() == 1


def test_order_list_is_paginated_and_private(client, db, customer, other_customer, customer_headers, address, watch):
    for _ in range(3):
        add_to_cart(db, customer, watch)
        checkout.place_order(db, customer.id, address.id, "PIX")

    page = client.get("/api/orders/?page=2&limit=2", headers=customer_headers).json()
    assert page["pagination"] == {"page": 2, "limit": 2, "total": 3, "pages": 2}
    assert len(page["orders"]) == 1

    theirs = client.get("/api/orders/", headers=auth_headers(other_customer)).json()
    assert theirs["orders"] == []

    order_id = db.query(Order).first().id
    assert client.get(f"/api/orders/{order_id}", headers=auth_headers(other_customer)).status_code == 404


def test_admin_order_lifecycle(client, admin_headers, dress):
    created = client.post(
        "/api/orders/admin",
        json={
            "user_id": "guest",
            "items": [{"product_id": dress.id, "quantity": 2}],
            "customerInfo": {"name": "Ana", "zipCode": "60000-000"},
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    order = created.json()["order"]
    assert order["customer_zip_code"] == "60000-000"
    assert Decimal(order["total"]) == Decimal("140.00")

    updated = client.patch(f"/api/orders/admin/{order['id']}", json={"status": "SHIPPED"}, headers=admin_headers)
    assert updated.json()["order"]["status"] == "SHIPPED"

    assert len(client.get("/api/orders/admin/all", headers=admin_headers).json()["orders"]) == 1
    assert client.delete(f"/api/orders/admin/{order['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/orders/admin/{order['id']}", headers=admin_headers).status_code == 404


# -----------------------------
# Payments
# -----------------------------

@pytest.fixture
def pending_payment_id(db, customer, address, dress, dress_m):
    add_to_cart(db, customer, dress, dress_m)
    order, _ = checkout.place_order(db, customer.id, address.id, "DEBIT_CARD")
    return order.payment.id


@pytest.mark.parametrize("rate, payment_status, message", [
    (1.0, "APPROVED", "Payment approved"),
    (0.0, "REJECTED", "Payment rejected"),
])
def test_process_payment_endpoint(client, customer_headers, pending_payment_id, rate, payment_status, message):
    app.dependency_overrides[payments.get_gateway] = lambda: PaymentGateway(approval_rate=rate)

    response = client.post(f"/api/payments/{pending_payment_id}/process", headers=customer_headers)

    assert response.status_code == 200
    assert response.json()["message"] == message
    assert response.json()["payment"]["status"] == payment_status

    again = client.post(f"/api/payments/{pending_payment_id}/process", headers=customer_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "already_processed"


def test_payments_of_other_users_are_hidden(client, other_customer, admin_headers, pending_payment_id):
    other_headers = auth_headers(other_customer)

    assert client.get(f"/api/payments/{pending_payment_id}", headers=other_headers).status_code == 404
    assert client.post(f"/api/payments/{pending_payment_id}/cancel", headers=other_headers).status_code == 404
    assert client.get(f"/api/payments/{pending_payment_id}", headers=admin_headers).status_code == 200


def test_cancel_payment_endpoint(client, customer_headers, pending_payment_id):
    response = client.post(f"/api/payments/{pending_payment_id}/cancel", headers=customer_headers)
    assert response.json()["payment"]["status"] == "CANCELLED"

    again = client.post(f"/api/payments/{pending_payment_id}/cancel", headers=customer_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "invalid_transition"


# -----------------------------
# Catalogue
# -----------------------------

def test_catalogue_admin_crud(client, admin_headers, customer_headers):
    category = client.post(
        "/api/categories/",
        data={"name": "Saias", "slug": "saias"},
        headers=admin_headers,
    )
    assert category.status_code == 201
    category_id = category.json()["category"]["id"]

    payload = {
        "name": "Saia Plissada",
        "price": "99.90",
        "category_id": category_id,
        "variants": [{"size": "P", "stock": 3}, {"size": "M", "stock": 4}],
    }
    assert client.post("/api/products/", json=payload, headers=customer_headers).status_code == 403
    product = client.post("/api/products/", json=payload, headers=admin_headers)
    assert product.status_code == 201
    product_id = product.json()["product"]["id"]
    assert len(product.json()["product"]["variants"]) == 2

    listing = client.get("/api/products/?category=saias").json()
    assert listing["pagination"]["total"] == 1

    client.patch(f"/api/products/{product_id}", json={"is_active": False}, headers=admin_headers)
    assert client.get("/api/products/").json()["products"] == []
    assert client.get("/api/products/admin", headers=admin_headers).json()["pagination"]["total"] == 1

    # A category that still has products cannot be removed
    assert client.delete(f"/api/categories/{category_id}", headers=admin_headers).status_code == 400
    assert client.delete(f"/api/products/{product_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/categories/{category_id}", headers=admin_headers).status_code == 200


def test_categories_list_counts_products(client, category, dress, watch):
    categories = client.get("/api/categories/").json()
    assert categories[0]["slug"] == "vestidos"
    assert categories[0]["product_count"] == 2

    detail = client.get("/api/categories/vestidos")
    assert detail.status_code == 200
    assert client.get("/api/categories/unknown").status_code == 404


# -----------------------------
# Contact and upload
# -----------------------------

def test_contact_form(client, monkeypatch):
    sent = []
    monkeypatch.setattr(contact_router, "send_contact_message", lambda **kwargs: sent.append(kwargs))

    response = client.post(
        "/api/contact/send",
        json={"nome": "Ana", "email": "ana@example.com", "mensagem": "Olá!"},
    )

    assert response.status_code == 200
    assert sent == [{"name": "Ana", "email": "ana@example.com", "message": "Olá!", "phone": None}]

    invalid = client.post("/api/contact/send", json={"name": "Ana", "email": "ana", "message": "x"})
    assert invalid.status_code == 400
    assert client.post("/api/contact/send", json={"name": "Ana"}).status_code == 400


def test_upload_image(client, admin_headers, tmp_path):
    response = client.post(
        "/api/upload/",
        files={"image": ("photo.PNG", b"\x89PNG fake", "image/png")},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["imageUrl"] == f"/uploads/{body['filename']}"
    assert body["filename"].endswith(".png")
    assert (tmp_path / "uploads" / body["filename"]).read_bytes() == b"\x89PNG fake"


def test_upload_rejects_non_images_and_large_files(client, admin_headers, monkeypatch, tmp_path):
    text = client.post(
        "/api/upload/",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert text.status_code == 400

    monkeypatch.setattr("storefront.config.MAX_UPLOAD_BYTES", 4)
    large = client.post(
        "/api/upload/",
        files={"image": ("big.jpg", b"0123456789", "image/jpeg")},
        headers=admin_headers,
    )
    assert large.status_code == 400
    assert list((tmp_path / "uploads").iterdir()) == []


def test_unexpected_errors_become_500(client, customer_headers, address, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(checkout, "place_order", broken)
    quiet_client = TestClient(app, raise_server_exceptions=False)

    response = _checkout(quiet_client, customer_headers, address.id)

    assert response.status_code == 500
    assert response.json() == {"error": "internal_error", "detail": "Internal server error"}


def test_register_rejects_address_that_email_str_refuses(client, db):
    response = client.post(
        "/api/auth/register",
        data={"name": "Clara", "email": "a..b@example.com", "password": "segredo123"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert db.query(User).count() == 0


def test_contact_rejects_address_that_email_str_refuses(client, monkeypatch):
    sent = []
    monkeypatch.setattr(contact_router, "send_contact_message", lambda **kwargs: sent.append(kwargs))

    response = client.post(
        "/api/contact/send",
        json={"name": "Ana", "email": "a..b@example.com", "message": "Olá!"},
    )

    assert response.status_code == 400
    assert sent == []


def test_checkout_accepts_camel_case_fields(client, db, customer, customer_headers, address, watch):
    add_to_cart(db, customer, watch)

    response = client.post(
        "/api/orders/",
        data={"addressId": address.id, "paymentMethod": "BOLETO"},
        headers=customer_headers,
    )

    assert response.status_code == 201
    assert response.json()["order"]["payment"]["method"] == "BOLETO"
