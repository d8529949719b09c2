from decimal import Decimal

from fastapi import status

from models.coupon import Coupon
from models.payment import Payment
from models.product import Product


class TestCreateOrder:
    """POST /orders/"""

    def test_creates_order_with_pending_payment(self, client, db, customer_headers, customer, make_product):
        shirt = make_product("Shirt", price="150000", stock=5)

        response = client.post(
            "/orders/",
            json={"items": [{"product_id": shirt.id, "quantity": 2}], "payment_method": "vnpay", "shipping_amount": 30000},
            headers=customer_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        order = response.json()["order"]
        assert order["order_number"].startswith("ORD-")
        assert order["status"] == "pending"
        assert order["payment_status"] == "unpaid"
        assert order["subtotal"] == 300000.0
        assert order["total_amount"] == 330000.0
        assert order["items"][0]["product_name"] == "Shirt"

        db.expire_all()
        assert db.get(Product, shirt.id).stock_quantity == 3
        payment = db.query(Payment).filter(Payment.order_id == order["id"]).one()
        assert payment.status == "pending"
        assert payment.transaction_id == order["order_number"]
        assert payment.payment_provider == "vnpay"

    def test_cod_payment_has_no_transaction_id(self, client, db, make_product):
        cup = make_product("Cup", price="20000", stock=5)

        response = client.post("/orders/", json={"items": [{"product_id": cup.id, "quantity": 1}], "payment_method": "cod"})

        assert response.status_code == status.HTTP_201_CREATED
        payment = db.query(Payment).filter(Payment.order_id == response.json()["order"]["id"]).one()
        assert payment.transaction_id is None
        assert payment.payment_provider is None

    def test_insufficient_stock(self, client, db, customer_headers, make_product):
        shirt = make_product("Shirt", price="150000", stock=1)

        response = client.post(
            "/orders/",
            json={"items": [{"product_id": shirt.id, "quantity": 2}], "payment_method": "momo"},
            headers=customer_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == "domain_error"
        db.expire_all()
        assert db.get(Product, shirt.id).stock_quantity == 1

    def test_unknown_product(self, client, customer_headers):
        response = client.post(
            "/orders/",
            json={"items": [{"product_id": 999, "quantity": 1}], "payment_method": "momo"},
            headers=customer_headers,
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_applies_coupon(self, client, db, customer_headers, make_product):
        shirt = make_product("Shirt", price="100000", stock=5)
        db.add(Coupon(code="TENOFF", name="Ten off", type="percentage", value=Decimal("10")))
        db.commit()

        response = client.post(
            "/orders/",
            json={"items": [{"product_id": shirt.id, "quantity": 2}], "payment_method": "vnpay", "coupon_code": "tenoff"},
            headers=customer_headers,
        )

        assert response.status_code == status.HTTP_201_CREATED
        order = response.json()["order"]
        assert order["discount_amount"] == 20000.0
        assert order["total_amount"] == 180000.0
        assert order["coupon_code"] == "TENOFF"
        assert db.query(Coupon).filter(Coupon.code == "TENOFF").one().used_count == 1

    def test_rejected_coupon(self, client, customer_headers, make_product):
        shirt = make_product("Shirt", price="100000", stock=5)

        response = client.post(
            "/orders/",
            json={"items": [{"product_id": shirt.id, "quantity": 1}], "payment_method": "vnpay", "coupon_code": "GHOST"},
            headers=customer_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["error"] == "Coupon code does not exist"

    def test_unknown_payment_method(self, client, customer_headers, make_product):
        shirt = make_product("Shirt", price="100000", stock=5)
        response = client.post(
            "/orders/",
            json={"items": [{"product_id": shirt.id, "quantity": 1}], "payment_method": "paypal"},
            headers=customer_headers,
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestOrderAccess:

    def test_owner_can_view(self, client, customer, customer_headers, make_order):
        order = make_order(user=customer)
        response = client.get(f"/orders/{order.id}", headers=customer_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["order"]["id"] == order.id

    def test_other_customer_cannot_view(self, client, admin, customer_headers, make_order):
        order = make_order(user=admin)
        response = client.get(f"/orders/{order.id}", headers=customer_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_admin_can_view_any(self, client, customer, admin_headers, make_order):
        order = make_order(user=customer)
        response = client.get(f"/orders/{order.id}", headers=admin_headers)
        assert response.status_code == status.HTTP_200_OK

    def test_list_only_own_orders(self, client, customer, admin, customer_headers, make_order):
        mine = make_order(user=customer)
        make_order(user=admin)
        response = client.get("/orders/", headers=customer_headers)
        assert [o["id"] for o in response.json()["orders"]] == [mine.id]

    def test_list_is_paged_newest_first(self, client, customer, customer_headers, make_order):
        orders = [make_order(user=customer) for _ in range(3)]

        response = client.get("/orders/", params={"page": 2, "page_size": 2}, headers=customer_headers)

        body = response.json()
        assert body["total"] == 3
        assert body["page"] == 2
        assert [o["id"] for o in body["orders"]] == [orders[0].id]

    def test_list_requires_login(self, client):
        response = client.get("/orders/")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestPaymentStatus:
    """GET /payments/{id}"""

    def test_owner_sees_payment_and_refunds(self, client, customer, customer_headers, make_order, make_payment):
        order = make_order(user=customer)
        payment = make_payment(order, amount="100000", transaction_id="TX-1")
        make_payment(order, amount="10000", transaction_id="REFUND-TX-1-000001", refund_of_payment_id=payment.id)

        response = client.get(f"/payments/{payment.id}", headers=customer_headers)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["payment"]["transaction_id"] == "TX-1"
        assert body["order_status"] == "confirmed"
        assert len(body["refunds"]) == 1
        assert body["refunds"][0]["amount"] == 10000.0

    def test_stranger_forbidden(self, client, admin, customer_headers, make_order, make_payment):
        payment = make_payment(make_order(user=admin))
        response = client.get(f"/payments/{payment.id}", headers=customer_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing(self, client, customer_headers):
        response = client.get("/payments/404", headers=customer_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json() == {"success": False, "error": "Payment not found", "code": "not_found"}
