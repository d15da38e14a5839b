"""
Checkout API tests.

Verifies:
- A completed checkout creates one Sale with items, decrements stock and
  writes StockMovements
- request_id replays return the original sale
- Stock, price, payment and coupon rejections carry machine-readable codes
- The catalog price is charged; a cart cannot lower it
- Manual discounts need sales:apply_discount; coupons are re-validated
- Loyalty points accrue in the same transaction
"""

import pytest

from economica.extensions import db
from economica.models import ClientReward, Coupon, CouponUsage, Product, Sale, StockMovement
from economica.permissions import Role
from economica.services import auth_service, coupon_service, session_service

from conftest import PASSWORD


def checkout_body(product, quantity=1, payment="1000", **extra):
    body = {
        "items": [{"product_id": product.id, "quantity": quantity}],
        "payment_method": "efectivo",
        "payment_amount": payment,
    }
    body.update(extra)
    return body


def post_checkout(client, headers, body):
    return client.post("/api/sales/checkout", json=body, headers=headers)


# =============================================================================
# HAPPY PATH
# =============================================================================


class TestCheckout:

    def test_checkout_creates_sale(self, client, cashier, cashier_headers, make_product):
        product = make_product(price_cents=10000, stock_quantity=10)

        resp = post_checkout(client, cashier_headers, checkout_body(product, 2, "250"))
        assert resp.status_code == 201, resp.get_json()

        sale = resp.get_json()["sale"]
        assert sale["subtotal_cents"] == 20000
        assert sale["total_cents"] == 20000
        assert sale["change_cents"] == 5000
        assert sale["cashier_id"] == cashier.id
        assert sale["items"][0]["unit_price_cents"] == 10000

        assert db.session.get(Product, product.id).stock_quantity == 8
        movement = db.session.query(StockMovement).filter_by(movement_type="sale").one()
        assert (movement.quantity, movement.previous_stock, movement.new_stock) == (-2, 10, 8)
        assert movement.reference_id == sale["id"]

    def test_tax_on_discounted_amount(self, app, client, manager_headers, make_product):
        app.config["TAX_RATE_BPS"] = 1600
        product = make_product(price_cents=10000)

        resp = post_checkout(client, manager_headers, checkout_body(product, payment="100", discount_amount="25"))
        sale = resp.get_json()["sale"]

        assert resp.status_code == 201
        assert (sale["discount_cents"], sale["tax_cents"], sale["total_cents"]) == (2500, 1200, 8700)

    def test_cashier_cannot_lower_the_price(self, client, cashier_headers, make_product):
        product = make_product(price_cents=10000, stock_quantity=10)
        body = checkout_body(product, 5, payment="0")
        body["items"][0]["unit_price_cents"] = 0

        resp = post_checkout(client, cashier_headers, body)

        assert resp.status_code == 409
        data = resp.get_json()
        assert data["code"] == "PRICE_CHANGED"
        assert data["details"] == {"product_id": product.id, "captured_cents": 0, "current_cents": 10000}
        assert db.session.query(Sale).count() == 0
        assert db.session.get(Product, product.id).stock_quantity == 10

    def test_matching_captured_price_is_charged(self, client, cashier_headers, make_product):
        product = make_product(price_cents=10000)
        body = checkout_body(product)
        body["items"][0]["unit_price_cents"] = 10000

        sale = post_checkout(client, cashier_headers, body).get_json()["sale"]
        assert sale["subtotal_cents"] == 10000
        assert sale["items"][0]["unit_price_cents"] == 10000

    def test_replayed_request_returns_same_sale(self, client, cashier_headers, make_product):
        product = make_product(price_cents=10000, stock_quantity=10)
        body = checkout_body(product, payment="100", request_id="abc123")

        first = post_checkout(client, cashier_headers, body)
        second = post_checkout(client, cashier_headers, body)

        assert first.status_code == 201
        assert second.status_code == 200
        assert second.get_json()["replayed"] is True
        assert second.get_json()["sale"]["id"] == first.get_json()["sale"]["id"]
        assert db.session.query(Sale).count() == 1
        assert db.session.get(Product, product.id).stock_quantity == 9

    def test_request_id_of_another_cashier_conflicts(self, client, cashier_headers, supervisor_headers, make_product):
        product = make_product()
        body = checkout_body(product, payment="100", request_id="shared")

        assert post_checkout(client, cashier_headers, body).status_code == 201
        resp = post_checkout(client, supervisor_headers, body)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "DUPLICATE_REQUEST"


# =============================================================================
# REJECTIONS
# =============================================================================


class TestCheckoutRejections:

    def test_insufficient_stock(self, client, cashier_headers, make_product):
        product = make_product(stock_quantity=1)

        resp = post_checkout(client, cashier_headers, checkout_body(product, 2, "1000"))

        assert resp.status_code == 400
        data = resp.get_json()
        assert data["code"] == "INSUFFICIENT_STOCK"
        assert data["details"] == {"product_id": product.id, "requested": 2, "available": 1}
        assert db.session.query(Sale).count() == 0

    def test_insufficient_payment(self, client, cashier_headers, make_product):
        product = make_product(price_cents=8750)

        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="80.00"))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INSUFFICIENT_PAYMENT"
        assert resp.get_json()["details"] == {"required_cents": 8750, "provided_cents": 8000}
        assert db.session.get(Product, product.id).stock_quantity == 10

    def test_exact_change(self, client, cashier_headers, make_product):
        product = make_product(price_cents=8750)
        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="90.00"))
        assert resp.get_json()["sale"]["change_cents"] == 250

    @pytest.mark.parametrize("body", [
        {"items": [], "payment_method": "efectivo", "payment_amount": "10"},
        {"items": [{"product_id": 1, "quantity": 1}], "payment_amount": "10"},
        {"items": [{"product_id": 1, "quantity": 1}], "payment_method": "cheque", "payment_amount": "10"},
        {"items": [{"product_id": 1, "quantity": 1}], "payment_method": "efectivo"},
        {"items": [{"product_id": 1, "quantity": 0}], "payment_method": "efectivo", "payment_amount": "10"},
        {"items": [{"product_id": 1, "quantity": 1}, {"product_id": 1, "quantity": 1}],
         "payment_method": "efectivo", "payment_amount": "10"},
    ])
    def test_malformed_requests(self, client, cashier_headers, make_product, body):
        make_product()
        resp = post_checkout(client, cashier_headers, body)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_unknown_product(self, client, cashier_headers):
        resp = post_checkout(client, cashier_headers, {
            "items": [{"product_id": 999, "quantity": 1}],
            "payment_method": "efectivo",
            "payment_amount": "10",
        })
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "PRODUCT_NOT_FOUND"

    def test_manual_discount_needs_permission(self, client, cashier_headers, make_product):
        product = make_product(price_cents=10000)
        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="100", discount_amount="10"))
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "AUTHORIZATION_DENIED"

    def test_manual_discount_clamped(self, client, manager_headers, make_product):
        product = make_product(price_cents=10000)
        resp = post_checkout(client, manager_headers, checkout_body(product, payment="0", discount_amount="150"))

        sale = resp.get_json()["sale"]
        assert resp.status_code == 201
        assert (sale["discount_cents"], sale["total_cents"], sale["change_cents"]) == (10000, 0, 0)

    def test_cashier_with_temporary_grant_may_discount(self, client, cashier, cashier_headers, manager_headers, make_product):
        product = make_product(price_cents=10000)
        client.post(
            f"/api/users/{cashier.id}/temporary-permissions",
            json={"permission": "sales:apply_discount", "duration_minutes": 10},
            headers=manager_headers,
        )
        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="100", discount_amount="10"))
        assert resp.status_code == 201
        assert resp.get_json()["sale"]["discount_cents"] == 1000


# =============================================================================
# COUPONS AND LOYALTY
# =============================================================================


class TestCouponsAndLoyalty:

    def test_coupon_applied_and_usage_recorded(self, client, cashier_headers, make_product, make_client, make_coupon):
        product = make_product(price_cents=10000)
        buyer = make_client()
        make_coupon(code="DESC10", discount_value=10)

        resp = post_checkout(client, cashier_headers, checkout_body(
            product, payment="100", coupon_code="desc10", client_id=buyer.id,
        ))
        sale = resp.get_json()["sale"]

        assert resp.status_code == 201
        assert sale["discount_cents"] == 1000
        assert sale["coupon_code"] == "DESC10"
        usage = db.session.query(CouponUsage).one()
        assert usage.client_id == buyer.id

        again = post_checkout(client, cashier_headers, checkout_body(
            product, payment="100", coupon_code="DESC10", client_id=buyer.id,
        ))
        assert again.status_code == 400
        assert again.get_json()["code"] == "INVALID_COUPON"
        assert again.get_json()["details"]["issues"] == ["Cupón ya utilizado por este cliente"]

    def test_coupon_replaces_manual_discount(self, client, cashier_headers, make_product, make_coupon):
        product = make_product(price_cents=10000)
        make_coupon(code="FIJO5", discount_type="fixed_amount", discount_value=500)

        resp = post_checkout(client, cashier_headers, checkout_body(
            product, payment="100", coupon_code="FIJO5", discount_amount="30",
        ))
        assert resp.status_code == 201
        assert resp.get_json()["sale"]["discount_cents"] == 500

    def test_usage_limited_coupon_is_locked_and_spent_once(
        self, monkeypatch, client, cashier_headers, make_product, make_coupon,
    ):
        locked = []
        original = coupon_service.lock_for_update

        def spy(query):
            locked.append(query.column_descriptions[0]["entity"])
            return original(query)

        monkeypatch.setattr(coupon_service, "lock_for_update", spy)
        product = make_product(price_cents=10000)
        make_coupon(code="UNAVEZ", discount_value=10, usage_limit=1, allow_multiple_use=True)

        first = post_checkout(client, cashier_headers, checkout_body(product, payment="100", coupon_code="UNAVEZ"))
        second = post_checkout(client, cashier_headers, checkout_body(product, payment="100", coupon_code="UNAVEZ"))

        assert first.status_code == 201
        assert Coupon in locked
        assert second.status_code == 400
        assert second.get_json()["details"]["issues"] == ["Límite de uso del cupón alcanzado"]
        assert db.session.query(CouponUsage).count() == 1
        assert db.session.query(Coupon).one().usage_count == 1

    def test_unknown_coupon(self, client, cashier_headers, make_product):
        product = make_product()
        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="1000", coupon_code="NADA"))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_COUPON"

    def test_points_accrue_for_client(self, client, cashier_headers, make_product, make_client):
        product = make_product(price_cents=8750)
        buyer = make_client(total_points=495)

        resp = post_checkout(client, cashier_headers, checkout_body(product, payment="90", client_id=buyer.id))
        sale = resp.get_json()["sale"]

        assert sale["points_earned"] == 8
        db.session.refresh(buyer)
        assert buyer.total_points == 503
        assert buyer.total_spent_cents == 8750
        reward = db.session.query(ClientReward).one()
        assert (reward.reward_type, reward.points, reward.sale_id) == ("purchase", 8, sale["id"])

    def test_unknown_client(self, client, cashier_headers, make_product):
        product = make_product()
        resp = post_checkout(client, cashier_headers, checkout_body(product, client_id=999))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "CLIENT_NOT_FOUND"


# =============================================================================
# SALE LOOKUP
# =============================================================================


class TestSaleLookup:

    def _sale_id(self, client, headers, make_product):
        product = make_product()
        return post_checkout(client, headers, checkout_body(product)).get_json()["sale"]["id"]

    def test_cashier_reads_own_sale(self, client, cashier_headers, make_product):
        sale_id = self._sale_id(client, cashier_headers, make_product)
        resp = client.get(f"/api/sales/{sale_id}", headers=cashier_headers)
        assert resp.status_code == 200
        assert len(resp.get_json()["sale"]["items"]) == 1

    def test_other_cashier_denied_supervisor_allowed(self, client, cashier_headers, supervisor_headers, make_product):
        sale_id = self._sale_id(client, cashier_headers, make_product)

        other = auth_service.create_user("otro@test.local", PASSWORD, Role.CASHIER)
        _session, token = session_service.create_session(other.id)

        denied = client.get(f"/api/sales/{sale_id}", headers={"Authorization": f"Bearer {token}"})
        assert denied.status_code == 403
        assert client.get(f"/api/sales/{sale_id}", headers=supervisor_headers).status_code == 200

    def test_missing_sale(self, client, cashier_headers):
        assert client.get("/api/sales/999", headers=cashier_headers).status_code == 404
