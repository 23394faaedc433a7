# Overview: Pytest coverage for the POS, register and customer HTTP routes.

"""
HTTP API Tests

Drives a full till session through the blueprints: ring up, discount,
split tender, commit, hold/resume, shift open/close, debt collection.
Also checks that engine errors map to the right status codes.
"""

from decimal import Decimal

import pytest

from duka.decorators import get_store


@pytest.fixture
def open_shift(client, db_session, cashier_headers):
    """Cashier 1 on an open shift with a 0.00 float."""
    response = client.post("/api/registers/open", json={"opening_cents": 0}, headers=cashier_headers)
    assert response.status_code == 201


class TestCashierHeaders:
    def test_missing_cashier_id(self, client, db_session):
        response = client.get("/api/pos/cart")
        assert response.status_code == 401

    def test_non_integer_cashier_id(self, client, db_session):
        response = client.get("/api/pos/cart", headers={"X-Cashier-Id": "abc"})
        assert response.status_code == 401

    def test_sessions_are_per_cashier(self, client, make_product, cashier_headers, owner_headers):
        product = make_product()
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)

        other = client.get("/api/pos/cart", headers=owner_headers).get_json()
        mine = client.get("/api/pos/cart", headers=cashier_headers).get_json()

        assert other["cart"]["lines"] == []
        assert len(mine["cart"]["lines"]) == 1


class TestCartRoutes:
    def test_add_item_and_totals(self, client, store, make_product, cashier_headers):
        store.insert("store_settings", {"location_id": 1, "store_name": "Duka", "tax_rate": Decimal("16")})
        product = make_product(price_cents=10000, stock=5)

        response = client.post(
            "/api/pos/cart/items",
            json={"product_id": product["id"], "quantity": 3},
            headers=cashier_headers,
        )

        assert response.status_code == 201
        totals = response.get_json()["cart"]["totals"]
        assert totals["subtotal_cents"] == 30000
        assert totals["tax_cents"] == 4800
        assert totals["total_cents"] == 34800

    def test_add_unknown_product(self, client, db_session, cashier_headers):
        response = client.post("/api/pos/cart/items", json={"product_id": 404}, headers=cashier_headers)
        assert response.status_code == 404

    def test_add_rejects_decimal_quantity(self, client, make_product, cashier_headers):
        product = make_product()
        response = client.post(
            "/api/pos/cart/items",
            json={"product_id": product["id"], "quantity": 1.5},
            headers=cashier_headers,
        )
        assert response.status_code == 400

    def test_add_beyond_stock(self, client, make_product, cashier_headers):
        product = make_product(stock=1)
        response = client.post(
            "/api/pos/cart/items",
            json={"product_id": product["id"], "quantity": 2},
            headers=cashier_headers,
        )
        assert response.status_code == 400

    def test_quantity_edit_beyond_stock(self, client, make_product, cashier_headers):
        product = make_product(stock=2)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)

        response = client.patch(
            f"/api/pos/cart/items/{product['id']}",
            json={"quantity": 50},
            headers=cashier_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["details"]["on_hand"] == 2
        cart = client.get("/api/pos/cart", headers=cashier_headers).get_json()["cart"]
        assert cart["lines"][0]["quantity"] == 1

    def test_price_below_floor(self, client, make_product, cashier_headers):
        product = make_product(price_cents=10000)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)

        response = client.patch(
            f"/api/pos/cart/items/{product['id']}",
            json={"unit_price_cents": 9000},
            headers=cashier_headers,
        )

        assert response.status_code == 400
        assert response.get_json()["details"]["floor_cents"] == 10000
        cart = client.get("/api/pos/cart", headers=cashier_headers).get_json()["cart"]
        assert cart["lines"][0]["unit_price_cents"] == 10000

    def test_discount_cap_for_cashier(self, client, make_product, cashier_headers):
        product = make_product(price_cents=10000)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)

        response = client.put("/api/pos/cart/discount", json={"discount_cents": 5000}, headers=cashier_headers)

        assert response.status_code == 400
        assert response.get_json()["details"]["cap_cents"] == 3000

    def test_owner_discount_uncapped(self, client, make_product, owner_headers):
        product = make_product(price_cents=10000)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=owner_headers)

        response = client.put("/api/pos/cart/discount", json={"discount_cents": 5000}, headers=owner_headers)

        assert response.status_code == 200
        assert response.get_json()["cart"]["totals"]["subtotal_cents"] == 5000

    def test_remove_and_clear(self, client, make_product, cashier_headers):
        a, b = make_product(name="A"), make_product(name="B")
        client.post("/api/pos/cart/items", json={"product_id": a["id"]}, headers=cashier_headers)
        client.post("/api/pos/cart/items", json={"product_id": b["id"]}, headers=cashier_headers)

        response = client.delete(f"/api/pos/cart/items/{a['id']}", headers=cashier_headers)
        assert [line["product_id"] for line in response.get_json()["cart"]["lines"]] == [b["id"]]

        response = client.delete("/api/pos/cart", headers=cashier_headers)
        assert response.get_json()["cart"]["lines"] == []


class TestCheckoutRoutes:
    @pytest.mark.usefixtures("open_shift")
    def test_split_payment_commit(self, client, store, make_product, cashier_headers):
        """
        SCENARIO: 348.00 sale, cash 200.00 + card 148.00 over HTTP
        EXPECTED: 201, split label, cart empty afterwards
        """
        store.insert("store_settings", {"location_id": 1, "store_name": "Duka", "tax_rate": Decimal("16")})
        product = make_product(price_cents=10000, stock=5)
        client.post("/api/pos/cart/items", json={"product_id": product["id"], "quantity": 3}, headers=cashier_headers)

        cart = client.post("/api/pos/checkout", headers=cashier_headers).get_json()["cart"]
        cash_id = cart["payments"]["entries"][0]["id"]
        client.patch(f"/api/pos/payments/{cash_id}", json={"amount_cents": 20000}, headers=cashier_headers)
        added = client.post("/api/pos/payments", headers=cashier_headers).get_json()
        assert added["entry"]["method"] == "card"
        assert added["entry"]["amount_cents"] == 14800

        response = client.post("/api/pos/sales", headers=cashier_headers)

        assert response.status_code == 201
        body = response.get_json()
        assert body["sale"]["payment_method"] == "split"
        assert body["receipt"]["total_cents"] == 34800
        assert body["receipt"]["change_cents"] == 0
        cart = client.get("/api/pos/cart", headers=cashier_headers).get_json()["cart"]
        assert cart["lines"] == []

        sale = client.get(f"/api/pos/sales/{body['sale']['id']}", headers=cashier_headers).get_json()["sale"]
        assert len(sale["payments"]) == 2

    @pytest.mark.usefixtures("open_shift")
    def test_commit_short_payment(self, client, make_product, cashier_headers):
        product = make_product(price_cents=10000)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)
        cart = client.post("/api/pos/checkout", headers=cashier_headers).get_json()["cart"]
        entry_id = cart["payments"]["entries"][0]["id"]
        client.patch(f"/api/pos/payments/{entry_id}", json={"amount_cents": 100}, headers=cashier_headers)

        response = client.post("/api/pos/sales", headers=cashier_headers)

        assert response.status_code == 400
        assert response.get_json()["details"]["short_cents"] == 9900

    def test_commit_empty_cart(self, client, db_session, cashier_headers):
        assert client.post("/api/pos/sales", headers=cashier_headers).status_code == 400

    def test_commit_without_shift(self, client, make_product, cashier_headers):
        product = make_product()
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)
        client.post("/api/pos/checkout", headers=cashier_headers)

        response = client.post("/api/pos/sales", headers=cashier_headers)

        assert response.status_code == 409
        assert client.get("/api/pos/sales", headers=cashier_headers).get_json()["sales"] == []
        cart = client.get("/api/pos/cart", headers=cashier_headers).get_json()["cart"]
        assert len(cart["lines"]) == 1

    @pytest.mark.usefixtures("open_shift")
    def test_commit_failure_is_retryable(self, client, app, make_product, cashier_headers, failing_store):
        from duka.decorators import STORE_KEY

        product = make_product()
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)
        client.post("/api/pos/checkout", headers=cashier_headers)

        original = app.extensions[STORE_KEY]
        app.extensions[STORE_KEY] = failing_store.fail("insert_many", "sale_items")
        try:
            response = client.post("/api/pos/sales", headers=cashier_headers)
        finally:
            app.extensions[STORE_KEY] = original

        assert response.status_code == 503
        body = response.get_json()
        assert body["retryable"] is True
        assert body["details"]["step"] == "items"
        cart = client.get("/api/pos/cart", headers=cashier_headers).get_json()["cart"]
        assert len(cart["lines"]) == 1

    @pytest.mark.usefixtures("open_shift")
    def test_credit_sale_and_collection(self, client, make_product, make_customer, cashier_headers):
        customer = make_customer(balance_cents=0)
        product = make_product(price_cents=10000)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)
        client.put("/api/pos/cart/customer", json={"customer_id": customer["id"]}, headers=cashier_headers)
        cart = client.post("/api/pos/checkout", headers=cashier_headers).get_json()["cart"]
        entry_id = cart["payments"]["entries"][0]["id"]
        client.patch(f"/api/pos/payments/{entry_id}", json={"method": "credit"}, headers=cashier_headers)

        sale = client.post("/api/pos/sales", headers=cashier_headers)
        assert sale.status_code == 201
        assert sale.get_json()["receipt"]["new_balance_cents"] == 10000

        response = client.post(
            f"/api/customers/{customer['id']}/payments",
            json={"amount_cents": 15000, "notes": "cash"},
            headers=cashier_headers,
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["applied_cents"] == 10000
        assert body["customer"]["outstanding_balance_cents"] == 0

        listed = client.get(f"/api/customers/{customer['id']}/payments", headers=cashier_headers).get_json()
        assert len(listed["payments"]) == 1


class TestSuspendRoutes:
    def test_suspend_and_resume(self, client, make_product, cashier_headers):
        product = make_product()
        client.post("/api/pos/cart/items", json={"product_id": product["id"], "quantity": 2}, headers=cashier_headers)

        response = client.post("/api/pos/suspended", json={"label": "Kamau"}, headers=cashier_headers)
        assert response.status_code == 201
        order = response.get_json()["order"]
        assert response.get_json()["cart"]["lines"] == []

        listed = client.get("/api/pos/suspended", headers=cashier_headers).get_json()["orders"]
        assert [o["id"] for o in listed] == [order["id"]]

        response = client.post(f"/api/pos/suspended/{order['id']}/resume", headers=cashier_headers)
        assert response.status_code == 200
        assert response.get_json()["cart"]["lines"][0]["quantity"] == 2
        assert client.get("/api/pos/suspended", headers=cashier_headers).get_json()["orders"] == []

    def test_suspend_empty_cart(self, client, db_session, cashier_headers):
        response = client.post("/api/pos/suspended", headers=cashier_headers)
        assert response.status_code == 200
        assert response.get_json()["order"] is None


class TestRegisterRoutes:
    def test_shift_lifecycle(self, client, make_product, cashier_headers):
        response = client.post("/api/registers/open", json={"opening_cents": 5000}, headers=cashier_headers)
        assert response.status_code == 201

        again = client.post("/api/registers/open", json={"opening_cents": 5000}, headers=cashier_headers)
        assert again.status_code == 409

        product = make_product(price_cents=1200)
        client.post("/api/pos/cart/items", json={"product_id": product["id"]}, headers=cashier_headers)
        client.post("/api/pos/checkout", headers=cashier_headers)
        assert client.post("/api/pos/sales", headers=cashier_headers).status_code == 201

        summary = client.get("/api/registers/summary", headers=cashier_headers).get_json()["summary"]
        assert summary["expected_cents"] == 6200

        response = client.post("/api/registers/close", json={"closing_cents": 6000}, headers=cashier_headers)
        assert response.status_code == 200
        body = response.get_json()
        assert body["variance_cents"] == -200
        assert body["variance_status"] == "shortage"
        assert body["register"]["status"] == "closed"

        current = client.get("/api/registers/current", headers=cashier_headers).get_json()
        assert current["register"] is None

    def test_close_without_open(self, client, db_session, cashier_headers):
        response = client.post("/api/registers/close", json={"closing_cents": 0}, headers=cashier_headers)
        assert response.status_code == 409

    def test_current_restores_persisted_shift(self, client, app, cashier_headers):
        client.post("/api/registers/open", json={"opening_cents": 3000}, headers=cashier_headers)
        # simulate a restart: forget in-process sessions
        from duka.decorators import get_sessions
        get_sessions().drop(1)

        current = client.get("/api/registers/current", headers=cashier_headers).get_json()
        assert current["register"]["opening_cents"] == 3000
        assert current["register"]["status"] == "open"

    def test_negative_float_rejected(self, client, db_session, cashier_headers):
        response = client.post("/api/registers/open", json={"opening_cents": -5}, headers=cashier_headers)
        assert response.status_code == 400


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.get_json()["checks"]["record_store"]["status"] == "healthy"

    def test_store_is_shared(self, app, db_session):
        assert get_store() is app.extensions["duka.store"]
