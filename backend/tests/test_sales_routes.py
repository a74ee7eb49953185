"""
Sales API tests through the Flask test client.
"""

import pytest

from conftest import make_membership, make_product
from storeapi.extensions import db
from storeapi.models import Membership, Product, Sale


def _quantity(product_id):
    return db.session.get(Product, product_id).quantity


class TestCreateSale:
    def test_cash_sale_returns_stored_document(self, client, coffee):
        resp = client.post("/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 2}]})

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["kind"] == "CASH"
        assert body["total_amount"] == 3.6
        assert body["is_cancelled"] is False
        assert body["products"][0]["quantity"] == 2
        assert _quantity(coffee.id) == 48

    def test_membership_sale(self, client, mug, membership):
        resp = client.post(
            "/api/sales",
            json={"products": [{"product_id": mug.id, "quantity": 1}], "membership_code": membership.code},
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["kind"] == "CASH_MEMBERSHIP"
        assert body["points"] == 2
        assert body["membership_code"] == membership.code

    def test_quantity_above_stock(self, client, mug):
        resp = client.post("/api/sales", json={"products": [{"product_id": mug.id, "quantity": 11}]})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == f"({mug.id}) Ceramic Mug quantity is greater than available quantity."
        assert _quantity(mug.id) == 10

    def test_repeated_product_counts_against_one_stock(self, client, mug):
        resp = client.post("/api/sales", json={"products": [
            {"product_id": mug.id, "quantity": 6},
            {"product_id": mug.id, "quantity": 5},
        ]})

        assert resp.status_code == 400
        assert _quantity(mug.id) == 10

    def test_unknown_membership(self, client, coffee):
        resp = client.post(
            "/api/sales",
            json={"products": [{"product_id": coffee.id, "quantity": 1}], "membership_code": "ZZZZ9999"},
        )

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "membership_code does not exist."

    def test_inactive_membership(self, client, db_session, coffee):
        member = make_membership(db_session, code="SLEEPY01", active=False)

        resp = client.post(
            "/api/sales",
            json={"products": [{"product_id": coffee.id, "quantity": 1}], "membership_code": member.code},
        )

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "membership_code is not active."

    def test_empty_products(self, client, db_session):
        resp = client.post("/api/sales", json={"products": []})
        assert resp.status_code == 400

    def test_non_integer_quantity(self, client, coffee):
        resp = client.post("/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 1.5}]})
        assert resp.status_code == 400

    @pytest.mark.parametrize("field", ["product_id", "quantity"])
    @pytest.mark.parametrize("value", [2**63, str(2**63), 10**30])
    def test_integer_beyond_column_range(self, client, coffee, field, value):
        item = {"product_id": coffee.id, "quantity": 1, field: value}

        resp = client.post("/api/sales", json={"products": [item]})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == f"{field} is out of range"
        assert db.session.query(Sale).count() == 0
        assert _quantity(coffee.id) == 50

    def test_largest_column_value_is_not_found(self, client, coffee):
        resp = client.post("/api/sales", json={"products": [{"product_id": 2**63 - 1, "quantity": 1}]})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == f"product_id {2**63 - 1} does not exist."


class TestPointsSale:
    def test_points_sale(self, client, mug, membership):
        resp = client.post(
            "/api/sales/points",
            json={"products": [{"product_id": mug.id, "quantity": 2}], "membership_code": membership.code},
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["kind"] == "POINTS"
        assert body["points_used"] == 100
        assert "total_amount" not in body

    def test_not_enough_points(self, client, db_session):
        product = make_product(db_session, points_price=100)
        member = make_membership(db_session, code="POOR0099", points=99)

        resp = client.post(
            "/api/sales/points",
            json={"products": [{"product_id": product.id, "quantity": 1}], "membership_code": member.code},
        )

        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Not enough points, please choose lower quantities."}
        assert db.session.query(Membership).filter_by(code=member.code).one().points == 99

    def test_membership_code_required(self, client, mug):
        resp = client.post("/api/sales/points", json={"products": [{"product_id": mug.id, "quantity": 1}]})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "membership_code is required"


class TestCancelSale:
    def test_cancel(self, client, coffee):
        sale_id = client.post(
            "/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 2}]}
        ).get_json()["id"]

        resp = client.put(f"/api/sales/{sale_id}", json={"is_cancelled": True})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Sale canceled successfully."
        assert body["sale"]["is_cancelled"] is True
        assert _quantity(coffee.id) == 50

    def test_string_flag_is_accepted(self, client, coffee):
        sale_id = client.post(
            "/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 1}]}
        ).get_json()["id"]

        resp = client.put(f"/api/sales/{sale_id}", json={"is_cancelled": "true"})
        assert resp.status_code == 200

    def test_cancel_twice(self, client, coffee):
        sale_id = client.post(
            "/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 1}]}
        ).get_json()["id"]
        client.put(f"/api/sales/{sale_id}", json={"is_cancelled": True})

        resp = client.put(f"/api/sales/{sale_id}", json={"is_cancelled": True})

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Sale is already canceled."
        assert _quantity(coffee.id) == 50

    def test_missing_flag(self, client, coffee):
        resp = client.put("/api/sales/1", json={})
        assert resp.status_code == 400

    def test_invalid_flag(self, client, coffee):
        resp = client.put("/api/sales/1", json={"is_cancelled": "maybe"})
        assert resp.status_code == 400

    def test_unknown_sale(self, client, db_session):
        resp = client.put("/api/sales/4242", json={"is_cancelled": True})
        assert resp.status_code == 404


class TestReadSales:
    def test_get_and_list(self, client, coffee, mug):
        first = client.post("/api/sales", json={"products": [{"product_id": coffee.id, "quantity": 1}]}).get_json()
        second = client.post("/api/sales", json={"products": [{"product_id": mug.id, "quantity": 1}]}).get_json()

        resp = client.get(f"/api/sales/{first['id']}")
        assert resp.status_code == 200
        assert resp.get_json()["id"] == first["id"]

        listing = client.get("/api/sales").get_json()
        assert [item["id"] for item in listing["items"]] == [second["id"], first["id"]]
        assert listing["pagination"]["total"] == 2

    def test_get_missing(self, client, db_session):
        assert client.get("/api/sales/999").status_code == 404
        assert client.get(f"/api/sales/{2**63}").status_code == 404

    def test_sales_are_never_deleted(self, client, db_session):
        assert client.delete("/api/sales/1").status_code == 405
        assert db.session.query(Sale).count() == 0
