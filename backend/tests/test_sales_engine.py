"""
Sale transaction engine tests.

The engine is called directly against the test database. Fatal failures are
injected through substitute ledgers that report zero matched rows.
"""

from decimal import Decimal

import pytest

from conftest import make_membership, make_product
from storeapi.extensions import db
from storeapi.models import Membership, MembershipPurchase, Product, Sale, SaleKind
from storeapi.services.ledgers import MembershipLedger, ProductLedger, SaleLedger, UpdateResult
from storeapi.services.sales_engine import (
    HistoryUpdateFailed,
    InventoryUpdateFailed,
    PointsUpdateFailed,
    SaleError,
    SaleNotFound,
    SaleTransactionEngine,
    SaleUpdateFailed,
    calculate_points,
)


def _quantity(product_id):
    return db.session.get(Product, product_id).quantity


def _membership(code):
    return db.session.query(Membership).filter_by(code=code).one()


def _history(code):
    return [entry.to_dict() for entry in _membership(code).purchase_history]


# =============================================================================
# POINTS CALCULATION
# =============================================================================


class TestCalculatePoints:
    @pytest.mark.parametrize(
        "total,expected",
        [
            (Decimal("0"), 0),
            (Decimal("3.60"), 0),
            (Decimal("9.99"), 0),
            (Decimal("10.00"), 1),
            (Decimal("125.50"), 12),
        ],
    )
    def test_floor_of_total_over_ten(self, total, expected):
        assert calculate_points(total) == expected


# =============================================================================
# CASH SALES
# =============================================================================


class TestProcessSale:
    def test_plain_cash_sale(self, db_session, engine, coffee, membership):
        result = engine.process_sale([{"product_id": coffee.id, "quantity": 2}])

        assert result.acknowledged
        sale = db.session.get(Sale, result.inserted_id)
        assert sale.sale_kind == SaleKind.CASH
        assert sale.total_amount == Decimal("3.60")
        assert sale.membership_code is None
        assert sale.points is None
        assert sale.is_cancelled is False
        assert _quantity(coffee.id) == 48

        line = sale.lines[0]
        assert line.product_id == coffee.id
        assert line.product_name == "Ground Coffee"
        assert line.quantity == 2
        assert line.price == Decimal("1.80")

        # No membership code: existing memberships are left alone
        untouched = _membership(membership.code)
        assert untouched.points == 500
        assert untouched.last_purchase is None
        assert _history(membership.code) == []
        assert db.session.query(MembershipPurchase).count() == 0

    def test_sale_body_reports_total(self, db_session, engine, coffee):
        result = engine.process_sale([{"product_id": coffee.id, "quantity": 2}])

        body = db.session.get(Sale, result.inserted_id).to_dict()
        assert body["total_amount"] == 3.6
        assert "points" not in body
        assert body["products"] == [
            {"product_id": coffee.id, "product_name": "Ground Coffee", "quantity": 2, "price": 1.8}
        ]

    def test_lines_keep_cart_order(self, db_session, engine, coffee, mug):
        result = engine.process_sale([
            {"product_id": mug.id, "quantity": 1},
            {"product_id": coffee.id, "quantity": 3},
        ])

        sale = db.session.get(Sale, result.inserted_id)
        assert [line.product_id for line in sale.lines] == [mug.id, coffee.id]
        assert sale.total_amount == Decimal("30.40")

    def test_membership_sale_awards_points_and_history(self, db_session, engine, mug, membership):
        result = engine.process_sale([{"product_id": mug.id, "quantity": 2}], membership.code)

        sale = db.session.get(Sale, result.inserted_id)
        assert sale.sale_kind == SaleKind.CASH_MEMBERSHIP
        assert sale.total_amount == Decimal("50.00")
        assert sale.points == 5
        assert sale.membership_code == membership.code

        refreshed = _membership(membership.code)
        assert refreshed.points == 505
        assert refreshed.last_purchase == sale.sale_date
        assert _history(membership.code) == [
            {"sale_id": str(sale.id), "date": sale.sale_date.isoformat(), "amount": 50.0}
        ]

    def test_empty_cart_is_rejected_before_any_write(self, db_session, engine):
        with pytest.raises(SaleError):
            engine.process_sale([])
        assert db.session.query(Sale).count() == 0

    def test_zero_quantity_is_rejected(self, db_session, engine, coffee):
        with pytest.raises(SaleError):
            engine.process_sale([{"product_id": coffee.id, "quantity": 0}])
        assert _quantity(coffee.id) == 50

    def test_oversell_rolls_back_whole_sale(self, db_session, engine, coffee, mug):
        with pytest.raises(InventoryUpdateFailed):
            engine.process_sale([
                {"product_id": coffee.id, "quantity": 5},
                {"product_id": mug.id, "quantity": 11},
            ])

        assert _quantity(coffee.id) == 50
        assert _quantity(mug.id) == 10
        assert db.session.query(Sale).count() == 0

    def test_unknown_product_rolls_back(self, db_session, engine, coffee):
        with pytest.raises(InventoryUpdateFailed):
            engine.process_sale([
                {"product_id": coffee.id, "quantity": 1},
                {"product_id": coffee.id + 999, "quantity": 1},
            ])

        assert _quantity(coffee.id) == 50
        assert db.session.query(Sale).count() == 0

    def test_unknown_membership_rolls_back(self, db_session, engine, coffee):
        with pytest.raises(PointsUpdateFailed):
            engine.process_sale([{"product_id": coffee.id, "quantity": 1}], "NOPE0000")

        assert _quantity(coffee.id) == 50
        assert db.session.query(Sale).count() == 0


# =============================================================================
# POINTS SALES
# =============================================================================


class TestProcessSaleWithPoints:
    def test_points_sale_debits_balance(self, db_session, engine, mug, membership):
        outcome = engine.process_sale_with_points([{"product_id": mug.id, "quantity": 3}], membership.code)

        assert outcome.ok
        sale = db.session.get(Sale, outcome.result.inserted_id)
        assert sale.sale_kind == SaleKind.POINTS
        assert sale.points_used == 150
        assert sale.total_amount is None
        assert sale.lines[0].points == 50
        assert sale.lines[0].price is None

        assert _quantity(mug.id) == 7
        assert _membership(membership.code).points == 350
        assert _history(membership.code) == [
            {"sale_id": str(sale.id), "date": sale.sale_date.isoformat(), "points_used": 150}
        ]

    def test_insufficient_points_is_a_rejection(self, db_session, engine):
        product = make_product(db_session, points_price=100, quantity=5)
        member = make_membership(db_session, code="POOR0099", points=99)

        outcome = engine.process_sale_with_points([{"product_id": product.id, "quantity": 1}], member.code)

        assert not outcome.ok
        assert outcome.error_message == "Not enough points, please choose lower quantities."
        assert _membership(member.code).points == 99
        assert _quantity(product.id) == 5
        assert db.session.query(Sale).count() == 0
        assert _history(member.code) == []

    def test_exact_balance_is_enough(self, db_session, engine):
        product = make_product(db_session, points_price=100, quantity=5)
        member = make_membership(db_session, code="EXACT100", points=100)

        outcome = engine.process_sale_with_points([{"product_id": product.id, "quantity": 1}], member.code)

        assert outcome.ok
        assert _membership(member.code).points == 0

    def test_missing_membership_is_fatal(self, db_session, engine, mug):
        with pytest.raises(PointsUpdateFailed):
            engine.process_sale_with_points([{"product_id": mug.id, "quantity": 1}], "GONE0000")
        assert _quantity(mug.id) == 10

    def test_membership_code_required(self, db_session, engine, mug):
        with pytest.raises(SaleError):
            engine.process_sale_with_points([{"product_id": mug.id, "quantity": 1}], None)


# =============================================================================
# CANCELLATION
# =============================================================================


class TestProcessSaleCancellation:
    def test_cash_sale_round_trip(self, db_session, engine, coffee):
        sale_id = engine.process_sale([{"product_id": coffee.id, "quantity": 2}]).inserted_id

        outcome = engine.process_sale_cancellation(sale_id, True)

        assert outcome.ok
        assert outcome.result.matched_count == 1
        sale = db.session.get(Sale, sale_id)
        assert sale.is_cancelled is True
        assert sale.cancelled_at is not None
        assert _quantity(coffee.id) == 50

    def test_membership_sale_round_trip(self, db_session, engine, mug, membership):
        sale_id = engine.process_sale([{"product_id": mug.id, "quantity": 2}], membership.code).inserted_id

        outcome = engine.process_sale_cancellation(sale_id, True)

        assert outcome.ok
        assert _quantity(mug.id) == 10
        assert _membership(membership.code).points == 500
        assert _history(membership.code) == []

    def test_points_sale_round_trip(self, db_session, engine, mug, membership):
        sale_id = engine.process_sale_with_points(
            [{"product_id": mug.id, "quantity": 2}], membership.code
        ).result.inserted_id

        outcome = engine.process_sale_cancellation(sale_id, True)

        assert outcome.ok
        assert _quantity(mug.id) == 10
        assert _membership(membership.code).points == 500
        assert _history(membership.code) == []

    def test_points_refund_uses_stored_cost(self, db_session, engine, mug, membership):
        sale_id = engine.process_sale_with_points(
            [{"product_id": mug.id, "quantity": 2}], membership.code
        ).result.inserted_id

        # Catalog repricing after the sale must not change the refund
        ProductLedger().update(mug.id, {"points_price": 75})
        db.session.commit()

        engine.process_sale_cancellation(sale_id, True)
        assert _membership(membership.code).points == 500

    def test_only_matching_history_entries_are_removed(self, db_session, engine, coffee, membership):
        first = engine.process_sale([{"product_id": coffee.id, "quantity": 10}], membership.code).inserted_id
        second = engine.process_sale([{"product_id": coffee.id, "quantity": 20}], membership.code).inserted_id

        engine.process_sale_cancellation(first, True)

        assert [entry["sale_id"] for entry in _history(membership.code)] == [str(second)]

    @pytest.mark.parametrize(
        "cancel_first,requested,message",
        [
            (True, False, "It is not possible to undo a sale cancellation."),
            (False, False, "Sale is already valid."),
            (True, True, "Sale is already canceled."),
        ],
    )
    def test_invalid_transitions_are_rejected(self, db_session, engine, coffee, cancel_first, requested, message):
        sale_id = engine.process_sale([{"product_id": coffee.id, "quantity": 2}]).inserted_id
        if cancel_first:
            engine.process_sale_cancellation(sale_id, True)
        quantity_before = _quantity(coffee.id)

        outcome = engine.process_sale_cancellation(sale_id, requested)

        assert outcome.error_message == message
        assert _quantity(coffee.id) == quantity_before
        assert db.session.get(Sale, sale_id).is_cancelled is cancel_first

    def test_unknown_sale(self, db_session, engine):
        with pytest.raises(SaleNotFound):
            engine.process_sale_cancellation(12345, True)

    def test_awarded_points_already_spent(self, db_session, engine, mug):
        member = make_membership(db_session, code="SPENT001", points=0)
        sale_id = engine.process_sale([{"product_id": mug.id, "quantity": 4}], member.code).inserted_id
        assert _membership(member.code).points == 10

        engine.process_sale_with_points([{"product_id": make_product(db_session, points_price=10).id, "quantity": 1}], member.code)
        assert _membership(member.code).points == 0

        outcome = engine.process_sale_cancellation(sale_id, True)

        assert outcome.error_message == "Membership does not have enough points to reverse this sale."
        assert db.session.get(Sale, sale_id).is_cancelled is False
        assert _quantity(mug.id) == 6


# =============================================================================
# FATAL FAILURES ROLL BACK
# =============================================================================


class RefusingHistoryLedger(MembershipLedger):
    def append_history(self, code, entry):
        return UpdateResult(matched_count=0)

    def remove_history(self, code, sale_id):
        return UpdateResult(matched_count=0)


class RefusingSaleLedger(SaleLedger):
    def mark_cancelled(self, sale_id):
        return UpdateResult(matched_count=0)


class TestRollback:
    def test_history_failure_undoes_stock_points_and_sale(self, db_session, mug, membership):
        engine = SaleTransactionEngine(ProductLedger(), RefusingHistoryLedger(), SaleLedger())

        with pytest.raises(HistoryUpdateFailed):
            engine.process_sale([{"product_id": mug.id, "quantity": 2}], membership.code)

        assert _quantity(mug.id) == 10
        assert _membership(membership.code).points == 500
        assert db.session.query(Sale).count() == 0
        assert db.session.query(MembershipPurchase).count() == 0

    def test_history_failure_undoes_points_sale(self, db_session, mug, membership):
        engine = SaleTransactionEngine(ProductLedger(), RefusingHistoryLedger(), SaleLedger())

        with pytest.raises(HistoryUpdateFailed):
            engine.process_sale_with_points([{"product_id": mug.id, "quantity": 2}], membership.code)

        assert _quantity(mug.id) == 10
        assert _membership(membership.code).points == 500
        assert db.session.query(Sale).count() == 0

    def test_sale_update_failure_undoes_restocking(self, db_session, engine, coffee):
        sale_id = engine.process_sale([{"product_id": coffee.id, "quantity": 2}]).inserted_id
        refusing = SaleTransactionEngine(ProductLedger(), MembershipLedger(), RefusingSaleLedger())

        with pytest.raises(SaleUpdateFailed):
            refusing.process_sale_cancellation(sale_id, True)

        assert _quantity(coffee.id) == 48
        assert db.session.get(Sale, sale_id).is_cancelled is False

    def test_history_removal_failure_undoes_cancellation(self, db_session, engine, mug, membership):
        sale_id = engine.process_sale([{"product_id": mug.id, "quantity": 2}], membership.code).inserted_id
        refusing = SaleTransactionEngine(ProductLedger(), RefusingHistoryLedger(), SaleLedger())

        with pytest.raises(HistoryUpdateFailed):
            refusing.process_sale_cancellation(sale_id, True)

        assert _quantity(mug.id) == 8
        assert _membership(membership.code).points == 505
        assert db.session.get(Sale, sale_id).is_cancelled is False
        assert len(_history(membership.code)) == 1
