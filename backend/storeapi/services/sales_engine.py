# Overview: Sale transaction engine; coordinates products, memberships and sales for every sale write.

"""
Sale Transaction Engine - cash sales, points redemptions and cancellations.

WHY: A sale touches three entities (product stock, membership points and
purchase history, the sale document). The engine is the only code allowed to
change stock as part of a sale, a membership's points, or its history.

OPERATIONS:
- process_sale: cash sale, optionally accruing points on a membership
- process_sale_with_points: redemption sale paid with membership points
- process_sale_cancellation: reverse either kind

OUTCOMES:
- Business rejections (not enough points, invalid cancellation transition)
  come back as SaleOutcome(error_message=...). Nothing has been mutated.
- Fatal consistency failures (a dependent write matched zero rows) raise a
  SaleConsistencyError subclass. The whole operation is rolled back.

TRANSACTION MODEL:
Each public operation runs inside one database transaction. Every quantity and
points change is an atomic `col = col + :delta` UPDATE (see ledgers.py), so
concurrent sales cannot lose each other's updates, and a fatal failure halfway
through leaves no partial state behind. No retries are attempted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional

from ..extensions import db
from ..models import Sale, SaleKind, SaleLine
from .ledgers import (
    HistoryEntry,
    InsertResult,
    MembershipLedger,
    ProductLedger,
    SaleLedger,
    UpdateResult,
)
from storeapi.time_utils import today

logger = logging.getLogger(__name__)


# Cash spent per loyalty point awarded.
POINTS_CONVERSION_RATE = 10

NOT_ENOUGH_POINTS = "Not enough points, please choose lower quantities."
POINTS_ALREADY_REDEEMED = "Membership does not have enough points to reverse this sale."

# (currently cancelled, cancellation requested) -> rejection message.
# (False, True) is the only transition that proceeds.
CANCELLATION_REJECTIONS = {
    (True, False): "It is not possible to undo a sale cancellation.",
    (False, False): "Sale is already valid.",
    (True, True): "Sale is already canceled.",
}


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleNotFound(SaleError):
    """Raised when the sale to cancel does not exist."""


class SaleConsistencyError(SaleError):
    """A dependent write matched no rows; the operation was rolled back."""


class InventoryUpdateFailed(SaleConsistencyError):
    pass


class PointsUpdateFailed(SaleConsistencyError):
    pass


class HistoryUpdateFailed(SaleConsistencyError):
    pass


class SaleUpdateFailed(SaleConsistencyError):
    pass


@dataclass(frozen=True)
class CartItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class SaleOutcome:
    """Exactly one of error_message / result is set."""

    error_message: Optional[str] = None
    result: Any = None

    @property
    def ok(self) -> bool:
        return self.error_message is None


def calculate_points(total_amount: Decimal) -> int:
    """Points awarded for a cash total: floor(total / POINTS_CONVERSION_RATE)."""
    return int(Decimal(str(total_amount)) // POINTS_CONVERSION_RATE)


def normalize_cart(products: Iterable) -> list[CartItem]:
    """Accept CartItems or {product_id, quantity} mappings, preserving order."""
    items = []
    for item in products or []:
        if isinstance(item, CartItem):
            items.append(item)
        else:
            items.append(CartItem(product_id=int(item["product_id"]), quantity=int(item["quantity"])))

    if not items:
        raise SaleError("Cannot process a sale with no products")

    for item in items:
        if item.quantity < 1:
            raise SaleError(
                "Quantity must be at least 1",
                details={"product_id": item.product_id, "quantity": item.quantity},
            )
    return items


class SaleTransactionEngine:
    """
    Orchestrates sale writes across the three ledgers.

    Ledgers are injected so tests (and alternative stores) can substitute
    their own implementations; `create_app` wires the SQLAlchemy ones.
    """

    def __init__(
        self,
        products: ProductLedger,
        memberships: MembershipLedger,
        sales: SaleLedger,
        session=None,
    ):
        self.products = products
        self.memberships = memberships
        self.sales = sales
        self._session = session if session is not None else db.session

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def process_sale(self, products: Iterable, membership_code: str | None = None) -> InsertResult:
        """
        Create a cash sale. With a membership code, award
        floor(total / 10) points and append a purchase-history entry.

        Returns the InsertResult of the sale document; callers re-read the
        sale for response bodies.
        """
        items = normalize_cart(products)

        def _op():
            lines, total_amount = self._take_stock(items, SaleKind.CASH)

            sale = Sale(
                sale_date=today(),
                kind=SaleKind.CASH.value,
                total_amount=total_amount,
                is_cancelled=False,
                lines=lines,
            )

            if not membership_code:
                return self._create_sale(sale)

            points = calculate_points(total_amount)
            self._adjust_points(membership_code, points, "Error while adding points to membership.")

            sale.kind = SaleKind.CASH_MEMBERSHIP.value
            sale.membership_code = membership_code
            sale.points = points
            result = self._create_sale(sale)

            self._append_history(
                membership_code,
                HistoryEntry(sale_id=result.inserted_id, purchase_date=sale.sale_date, amount=total_amount),
            )
            return result

        result = self._run(_op, "process_sale")
        logger.info(
            "Sale %s created (%d lines, membership=%s)",
            result.inserted_id, len(items), membership_code or "-",
        )
        return result

    def process_sale_with_points(self, products: Iterable, membership_code: str) -> SaleOutcome:
        """
        Create a sale paid with membership points.

        The full points cost is computed and checked against the balance
        before any write; an insufficient balance is a business rejection.
        """
        items = normalize_cart(products)
        if not membership_code:
            raise SaleError("membership_code is required for points sales")

        def _op():
            membership = self.memberships.get(membership_code)
            if membership is None:
                raise PointsUpdateFailed(
                    "Membership not found.", details={"membership_code": membership_code}
                )

            total_points = 0
            for item in items:
                product = self._require_product(item.product_id)
                total_points += item.quantity * product.points_price

            if membership.points < total_points:
                return SaleOutcome(error_message=NOT_ENOUGH_POINTS)

            lines, _ = self._take_stock(items, SaleKind.POINTS)

            sale = Sale(
                sale_date=today(),
                kind=SaleKind.POINTS.value,
                membership_code=membership_code,
                points_used=total_points,
                is_cancelled=False,
                lines=lines,
            )
            result = self._create_sale(sale)

            self._adjust_points(membership_code, -total_points, "Error while removing points from membership.")
            self._append_history(
                membership_code,
                HistoryEntry(sale_id=result.inserted_id, purchase_date=sale.sale_date, points_used=total_points),
            )
            return SaleOutcome(result=result)

        outcome = self._run(_op, "process_sale_with_points")
        if outcome.ok:
            logger.info("Points sale %s created (membership=%s)", outcome.result.inserted_id, membership_code)
        else:
            logger.info("Points sale rejected for membership %s: %s", membership_code, outcome.error_message)
        return outcome

    def process_sale_cancellation(self, sale_id: int, is_cancelled: bool) -> SaleOutcome:
        """
        Cancel an active sale and reverse its effects.

        Stock is restored line by line from the stored snapshot. Membership
        effects are reversed from the stored values (points_used / points),
        never recomputed from the current catalog or conversion rate.
        """

        def _op():
            sale = self.sales.get(sale_id, lock=True)
            if sale is None:
                raise SaleNotFound("Sale not found", details={"sale_id": sale_id})

            rejection = CANCELLATION_REJECTIONS.get((bool(sale.is_cancelled), bool(is_cancelled)))
            if rejection:
                return SaleOutcome(error_message=rejection)

            kind = sale.sale_kind
            if kind == SaleKind.CASH_MEMBERSHIP:
                membership = self.memberships.get(sale.membership_code)
                if membership is not None and membership.points < (sale.points or 0):
                    return SaleOutcome(error_message=POINTS_ALREADY_REDEEMED)

            for line in sale.lines:
                self._adjust_stock(line.product_id, line.quantity)

            result = self.sales.mark_cancelled(sale.id)
            if not result.matched:
                raise SaleUpdateFailed("Error while updating a sale.", details={"sale_id": sale.id})

            if kind == SaleKind.POINTS:
                self._adjust_points(sale.membership_code, sale.points_used, "Error while adding points to membership.")
                self._remove_history(sale.membership_code, sale.id)
            elif kind == SaleKind.CASH_MEMBERSHIP:
                self._adjust_points(sale.membership_code, -(sale.points or 0), "Error while removing points from membership.")
                self._remove_history(sale.membership_code, sale.id)

            return SaleOutcome(result=result)

        outcome = self._run(_op, "process_sale_cancellation")
        if outcome.ok:
            logger.info("Sale %s cancelled", sale_id)
        else:
            logger.info("Cancellation of sale %s rejected: %s", sale_id, outcome.error_message)
        return outcome

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run(self, op, name: str):
        try:
            value = op()
            self._session.commit()
            return value
        except SaleConsistencyError as exc:
            self._session.rollback()
            logger.error("%s rolled back: %s %s", name, exc, exc.details)
            raise
        except Exception:
            self._session.rollback()
            raise

    def _require_product(self, product_id: int):
        product = self.products.get(product_id)
        if product is None:
            raise InventoryUpdateFailed(
                "Error while updating a stored product.",
                details={"product_id": product_id, "reason": "not found"},
            )
        return product

    def _take_stock(self, items: list[CartItem], kind: SaleKind) -> tuple[list[SaleLine], Decimal]:
        """Decrement stock for each cart line in order and build the sale line snapshots."""
        lines: list[SaleLine] = []
        total_amount = Decimal("0")

        for position, item in enumerate(items):
            product = self._require_product(item.product_id)

            line = SaleLine(
                position=position,
                product_id=product.id,
                product_name=product.name,
                quantity=item.quantity,
            )
            if kind == SaleKind.POINTS:
                line.points = product.points_price
            else:
                line.price = product.price
                total_amount += item.quantity * Decimal(str(product.price))

            self._adjust_stock(product.id, -item.quantity)
            lines.append(line)

        return lines, total_amount

    def _adjust_stock(self, product_id: int, delta: int) -> UpdateResult:
        result = self.products.adjust_quantity(product_id, delta)
        if not result.matched:
            raise InventoryUpdateFailed(
                "Error while updating a stored product.",
                details={"product_id": product_id, "quantity_delta": delta},
            )
        return result

    def _adjust_points(self, membership_code: str, delta: int, message: str) -> UpdateResult:
        result = self.memberships.adjust_points(membership_code, delta)
        if not result.matched:
            raise PointsUpdateFailed(
                message, details={"membership_code": membership_code, "points_delta": delta}
            )
        return result

    def _create_sale(self, sale: Sale) -> InsertResult:
        result = self.sales.create(sale)
        if not result.acknowledged:
            raise SaleUpdateFailed("Error while creating a sale.")
        return result

    def _append_history(self, membership_code: str, entry: HistoryEntry) -> None:
        result = self.memberships.append_history(membership_code, entry)
        if not result.matched:
            raise HistoryUpdateFailed(
                "Error while updating purchase history.",
                details={"membership_code": membership_code, "sale_id": entry.sale_id},
            )

    def _remove_history(self, membership_code: str, sale_id: int) -> None:
        result = self.memberships.remove_history(membership_code, sale_id)
        if not result.matched:
            raise HistoryUpdateFailed(
                "Error while updating purchase history.",
                details={"membership_code": membership_code, "sale_id": sale_id},
            )


def build_engine(session=None) -> SaleTransactionEngine:
    """Assemble the engine with the SQLAlchemy-backed ledgers."""
    return SaleTransactionEngine(
        products=ProductLedger(session),
        memberships=MembershipLedger(session),
        sales=SaleLedger(session),
        session=session,
    )
