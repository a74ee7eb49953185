# Overview: Per-entity data access for products, memberships and sales used by the sale engine.

"""
Ledgers - one repository per entity.

WHY: The sale engine coordinates three independently stored entities. Each
ledger owns the reads and writes of one table and reports writes the way a
document store would: an UpdateResult carrying the number of matched rows, or
an InsertResult carrying the generated id. Zero matched rows means the target
is gone or a guard rejected the change; the engine treats that as fatal.

ATOMICITY:
- Quantity and points changes are single `col = col + :delta` UPDATE
  statements guarded by `col + :delta >= 0`, never read-modify-write.
- Other writes go through the ORM and are protected by the optimistic
  `version_id` column; a stale version is reported as zero matched rows.
- Ledgers only flush. Commit/rollback belongs to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Membership, MembershipPurchase, Product, Sale
from .concurrency import lock_for_update
from storeapi.time_utils import utcnow


@dataclass(frozen=True)
class UpdateResult:
    matched_count: int

    @property
    def matched(self) -> bool:
        return self.matched_count > 0


@dataclass(frozen=True)
class InsertResult:
    acknowledged: bool
    inserted_id: Optional[int]


@dataclass(frozen=True)
class HistoryEntry:
    """Purchase-history entry to append; exactly one of amount/points_used is set."""

    sale_id: int | str
    purchase_date: date
    amount: Optional[Decimal] = None
    points_used: Optional[int] = None


def _expire_cached(session, model, ident) -> None:
    # Atomic UPDATEs bypass the identity map; drop any cached copy of the row.
    obj = session.identity_map.get(session.identity_key(model, ident))
    if obj is not None:
        session.expire(obj)


def _apply_fields(session, obj, fields: dict) -> UpdateResult:
    for key, value in fields.items():
        setattr(obj, key, value)
    try:
        session.flush()
    except StaleDataError:
        return UpdateResult(matched_count=0)
    return UpdateResult(matched_count=1)


class ProductLedger:
    def __init__(self, session=None):
        self._session = session if session is not None else db.session

    def get(self, product_id: int) -> Optional[Product]:
        return self._session.get(Product, product_id)

    def update(self, product_id: int, fields: dict) -> UpdateResult:
        product = self.get(product_id)
        if product is None:
            return UpdateResult(matched_count=0)
        return _apply_fields(self._session, product, fields)

    def adjust_quantity(self, product_id: int, delta: int) -> UpdateResult:
        """Atomically add `delta` to the stock on hand; never lets it drop below zero."""
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.quantity + delta >= 0)
            .values(quantity=Product.quantity + delta, version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        _expire_cached(self._session, Product, product_id)
        return UpdateResult(matched_count=result.rowcount)


class MembershipLedger:
    def __init__(self, session=None):
        self._session = session if session is not None else db.session

    def get(self, code: str) -> Optional[Membership]:
        return self._session.execute(
            select(Membership).where(Membership.code == code)
        ).scalar_one_or_none()

    def update(self, code: str, fields: dict) -> UpdateResult:
        membership = self.get(code)
        if membership is None:
            return UpdateResult(matched_count=0)
        return _apply_fields(self._session, membership, fields)

    def adjust_points(self, code: str, delta: int) -> UpdateResult:
        """Atomically add `delta` points; a debit larger than the balance matches nothing."""
        stmt = (
            update(Membership)
            .where(Membership.code == code, Membership.points + delta >= 0)
            .values(points=Membership.points + delta, version_id=Membership.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        for obj in list(self._session.identity_map.values()):
            if isinstance(obj, Membership) and obj.__dict__.get("code") == code:
                self._session.expire(obj)
        return UpdateResult(matched_count=result.rowcount)

    def append_history(self, code: str, entry: HistoryEntry) -> UpdateResult:
        membership = self.get(code)
        if membership is None:
            return UpdateResult(matched_count=0)

        membership.purchase_history.append(
            MembershipPurchase(
                sale_id=str(entry.sale_id),
                purchase_date=entry.purchase_date,
                amount=entry.amount,
                points_used=entry.points_used,
            )
        )
        return _apply_fields(self._session, membership, {"last_purchase": entry.purchase_date})

    def remove_history(self, code: str, sale_id: int | str) -> UpdateResult:
        """Drop every history entry whose sale_id matches (string comparison)."""
        membership = self.get(code)
        if membership is None:
            return UpdateResult(matched_count=0)

        target = str(sale_id)
        for entry in [e for e in membership.purchase_history if e.sale_id == target]:
            membership.purchase_history.remove(entry)

        try:
            self._session.flush()
        except StaleDataError:
            return UpdateResult(matched_count=0)
        return UpdateResult(matched_count=1)


class SaleLedger:
    def __init__(self, session=None):
        self._session = session if session is not None else db.session

    def create(self, sale: Sale) -> InsertResult:
        self._session.add(sale)
        self._session.flush()
        return InsertResult(acknowledged=sale.id is not None, inserted_id=sale.id)

    def get(self, sale_id: int, *, lock: bool = False) -> Optional[Sale]:
        query = self._session.query(Sale).filter_by(id=sale_id)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def mark_cancelled(self, sale_id: int) -> UpdateResult:
        """Flip an active sale to cancelled; an already-cancelled sale matches nothing."""
        stmt = (
            update(Sale)
            .where(Sale.id == sale_id, Sale.is_cancelled == False)  # noqa: E712
            .values(is_cancelled=True, cancelled_at=utcnow(), version_id=Sale.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        _expire_cached(self._session, Sale, sale_id)
        return UpdateResult(matched_count=result.rowcount)
