from __future__ import annotations

from ..extensions import db
from storeapi.time_utils import to_iso_date, to_utc_z
from .catalog import money_to_json


class Membership(db.Model):
    """
    Loyalty account identified by an 8-character code.

    WHY: The code is independent of the customer id so it can be printed on a
    card and typed at checkout. `points` and the purchase history are only
    mutated by the sale engine as a side effect of sales and cancellations.

    IMMUTABLE: `code` never changes once issued.
    """
    __tablename__ = "memberships"
    __table_args__ = (
        db.CheckConstraint("points >= 0", name="ck_memberships_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), nullable=False, unique=True, index=True)

    registration_date = db.Column(db.Date, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    last_purchase = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase_history = db.relationship(
        "MembershipPurchase",
        backref="membership",
        order_by="MembershipPurchase.id",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Membership code={self.code!r} points={self.points} active={self.active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "registration_date": to_iso_date(self.registration_date),
            "points": self.points,
            "active": self.active,
            "last_purchase": to_iso_date(self.last_purchase),
            "purchase_history": [entry.to_dict() for entry in self.purchase_history],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class MembershipPurchase(db.Model):
    """
    One purchase-history entry on a membership.

    Append-only, except that cancelling a sale removes the entries whose
    sale_id matches it. Exactly one of amount / points_used is set:
    - amount: cash total of a sale made with the membership
    - points_used: points spent on a points-redemption sale

    sale_id is a denormalized back-reference and is not a foreign key.
    """
    __tablename__ = "membership_purchases"
    __table_args__ = (
        db.Index("ix_membership_purchases_membership_sale", "membership_id", "sale_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    membership_id = db.Column(db.Integer, db.ForeignKey("memberships.id"), nullable=False, index=True)

    sale_id = db.Column(db.String(64), nullable=False)
    purchase_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    points_used = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        entry = {
            "sale_id": self.sale_id,
            "date": to_iso_date(self.purchase_date),
        }
        if self.points_used is not None:
            entry["points_used"] = self.points_used
        else:
            entry["amount"] = money_to_json(self.amount)
        return entry
