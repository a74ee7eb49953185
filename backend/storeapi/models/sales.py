from __future__ import annotations

from enum import Enum

from ..extensions import db
from storeapi.time_utils import to_iso_date, to_utc_z
from .catalog import money_to_json


class SaleKind(str, Enum):
    """
    Discriminant written when a sale is created.

    Cancellation dispatches on this value instead of guessing the sale type
    from whichever optional columns happen to be populated.
    """

    CASH = "CASH"
    CASH_MEMBERSHIP = "CASH_MEMBERSHIP"
    POINTS = "POINTS"


class Sale(db.Model):
    """
    Sale document.

    LIFECYCLE: Active -> Cancelled only. `is_cancelled` is the only field that
    changes after creation; sales are never deleted.

    FIELDS BY KIND:
    - CASH: total_amount
    - CASH_MEMBERSHIP: total_amount, membership_code, points (awarded)
    - POINTS: membership_code, points_used
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_membership_code", "membership_code"),
        db.Index("ix_sales_date_cancelled", "sale_date", "is_cancelled"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_date = db.Column(db.Date, nullable=False)
    kind = db.Column(db.String(32), nullable=False, index=True)

    # Not a foreign key: the membership may be deleted with its customer later on.
    membership_code = db.Column(db.String(8), nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=True)
    points = db.Column(db.Integer, nullable=True)
    points_used = db.Column(db.Integer, nullable=True)

    is_cancelled = db.Column(db.Boolean, nullable=False, default=False)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def sale_kind(self) -> SaleKind:
        return SaleKind(self.kind)

    def __repr__(self) -> str:
        return f"<Sale id={self.id} kind={self.kind} cancelled={self.is_cancelled}>"

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "sale_date": to_iso_date(self.sale_date),
            "kind": self.kind,
            "products": [line.to_dict() for line in self.lines],
            "is_cancelled": self.is_cancelled,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }

        kind = self.sale_kind
        if kind in (SaleKind.CASH, SaleKind.CASH_MEMBERSHIP):
            data["total_amount"] = money_to_json(self.total_amount)
        if kind == SaleKind.CASH_MEMBERSHIP:
            data["membership_code"] = self.membership_code
            data["points"] = self.points
        if kind == SaleKind.POINTS:
            data["membership_code"] = self.membership_code
            data["points_used"] = self.points_used
        return data


class SaleLine(db.Model):
    """
    Snapshot of one cart line at sale time.

    price (cash kinds) or points (POINTS kind) hold the unit cost read from the
    product when the sale was made; later catalog edits do not touch them.
    """
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    # Not a foreign key: a product can leave the catalog once its sales are cancelled.
    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(30), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=True)
    points = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        line = {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
        }
        if self.points is not None:
            line["points"] = self.points
        else:
            line["price"] = money_to_json(self.price)
        return line
