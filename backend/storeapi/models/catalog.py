from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from storeapi.time_utils import to_utc_z


def money_to_json(value: Decimal | None) -> float | None:
    """Monetary columns are Numeric(12, 2); responses carry plain JSON numbers."""
    if value is None:
        return None
    return float(value)


class Product(db.Model):
    """
    Catalog product.

    INVENTORY: `quantity` is the stock on hand. Outside of catalog edits it is
    only changed by the sale engine, always through a single atomic
    `quantity = quantity + :delta` UPDATE (see ProductLedger.adjust_quantity).

    PRICING:
    - price: unit price charged on cash sales
    - points_price: loyalty-point cost of one unit on points-redemption sales
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("points_price >= 0", name="ck_products_points_price_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(30), nullable=False)
    description = db.Column(db.String(80), nullable=False)
    category = db.Column(db.String(30), nullable=False)
    brand = db.Column(db.String(30), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    price = db.Column(db.Numeric(12, 2), nullable=False)
    points_price = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "brand": self.brand,
            "quantity": self.quantity,
            "price": money_to_json(self.price),
            "points_price": self.points_price,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
