from __future__ import annotations

from ..extensions import db
from storeapi.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    A customer optionally owns one membership through `membership_code`.
    Deleting the customer deletes that membership as well (customers_service).
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_last_first", "last_name", "first_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(30), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    address_first_line = db.Column(db.String(80), nullable=False)
    address_last_line = db.Column(db.String(60), nullable=True)
    address_city = db.Column(db.String(20), nullable=False)

    membership_code = db.Column(db.String(8), nullable=True, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        address = {
            "first_line": self.address_first_line,
            "city": self.address_city,
        }
        if self.address_last_line:
            address["last_line"] = self.address_last_line

        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "address": address,
            "membership_code": self.membership_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
