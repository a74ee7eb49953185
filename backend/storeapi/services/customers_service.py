# backend/storeapi/services/customers_service.py
"""
Customers Service

CRUD for customers. A customer's membership is opened, toggled and deleted
together with the customer through memberships_service.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Customer
from . import memberships_service
from .pagination import paginate

CUSTOMER_MUTABLE_FIELDS = {
    "first_name",
    "last_name",
    "email",
    "address_first_line",
    "address_last_line",
    "address_city",
}


def list_customers(page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Customer).order_by(Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc())
    return paginate(query, page=page, per_page=per_page)


def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def get_customer_by_membership(code: str) -> Customer | None:
    return db.session.query(Customer).filter_by(membership_code=code).first()


def create_customer(*, patch: dict, membership: bool = False) -> dict:
    """Create a customer; `membership=True` opens a membership in the same transaction."""
    customer = Customer(**{k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS})
    db.session.add(customer)

    try:
        if membership:
            customer.membership_code = memberships_service.create_membership(commit=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return customer.to_dict()


def update_customer(*, customer_id: int, patch: dict, membership: bool | None = None) -> dict | None:
    """
    Partial update. When `membership` is given it activates, deactivates or
    opens the customer's membership.
    """
    customer = get_customer(customer_id)
    if customer is None:
        return None

    try:
        for key, value in patch.items():
            if key in CUSTOMER_MUTABLE_FIELDS:
                setattr(customer, key, value)
        if membership is not None:
            memberships_service.set_customer_membership(customer, membership)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return customer.to_dict()


def delete_customer(*, customer_id: int) -> bool:
    """Delete the customer and its membership. Sales keep their membership_code."""
    customer = get_customer(customer_id)
    if customer is None:
        return False

    try:
        if customer.membership_code:
            memberships_service.delete_membership(customer.membership_code, commit=False)
        db.session.delete(customer)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return True
