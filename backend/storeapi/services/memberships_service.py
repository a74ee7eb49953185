# backend/storeapi/services/memberships_service.py
"""
Memberships Service

Issues and toggles loyalty memberships. Points and purchase history are
never touched here; only the sale engine changes them.
"""
from __future__ import annotations

import secrets
import string

from ..extensions import db
from ..models import Customer, Membership
from .ledgers import MembershipLedger
from .pagination import paginate
from storeapi.time_utils import today

MEMBERSHIP_CODE_LENGTH = 8
MEMBERSHIP_CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
MAX_CODE_ATTEMPTS = 10


class MembershipError(Exception):
    """Raised when a membership cannot be issued."""


def generate_membership_code() -> str:
    """Random 8-character alphanumeric code."""
    return "".join(secrets.choice(MEMBERSHIP_CODE_ALPHABET) for _ in range(MEMBERSHIP_CODE_LENGTH))


def list_memberships(page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Membership).order_by(Membership.id.asc())
    return paginate(query, page=page, per_page=per_page)


def get_membership(code: str) -> Membership | None:
    return MembershipLedger().get(code)


def create_membership(*, commit: bool = True) -> str:
    """
    Open a new active membership with zero points.

    Returns the generated code. Codes are regenerated on collision.
    """
    for _ in range(MAX_CODE_ATTEMPTS):
        code = generate_membership_code()
        if get_membership(code) is None:
            break
    else:
        raise MembershipError("Error while generating a membership code.")

    membership = Membership(code=code, registration_date=today(), points=0, active=True)
    db.session.add(membership)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return code


def delete_membership(code: str, *, commit: bool = True) -> bool:
    membership = get_membership(code)
    if membership is None:
        return False

    db.session.delete(membership)
    if commit:
        db.session.commit()
    return True


def update_membership(code: str, active: bool, *, commit: bool = True) -> bool:
    """Set the active flag. Returns False when the membership does not exist."""
    result = MembershipLedger().update(code, {"active": bool(active)})
    if not result.matched:
        if commit:
            db.session.rollback()
        return False

    if commit:
        db.session.commit()
    return True


def set_customer_membership(customer: Customer, active: bool) -> bool:
    """
    Apply a membership flag to a customer without committing.

    - Customer has a membership: set its active flag.
    - No membership and active=True: open one and link it to the customer.
    - No membership and active=False: nothing to do (False).
    """
    if customer.membership_code:
        return update_membership(customer.membership_code, active, commit=False)

    if not active:
        return False

    customer.membership_code = create_membership(commit=False)
    db.session.flush()
    return True


def activate_deactivate_membership(customer_id: int, active: bool) -> bool:
    """Toggle (or open) the membership of a customer. False when nothing changed."""
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        return False

    changed = set_customer_membership(customer, active)
    if changed:
        db.session.commit()
    return changed
