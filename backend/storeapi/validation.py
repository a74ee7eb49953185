from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .extensions import db
from .models import Membership, Product


# Every text field has a floor of 2 characters; ceilings come from String(n).
MIN_TEXT_LENGTH = 2
MIN_PRICE = Decimal("0.01")
# Largest value Numeric(12, 2) holds
MAX_PRICE = Decimal("9999999999.99")
MEMBERSHIP_CODE_LENGTH = 8
# Largest value a SQLite / BIGINT column holds
MAX_INTEGER = 2**63 - 1

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., deleting a product of an active sale)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_integer(key: str, value: Any) -> int:
    number = _parse_integer(key, value)
    if abs(number) > MAX_INTEGER:
        raise ValidationError(f"{key} is out of range")
    return number


def _parse_integer(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    if isinstance(value, (int, float, str, Decimal)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{key} must be a number")
        if not number.is_finite():
            raise ValidationError(f"{key} must be a number")
        if number.as_tuple().exponent < -2:
            raise ValidationError(f"{key} cannot have more than 2 decimal places")
        return number
    raise ValidationError(f"{key} must be a number")


def parse_bool(key: str, value: Any) -> bool:
    """Accept JSON booleans and the strings "true"/"false" (any case)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be a boolean")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Numeric must be checked before Integer handling of plain numbers
    if isinstance(coltype, Numeric) and not isinstance(coltype, Integer):
        return _coerce_decimal(col.key, value)

    if isinstance(coltype, Integer):
        return _coerce_integer(col.key, value)

    if isinstance(coltype, Boolean):
        return parse_bool(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise ValidationError(f"{col.key} must be a string")
        return value.strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and isinstance(val, str):
            if val == "":
                if not col.nullable:
                    raise ValidationError(f"{k} cannot be blank")
                patch[k] = None
                continue
            if len(val) < MIN_TEXT_LENGTH:
                raise ValidationError(f"{k} must be at least {MIN_TEXT_LENGTH} characters")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if patch.get("price") is not None:
        price = patch["price"]
        if price < MIN_PRICE:
            raise ValidationError("price must be >= 0.01")
        if price > MAX_PRICE:
            raise ValidationError(f"price cannot exceed {MAX_PRICE}")

    if patch.get("quantity") is not None and patch["quantity"] < 0:
        raise ValidationError("quantity must be >= 0")

    if patch.get("points_price") is not None and patch["points_price"] < 0:
        raise ValidationError("points_price must be >= 0")


def flatten_customer_payload(payload: dict) -> dict:
    """
    Customer JSON nests the address; the table stores it flat.

    {"address": {"first_line", "last_line", "city"}} becomes
    address_first_line / address_last_line / address_city.
    The `membership` flag is not a column and is left out.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    flat = {k: v for k, v in payload.items() if k not in ("address", "membership")}
    if "address" in payload:
        address = payload["address"]
        if not isinstance(address, dict):
            raise ValidationError("address must be an object")
        for key in ("first_line", "last_line", "city"):
            if key in address:
                flat[f"address_{key}"] = address[key]
        unknown = set(address) - {"first_line", "last_line", "city"}
        if unknown:
            raise ValidationError(f"Unknown field: address.{sorted(unknown)[0]}")
    return flat


def enforce_rules_customer(patch: dict) -> None:
    if patch.get("email") is not None:
        email = patch["email"].lower()
        if not EMAIL_RE.match(email):
            raise ValidationError("email must be a valid email address")
        patch["email"] = email


def parse_positive_int(key: str, value: Any) -> int:
    if value is None:
        raise ValidationError(f"{key} is required")
    number = _coerce_integer(key, value)
    if number < 1:
        raise ValidationError(f"{key} must be a positive integer")
    return number


def validate_membership_code(value: Any, *, required: bool) -> str | None:
    """
    Check a membership code against the store.

    Returns the code, or None when it is optional and absent.
    """
    if value is None or value == "":
        if required:
            raise ValidationError("membership_code is required")
        return None
    if not isinstance(value, str) or len(value) != MEMBERSHIP_CODE_LENGTH:
        raise ValidationError(f"membership_code must be {MEMBERSHIP_CODE_LENGTH} characters")

    membership = db.session.query(Membership).filter_by(code=value).first()
    if membership is None:
        raise ValidationError("membership_code does not exist.")
    if not membership.active:
        raise ValidationError("membership_code is not active.")
    return value


def validate_sale_payload(payload: dict, *, points_sale: bool = False) -> tuple[list[dict], str | None]:
    """
    Validate a sale request body.

    - products: non-empty list of {product_id, quantity}
    - each product must exist and have enough stock for the requested quantity
    - membership_code: optional for cash sales, required for points sales

    Returns (cart, membership_code). The stock check is advisory; the engine's
    guarded updates are what actually keep quantities non-negative.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    products = payload.get("products")
    if not isinstance(products, list) or not products:
        raise ValidationError("products must be a non-empty list")

    cart: list[dict] = []
    requested: dict[int, int] = {}
    for item in products:
        if not isinstance(item, dict):
            raise ValidationError("each product must be an object with product_id and quantity")
        product_id = parse_positive_int("product_id", item.get("product_id"))
        quantity = parse_positive_int("quantity", item.get("quantity"))

        product = db.session.get(Product, product_id)
        if product is None:
            raise ValidationError(f"product_id {product_id} does not exist.")

        # Same product on several lines counts against one stock figure
        requested[product_id] = requested.get(product_id, 0) + quantity
        if requested[product_id] > product.quantity:
            raise ValidationError(f"({product.id}) {product.name} quantity is greater than available quantity.")

        cart.append({"product_id": product_id, "quantity": quantity})

    membership_code = validate_membership_code(payload.get("membership_code"), required=points_sale)
    return cart, membership_code


def validate_cancellation_payload(payload: dict) -> bool:
    if not isinstance(payload, dict) or "is_cancelled" not in payload:
        raise ValidationError("is_cancelled is required")
    return parse_bool("is_cancelled", payload["is_cancelled"])


def validate_membership_payload(payload: dict) -> tuple[int, bool]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    customer_id = parse_positive_int("customer_id", payload.get("customer_id"))
    if "membership" not in payload:
        raise ValidationError("membership is required")
    return customer_id, parse_bool("membership", payload["membership"])
