# backend/storeapi/services/sales_service.py
"""
Sales Service - read access to sales and the request-side entry to the engine.

WHY: Routes should not reach into app.extensions or know which engine method
matches which endpoint. Writes are delegated to the SaleTransactionEngine
assembled at startup; reads go straight to the sales table.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Sale
from .ledgers import SaleLedger
from .pagination import paginate
from .sales_engine import SaleOutcome, SaleTransactionEngine


def get_engine() -> SaleTransactionEngine:
    return current_app.extensions["sale_engine"]


def list_sales(page: int | None = None, per_page: int | None = None) -> dict:
    """Newest sales first."""
    query = db.session.query(Sale).order_by(Sale.id.desc())
    return paginate(query, page=page, per_page=per_page)


def get_sale(sale_id: int) -> Sale | None:
    return SaleLedger().get(sale_id)


def create_cash_sale(cart: list[dict], membership_code: str | None = None) -> Sale:
    """Run a cash sale and return the stored document."""
    result = get_engine().process_sale(cart, membership_code)
    return get_sale(result.inserted_id)


def create_points_sale(cart: list[dict], membership_code: str) -> tuple[Sale | None, SaleOutcome]:
    """Run a points sale. The Sale is None when the engine rejected it."""
    outcome = get_engine().process_sale_with_points(cart, membership_code)
    if not outcome.ok:
        return None, outcome
    return get_sale(outcome.result.inserted_id), outcome


def cancel_sale(sale_id: int, is_cancelled: bool) -> tuple[Sale | None, SaleOutcome]:
    outcome = get_engine().process_sale_cancellation(sale_id, is_cancelled)
    if not outcome.ok:
        return None, outcome
    return get_sale(sale_id), outcome
