# backend/storeapi/services/products_service.py
"""
Products Service

Plain catalog CRUD. Stock changes made by sales never come through here;
they go through the sale engine's atomic quantity updates.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..validation import ConflictError
from .ledgers import ProductLedger
from .pagination import paginate

PRODUCT_MUTABLE_FIELDS = {"name", "description", "category", "brand", "quantity", "price", "points_price"}


def list_products(page: int | None = None, per_page: int | None = None) -> dict:
    """Catalog listing ordered by name, paginated."""
    query = db.session.query(Product).order_by(Product.name.asc(), Product.id.asc())
    return paginate(query, page=page, per_page=per_page)


def get_product(product_id: int) -> Product | None:
    return ProductLedger().get(product_id)


def create_product(*, patch: dict) -> dict:
    """Create product using a validated patch dict."""
    product = Product(**{k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS})
    db.session.add(product)
    db.session.commit()
    return product.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict | None:
    """
    Apply a validated partial update.

    Returns the updated product dict, or None when the product does not
    exist (or was changed concurrently).
    """
    fields = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}
    result = ProductLedger().update(product_id, fields)
    if not result.matched:
        db.session.rollback()
        return None

    db.session.commit()
    return get_product(product_id).to_dict()


def delete_product(*, product_id: int) -> bool:
    """
    Remove a product from the catalog.

    Refused while an active sale contains it: cancelling that sale has to
    restock the product. Products that only appear in cancelled sales can go.
    """
    product = get_product(product_id)
    if product is None:
        return False

    in_active_sale = (
        db.session.query(SaleLine.id)
        .join(Sale, Sale.id == SaleLine.sale_id)
        .filter(SaleLine.product_id == product_id, Sale.is_cancelled == False)  # noqa: E712
        .first()
    )
    if in_active_sale is not None:
        raise ConflictError("Product is part of an active sale and cannot be deleted.")

    db.session.delete(product)
    db.session.commit()
    return True
