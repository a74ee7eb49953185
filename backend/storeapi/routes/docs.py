# backend/storeapi/routes/docs.py
"""
API documentation endpoints.

GET /api-docs  OpenAPI 3 description of every endpoint (public)
GET /          redirect to /api-docs
"""

from flask import Blueprint, current_app, redirect, url_for

docs_bp = Blueprint("docs", __name__)


@docs_bp.get("/api-docs")
def api_docs():
    return current_app.extensions["openapi_spec"].to_dict(), 200


@docs_bp.get("/")
def index():
    return redirect(url_for("docs.api_docs"))
