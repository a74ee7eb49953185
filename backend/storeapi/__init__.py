# backend/storeapi/__init__.py
import logging

from flask import Flask
from werkzeug.routing import IntegerConverter

from .config import Config
from .extensions import db, migrate


def _configure_logging(app: Flask) -> None:
    """Attach one console handler to the package logger at LOG_LEVEL."""
    logger = logging.getLogger(__name__)
    logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    if logger.handlers:
        return

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)


class RowIdConverter(IntegerConverter):
    """`<int:...>` URL parts capped at the largest id the database can store."""

    def __init__(self, map, *args, **kwargs):
        from .validation import MAX_INTEGER
        kwargs.setdefault("max", MAX_INTEGER)
        super().__init__(map, *args, **kwargs)


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # One engine per app, shared by every request
    from .services.sales_engine import build_engine
    app.extensions["sale_engine"] = build_engine()

    from .openapi import build_openapi_spec
    app.extensions["openapi_spec"] = build_openapi_spec()

    # Larger ids fall through to the JSON 404 instead of overflowing the driver
    app.url_map.converters["int"] = RowIdConverter

    # Register blueprints
    from .routes.system import system_bp
    from .routes.docs import docs_bp
    from .routes.products import products_bp
    from .routes.customers import customers_bp
    from .routes.memberships import memberships_bp
    from .routes.sales import sales_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(docs_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(memberships_bp)
    app.register_blueprint(sales_bp)

    @app.errorhandler(404)
    def not_found(_error):
        return {"error": "Sorry, this route doesn't exist."}, 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return {"error": "Method not allowed"}, 405

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
