# backend/stockpos/__init__.py
import logging

from flask import Flask, current_app

from .config import Config
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so metadata is complete before create_all
    from . import models  # noqa: F401
    from .store import LedgerStore

    store = LedgerStore(db, config=app.config)
    with app.app_context():
        store.open()
    app.extensions["ledger_store"] = store

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.admin import admin_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.customers import customers_bp
    from .routes.expenses import expenses_bp
    from .routes.reports import reports_bp
    from .routes.communications import communications_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(communications_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def get_store():
    """The LedgerStore opened by create_app() for the current app."""
    return current_app.extensions["ledger_store"]
