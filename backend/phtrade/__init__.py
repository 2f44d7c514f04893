# backend/phtrade/__init__.py
from flask import Flask, jsonify

from .config import Config
from .errors import PhTradeError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.pharmacies import pharmacies_bp
    from .routes.contacts import contacts_bp
    from .routes.records import records_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(pharmacies_bp)
    app.register_blueprint(contacts_bp)
    app.register_blueprint(records_bp)

    @app.errorhandler(PhTradeError)
    def handle_phtrade_error(exc: PhTradeError):
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s (%s)", exc.message, exc.code)
        return jsonify(exc.to_dict()), exc.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
