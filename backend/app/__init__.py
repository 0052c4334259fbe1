# backend/app/__init__.py
from flask import Flask

from .config import Config
from .extensions import db, migrate


def create_app(overrides: dict | None = None, **service_overrides) -> Flask:
    """
    Application factory.

    overrides: config values applied on top of Config (tests use this for
        the database URI and webhook secret).
    service_overrides: collaborators passed to the service container,
        e.g. gateway=FakeGateway().
    """
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.container import install_services
    install_services(app, **service_overrides)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.subscriptions import subscriptions_bp
    from .routes.admin import admin_bp
    from .routes.webhooks import webhooks_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(webhooks_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
