"""Flask application factory for the civic complaint and feedback portal."""
import os
from typing import Optional

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy.engine.url import make_url

from extensions import csrf, db, login_manager, migrate
from services.errors import AuthenticationRequired, PortalError
from utils.logger import init_logging
from utils.security import apply_security_headers, normalize_email
from utils.sentiment import build_classifier


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PortalError)
    def portal_error(error: PortalError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify(AuthenticationRequired().to_dict()), 401

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("403 Forbidden", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "permission_denied", "message": "You do not have permission to perform this action."}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"path": request.path, "method": request.method})
        return jsonify({"error": "not_found", "message": "The requested resource was not found."}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "method_not_allowed", "message": "Method not allowed for this resource."}), 405

    @app.errorhandler(400)
    def bad_request(error):
        # CSRF failures from Flask-WTF arrive here.
        app.logger.warning("400 Bad Request", extra={"path": request.path, "reason": getattr(error, "description", "")})
        return jsonify({"error": "bad_request", "message": getattr(error, "description", "Bad request.")}), 400

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "internal_error", "message": "An unexpected error occurred."}), 500


def ensure_default_admin(app: Flask) -> None:
    """Ensure a bootstrap administrator exists when DEFAULT_ADMIN_* are configured."""
    from models import AdminRegistration, User  # Local import to avoid circular dependency

    admin_email = normalize_email(app.config.get("DEFAULT_ADMIN_EMAIL"))
    admin_password = app.config.get("DEFAULT_ADMIN_PASSWORD") or ""
    if not admin_email or not admin_password:
        return

    admin_user = User.query.filter_by(email=admin_email).first()
    if not admin_user:
        admin_user = User(full_name="System Administrator", email=admin_email, is_guest=False, is_active=True)
        admin_user.set_password(admin_password)
        db.session.add(admin_user)
        db.session.flush()
    elif not admin_user.is_active:
        admin_user.is_active = True

    if db.session.get(AdminRegistration, admin_user.id) is None:
        db.session.add(AdminRegistration(user_id=admin_user.id))
    db.session.commit()
    app.logger.info("Bootstrap administrator ensured", extra={"user_id": admin_user.id})


def ensure_sqlite_directory(database_uri: str) -> None:
    url = make_url(database_uri)
    if url.drivername.startswith("sqlite") and url.database and url.database != ":memory:":
        os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def register_cli(app: Flask) -> None:
    from services.context import current_context
    from services.identity import grant_administrator, revoke_administrator

    @app.cli.command("grant-admin")
    @click.argument("email")
    def grant_admin(email):
        """Register the account with EMAIL as an administrator."""
        try:
            user = grant_administrator(current_context(), email)
        except PortalError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"{user.email} is now an administrator.")

    @app.cli.command("revoke-admin")
    @click.argument("email")
    def revoke_admin(email):
        """Remove the administrator registration for EMAIL."""
        try:
            user = revoke_administrator(current_context(), email)
        except PortalError as exc:
            raise click.ClickException(exc.message) from exc
        click.echo(f"{user.email} is no longer an administrator.")


def create_app(config_name: Optional[str] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())

    # Optional instance-specific overrides
    if not app.config.get("TESTING"):
        app.config.from_pyfile("config.py", silent=True)
    ensure_sqlite_directory(app.config["SQLALCHEMY_DATABASE_URI"])

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.session_protection = "strong"

    @login_manager.user_loader
    def load_user(user_id):
        from models import User  # Local import to avoid circular dependency

        if not user_id:
            return None
        return db.session.get(User, str(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        raise AuthenticationRequired()

    app.extensions["sentiment_classifier"] = build_classifier(app.config, logger)

    # Blueprints
    from routes import auth_bp, complaints_bp, feedback_bp, main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(complaints_bp)
    app.register_blueprint(feedback_bp)

    register_error_handlers(app)
    register_cli(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        ensure_default_admin(app)

    return app
