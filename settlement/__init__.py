import os
from flask import Flask
from .extensions import db, init_extensions


def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)

    # ensure instance folder exists (Flask-managed)
    os.makedirs(app.instance_path, exist_ok=True)

    # Load config by environment
    env = os.getenv("FLASK_ENV", "development").lower()
    if config_object is None:
        config_object = "config.ProductionConfig" if env == "production" else "config.DevelopmentConfig"
    app.config.from_object(config_object)

    if app.config.get("ENV") == "production":
        missing = []
        if not os.getenv("SECRET_KEY"):
            missing.append("SECRET_KEY")
        if not os.getenv("DATABASE_URL"):
            missing.append("DATABASE_URL")
        sender = app.config.get("OTP_SENDER")
        if sender == "sms" and not (app.config.get("SMS_API_KEY") and app.config.get("SMS_API_SECRET")):
            missing.append("SMS_API_KEY/SMS_API_SECRET")
        if sender == "email" and not (app.config.get("SENDGRID_API_KEY") and app.config.get("MAIL_DEFAULT_SENDER")):
            missing.append("SENDGRID_API_KEY/MAIL_DEFAULT_SENDER")

        if missing:
            raise RuntimeError("Missing required production settings: " + ", ".join(missing))

    # If using sqlite and path is relative, force it into instance_path (Windows-safe)
    uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if uri.startswith("sqlite:///") and not uri.startswith("sqlite:////") and uri != "sqlite:///:memory:":
        db_file = os.path.join(app.instance_path, os.path.basename(uri[len("sqlite:///"):]))
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///" + db_file.replace("\\", "/")

    from .logger import init_logging
    init_logging(app)

    # Init extensions
    init_extensions(app)
    from . import auth  # noqa: F401  (registers the user loader)
    from . import models  # noqa: F401

    from .services.delivery import init_code_sender
    init_code_sender(app)

    from .errors import register_error_handlers
    register_error_handlers(app)

    # Blueprints
    from .admin import admin_bp
    from .referrals import referral_bp
    from .checkout import checkout_bp

    app.register_blueprint(admin_bp)
    app.register_blueprint(referral_bp)
    app.register_blueprint(checkout_bp)

    from .cli import register_commands
    register_commands(app)

    return app


__all__ = ["create_app", "db"]
