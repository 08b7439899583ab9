# config.py
import os


def _getenv(key: str, default: str | None = None) -> str | None:
    """Small wrapper to read environment variables."""
    val = os.getenv(key)
    return val if (val is not None and val != "") else default


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    return int(value)


def _normalize_db_url(db_url: str) -> str:
    # Render/Heroku sometimes provide "postgres://"; SQLAlchemy wants "postgresql://"
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql://", 1)
    return db_url


class BaseConfig:
    # -------------------
    # Core / Flask
    # -------------------
    ENV = _getenv("FLASK_ENV", "development")
    DEBUG = _as_bool(_getenv("FLASK_DEBUG"), default=(ENV != "production"))
    TESTING = _as_bool(_getenv("FLASK_TESTING"), default=False)

    SECRET_KEY = _getenv("SECRET_KEY", "dev-secret-key")

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _getenv("SESSION_COOKIE_SAMESITE", "Lax")

    # JSON API forms carry no CSRF token
    WTF_CSRF_ENABLED = False

    LOG_DIR = _getenv("LOG_DIR", "logs")

    # -------------------
    # Database
    # -------------------
    _db_url = _getenv("DATABASE_URL", "sqlite:///instance/settlement.db")
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # -------------------
    # Commission pool (satang)
    # -------------------
    # Flat reward per paid order, split across the referral chain.
    COMMISSION_POOLS = {
        "signal": _as_int(_getenv("COMMISSION_POOL_SIGNAL"), default=30_000),
        "partner": _as_int(_getenv("COMMISSION_POOL_PARTNER"), default=30_000),
    }
    COMMISSION_DECAY_RATE = _getenv("COMMISSION_DECAY_RATE", "0.8")
    MIN_COMMISSION = _as_int(_getenv("MIN_COMMISSION"), default=100)
    MAX_REFERRAL_DEPTH = _as_int(_getenv("MAX_REFERRAL_DEPTH"), default=50)

    # -------------------
    # Plans (satang): months -> (price, bonus months)
    # -------------------
    SIGNAL_PLANS = {
        1: (250_000, 0),
        3: (699_900, 1),
        6: (1_299_900, 2),
        9: (1_999_900, 3),
    }
    SIGNAL_REFERRAL_DISCOUNT = _as_int(_getenv("SIGNAL_REFERRAL_DISCOUNT"), default=30_000)

    PARTNER_PLANS = {
        1: (19_900, 0),
        3: (49_900, 1),
        6: (89_900, 2),
        12: (149_900, 3),
    }

    # -------------------
    # Withdrawals
    # -------------------
    MIN_WITHDRAWAL_AMOUNT = _as_int(_getenv("MIN_WITHDRAWAL_AMOUNT"), default=35_000)
    WITHDRAWAL_CONFIRM_MINUTES = _as_int(_getenv("WITHDRAWAL_CONFIRM_MINUTES"), default=5)
    # "all_pending" | "oldest_first"
    WITHDRAWAL_SETTLE_POLICY = _getenv("WITHDRAWAL_SETTLE_POLICY", "all_pending")

    # -------------------
    # One-time codes
    # -------------------
    OTP_CHANNEL = _getenv("OTP_CHANNEL", "sms")  # sms | email
    OTP_SENDER = _getenv("OTP_SENDER", "log")  # sms | email | log
    OTP_EXPIRY_MINUTES = _as_int(_getenv("OTP_EXPIRY_MINUTES"), default=5)
    OTP_MAX_PER_HOUR = _as_int(_getenv("OTP_MAX_PER_HOUR"), default=3)
    OTP_MAX_ATTEMPTS = _as_int(_getenv("OTP_MAX_ATTEMPTS"), default=5)

    # -------------------
    # SMS gateway
    # -------------------
    SMS_API_URL = _getenv("SMS_API_URL", "https://bulk.thaibulksms.com/sms")
    SMS_API_KEY = _getenv("SMS_API_KEY", "")
    SMS_API_SECRET = _getenv("SMS_API_SECRET", "")
    SMS_SENDER = _getenv("SMS_SENDER", "TechTrade")

    # -------------------
    # Mail / SendGrid
    # -------------------
    MAIL_DEFAULT_SENDER = _getenv("MAIL_DEFAULT_SENDER", "")
    SENDGRID_API_KEY = _getenv("SENDGRID_API_KEY", "")


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    # Tighten cookie security for HTTPS deployments
    SESSION_COOKIE_SECURE = True
    OTP_SENDER = _getenv("OTP_SENDER", "sms")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}

    LOG_DIR = None
    OTP_SENDER = "log"
    MIN_COMMISSION = 0
