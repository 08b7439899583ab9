import random
import string
from datetime import datetime, timezone
from functools import wraps

from dateutil.relativedelta import relativedelta
from flask import current_app
from flask_login import current_user

from settlement.errors import Forbidden


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return current_app.login_manager.unauthorized()
        if not getattr(current_user, "is_admin", False):
            raise Forbidden()
        return fn(*args, **kwargs)
    return wrapper


def utcnow():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(moment, months):
    # calendar months; Jan 31 + 1 month -> Feb 28/29
    return moment + relativedelta(months=months)


def generate_code(length=6):
    return "".join(random.SystemRandom().choices(string.digits, k=length))


def generate_unique_referral_code(length=8):
    from settlement.models import User

    chars = string.ascii_uppercase + string.digits

    while True:
        code = "".join(random.choices(chars, k=length))
        if not User.query.filter_by(referral_code=code).first():
            return code


def generate_order_number(prefix):
    stamp = utcnow().strftime("%Y%m%d%H%M%S")
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{prefix}-{stamp}-{suffix}"


def mask_destination(destination):
    """0812345678 -> 081****678, jane@example.com -> ja***@example.com"""
    if not destination:
        return ""
    if "@" in destination:
        name, _, domain = destination.partition("@")
        return f"{name[:2]}***@{domain}"
    if len(destination) < 7:
        return "*" * len(destination)
    return f"{destination[:3]}****{destination[-3:]}"
