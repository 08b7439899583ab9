from flask import Blueprint, request

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def request_note():
    payload = request.get_json(silent=True) or {}
    return (payload.get("note") or request.form.get("note") or "").strip() or None


# Import routes AFTER blueprint is created
from . import orders  # noqa: E402,F401

from . import withdrawals  # noqa: E402,F401
