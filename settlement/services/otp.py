import logging
from datetime import timedelta

from flask import current_app

from settlement.errors import RateLimitExceeded
from settlement.extensions import db
from settlement.models import OtpCode
from settlement.services.delivery import format_phone_number
from settlement.utils import generate_code, utcnow

logger = logging.getLogger(__name__)

RATE_WINDOW = timedelta(hours=1)

CODE_OK = "ok"
CODE_EXPIRED = "expired"
CODE_MISMATCH = "mismatch"


def normalize_destination(destination):
    """Canonical form used for storing and rate-limiting codes."""
    destination = (destination or "").strip()
    if "@" in destination:
        return destination.lower()
    return format_phone_number(destination)


def codes_sent_recently(destination, purpose, now) -> int:
    return (
        OtpCode.query
        .filter(
            OtpCode.destination == normalize_destination(destination),
            OtpCode.purpose == purpose,
            OtpCode.created_at > now - RATE_WINDOW,
        )
        .count()
    )


def issue_code(destination, purpose="withdrawal", withdrawal=None, now=None):
    """
    Store a fresh code for the destination and return (row, plain code).

    Earlier unconsumed codes of the same withdrawal stop being accepted. The
    hourly cap counts every code issued to the destination, used or not.
    Caller commits, then delivers.
    """
    now = now or utcnow()
    cap = current_app.config.get("OTP_MAX_PER_HOUR", 3)
    destination = normalize_destination(destination)

    if codes_sent_recently(destination, purpose, now) >= cap:
        raise RateLimitExceeded(f"At most {cap} codes per hour. Try again later.")

    if withdrawal is not None:
        (
            OtpCode.query
            .filter(
                OtpCode.withdrawal_id == withdrawal.id,
                OtpCode.consumed_at.is_(None),
            )
            .update({OtpCode.consumed_at: now}, synchronize_session="fetch")
        )

    code = generate_code()
    otp = OtpCode(
        destination=destination,
        purpose=purpose,
        withdrawal=withdrawal,
        attempts=0,
        expires_at=now + timedelta(minutes=current_app.config.get("OTP_EXPIRY_MINUTES", 5)),
        created_at=now,
    )
    otp.set_code(code)
    db.session.add(otp)
    return otp, code


def latest_code(withdrawal_id):
    return (
        OtpCode.query
        .filter(
            OtpCode.withdrawal_id == withdrawal_id,
            OtpCode.consumed_at.is_(None),
        )
        .order_by(OtpCode.created_at.desc(), OtpCode.id.desc())
        .first()
    )


def verify_code(otp, code, now=None) -> str:
    """
    Check an entered code against a stored one; "ok", "expired" or "mismatch".

    A wrong entry costs one attempt; when attempts run out the code is
    burned and reported as expired. A correct entry consumes the code.
    Caller commits.
    """
    now = now or utcnow()
    max_attempts = current_app.config.get("OTP_MAX_ATTEMPTS", 5)

    if otp is None or otp.is_consumed:
        return CODE_EXPIRED

    if now >= otp.expires_at or otp.attempts >= max_attempts:
        otp.consumed_at = now
        return CODE_EXPIRED

    if not otp.check_code(code):
        otp.attempts += 1
        if otp.attempts >= max_attempts:
            otp.consumed_at = now
            logger.warning("Code %s burned after %s wrong attempts", otp.id, otp.attempts)
        return CODE_MISMATCH

    otp.consumed_at = now
    return CODE_OK
