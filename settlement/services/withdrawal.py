# settlement/services/withdrawal.py
"""
Withdrawal workflow.

    requested -> otp_verified -> pending -> approved -> paid
                                 pending -> rejected
    requested -> expired

A request only leaves ``requested`` once the out-of-band code is confirmed,
and the balance/eligibility checks are repeated at that moment under the
user's row lock. Only ``paid`` touches commissions.
"""
import logging
import re
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from settlement.errors import (
    BelowMinimum,
    InsufficientBalance,
    InvalidTransition,
    NotEligible,
    NotFound,
    PhoneInUse,
    ValidationError,
)
from settlement.extensions import db
from settlement.models import OtpCode, ProductKind, User, Withdrawal, WithdrawalStatus
from settlement.services import atomic
from settlement.services.activation import has_active_entitlement
from settlement.services.delivery import deliver_code, format_phone_number
from settlement.services.otp import (
    CODE_EXPIRED,
    CODE_OK,
    issue_code,
    latest_code,
    normalize_destination,
    verify_code,
)
from settlement.services.wallet import get_withdrawable_balance, lock_user, settle_commissions
from settlement.utils import mask_destination, utcnow

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER_RE = re.compile(r"^\d{10,15}$")

# withdrawals that bind a phone number to their account
PHONE_CLAIM_STATUSES = (
    WithdrawalStatus.PENDING,
    WithdrawalStatus.APPROVED,
    WithdrawalStatus.PAID,
)


@dataclass
class CodeDispatch:
    withdrawal: Withdrawal
    destination: str
    code_sent: bool

    def to_dict(self):
        return {
            "withdrawal_id": self.withdrawal.id,
            "status": str(self.withdrawal.status),
            "expires_at": self.withdrawal.expires_at.isoformat() if self.withdrawal.expires_at else None,
            "destination": mask_destination(self.destination),
            "code_sent": self.code_sent,
        }


def validate_request(amount, bank_name, account_name, account_number):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be a whole number of satang.", code="invalid_amount")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero.", code="invalid_amount")

    bank_name = (bank_name or "").strip()
    account_name = (account_name or "").strip()
    account_number = re.sub(r"[\s-]", "", account_number or "")

    if not (bank_name and account_name and account_number):
        raise ValidationError("Bank name, account name and account number are required.", code="missing_destination")
    if not ACCOUNT_NUMBER_RE.match(account_number):
        raise ValidationError("Account number must be 10-15 digits.", code="invalid_account_number")

    return bank_name, account_name, account_number


def check_eligibility(user_id, now):
    """Both an active signal and an active partner entitlement are required."""
    missing = [
        str(kind) for kind in (ProductKind.SIGNAL, ProductKind.PARTNER)
        if not has_active_entitlement(user_id, kind, now)
    ]
    if missing:
        raise NotEligible(f"Active {' and '.join(missing)} access required to withdraw.")


def check_phone_unused(user_id):
    """One phone number withdraws for one account only."""
    user = db.session.get(User, user_id)
    phone = format_phone_number(user.phone) if user is not None else ""
    if not phone:
        return

    claimed = (
        db.session.query(User.id, User.phone)
        .join(Withdrawal, Withdrawal.user_id == User.id)
        .filter(
            User.id != user_id,
            User.phone.isnot(None),
            Withdrawal.status.in_(PHONE_CLAIM_STATUSES),
        )
        .distinct()
        .all()
    )
    for other_id, other_phone in claimed:
        if format_phone_number(other_phone) == phone:
            logger.warning("User %s: phone already withdraws for user %s", user_id, other_id)
            raise PhoneInUse("This phone number is already used by another withdrawing account.")


def check_preconditions(user_id, amount, now, exclude_id=None):
    minimum = current_app.config.get("MIN_WITHDRAWAL_AMOUNT", 35_000)
    if amount < minimum:
        raise BelowMinimum(f"Minimum withdrawal is {minimum} satang.")

    check_eligibility(user_id, now)
    check_phone_unused(user_id)

    available = get_withdrawable_balance(user_id, exclude_id=exclude_id)
    if amount > available:
        raise InsufficientBalance(f"Insufficient withdrawable balance. Available: {available} satang.")


def code_destination(user):
    channel = current_app.config.get("OTP_CHANNEL", "sms")
    destination = normalize_destination(user.phone if channel == "sms" else user.email)
    if not destination:
        raise ValidationError(
            "Add a phone number to your profile before withdrawing.",
            code="missing_code_destination",
        )
    return destination


def _confirm_window(now):
    return now + timedelta(minutes=current_app.config.get("WITHDRAWAL_CONFIRM_MINUTES", 5))


def _get_withdrawal(withdrawal_id, user_id=None, lock=False):
    query = db.session.query(Withdrawal).filter(Withdrawal.id == withdrawal_id)
    if lock:
        query = query.with_for_update()
    withdrawal = query.first()
    if withdrawal is None or (user_id is not None and withdrawal.user_id != user_id):
        raise NotFound(f"Withdrawal {withdrawal_id} not found")
    return withdrawal


def _lock_owner_then_withdrawal(withdrawal_id, user_id=None):
    # user row first, then the withdrawal: same order everywhere
    owner_id = _get_withdrawal(withdrawal_id, user_id=user_id).user_id
    user = lock_user(owner_id)
    return user, _get_withdrawal(withdrawal_id, lock=True)


def _expire(withdrawal, now):
    withdrawal.transition_to(WithdrawalStatus.EXPIRED, now=now)
    (
        OtpCode.query
        .filter(OtpCode.withdrawal_id == withdrawal.id, OtpCode.consumed_at.is_(None))
        .update({OtpCode.consumed_at: now}, synchronize_session="fetch")
    )
    logger.info("Withdrawal %s expired unconfirmed", withdrawal.id)


# ---------------------------
# User actions
# ---------------------------
def request_withdrawal(user_id, amount, bank_name, account_name, account_number, now=None) -> CodeDispatch:
    """Open a withdrawal and send its confirmation code."""
    now = now or utcnow()
    bank_name, account_name, account_number = validate_request(amount, bank_name, account_name, account_number)

    with atomic("Withdrawal request"):
        user = lock_user(user_id)
        check_preconditions(user.id, amount, now)
        destination = code_destination(user)

        withdrawal = Withdrawal(
            user_id=user.id,
            amount=amount,
            bank_name=bank_name,
            account_name=account_name,
            account_number=account_number,
            status=WithdrawalStatus.REQUESTED,
            expires_at=_confirm_window(now),
            created_at=now,
        )
        db.session.add(withdrawal)
        db.session.flush()

        _, code = issue_code(destination, withdrawal=withdrawal, now=now)

    logger.info("Withdrawal %s requested by user %s: %s satang", withdrawal.id, user_id, amount)

    sent = deliver_code(destination, code)
    return CodeDispatch(withdrawal, destination, sent)


def resend_withdrawal_code(withdrawal_id, user_id=None, now=None) -> CodeDispatch:
    now = now or utcnow()

    with atomic("Code resend"):
        user, withdrawal = _lock_owner_then_withdrawal(withdrawal_id, user_id=user_id)

        if withdrawal.is_expired_at(now):
            _expire(withdrawal, now)
        elif withdrawal.status == WithdrawalStatus.REQUESTED:
            destination = code_destination(user)
            _, code = issue_code(destination, withdrawal=withdrawal, now=now)
            withdrawal.expires_at = _confirm_window(now)

    if withdrawal.status != WithdrawalStatus.REQUESTED:
        raise InvalidTransition("withdrawal", withdrawal.status, WithdrawalStatus.OTP_VERIFIED)

    sent = deliver_code(destination, code)
    return CodeDispatch(withdrawal, destination, sent)


def confirm_withdrawal_code(withdrawal_id, code, user_id=None, now=None) -> str:
    """
    Confirm a request with its code; returns "ok", "expired" or "mismatch".

    On "ok" the request moves through otp_verified into pending review.
    """
    now = now or utcnow()

    with atomic("Code confirmation"):
        user, withdrawal = _lock_owner_then_withdrawal(withdrawal_id, user_id=user_id)

        if withdrawal.status != WithdrawalStatus.REQUESTED:
            raise InvalidTransition("withdrawal", withdrawal.status, WithdrawalStatus.OTP_VERIFIED)

        if withdrawal.is_expired_at(now):
            _expire(withdrawal, now)
            return CODE_EXPIRED

        result = verify_code(latest_code(withdrawal.id), code, now=now)
        if result != CODE_OK:
            logger.info("Withdrawal %s: code %s", withdrawal.id, result)
            return result

        # balance or access may have changed while the code was in transit
        check_preconditions(user.id, withdrawal.amount, now, exclude_id=withdrawal.id)

        withdrawal.transition_to(WithdrawalStatus.OTP_VERIFIED, now=now)
        withdrawal.transition_to(WithdrawalStatus.PENDING, now=now)

    logger.info("Withdrawal %s confirmed; awaiting review", withdrawal.id)
    return CODE_OK


# ---------------------------
# Admin actions
# ---------------------------
def approve_withdrawal(withdrawal_id, admin_id=None, note=None, now=None) -> Withdrawal:
    now = now or utcnow()
    with atomic("Withdrawal approval"):
        withdrawal = _get_withdrawal(withdrawal_id, lock=True)
        withdrawal.transition_to(WithdrawalStatus.APPROVED, now=now)
        withdrawal.reviewed_by_id = admin_id
        if note:
            withdrawal.note = note[:255]

    logger.info("Admin %s approved withdrawal %s", admin_id, withdrawal.id)
    return withdrawal


def reject_withdrawal(withdrawal_id, admin_id=None, note=None, now=None) -> Withdrawal:
    """Terminal; the user's commissions stay pending and withdrawable."""
    now = now or utcnow()
    with atomic("Withdrawal rejection"):
        withdrawal = _get_withdrawal(withdrawal_id, lock=True)
        withdrawal.transition_to(WithdrawalStatus.REJECTED, now=now)
        withdrawal.reviewed_by_id = admin_id
        if note:
            withdrawal.note = note[:255]

    logger.info("Admin %s rejected withdrawal %s", admin_id, withdrawal.id)
    return withdrawal


def mark_withdrawal_paid(withdrawal_id, admin_id=None, note=None, now=None) -> Withdrawal:
    """Record the payout and flip the consumed commissions to paid."""
    now = now or utcnow()
    with atomic("Withdrawal payout"):
        _, withdrawal = _lock_owner_then_withdrawal(withdrawal_id)
        withdrawal.transition_to(WithdrawalStatus.PAID, now=now)
        if note:
            withdrawal.note = note[:255]
        settle_commissions(withdrawal, now)

    logger.info("Admin %s marked withdrawal %s paid", admin_id, withdrawal.id)
    return withdrawal


def expire_stale_withdrawals(now=None) -> int:
    """Expire every request whose confirmation window has closed."""
    now = now or utcnow()
    with atomic("Withdrawal expiry"):
        stale = (
            Withdrawal.query
            .filter(
                Withdrawal.status == WithdrawalStatus.REQUESTED,
                Withdrawal.expires_at <= now,
            )
            .with_for_update()
            .all()
        )
        for withdrawal in stale:
            _expire(withdrawal, now)

    return len(stale)
