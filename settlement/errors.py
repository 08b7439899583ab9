"""
Error taxonomy for the settlement engine.

Every error carries a short machine ``code`` (the reason surfaced to API
callers) and the HTTP status its blueprint responds with.
"""
from flask import jsonify


class SettlementError(Exception):
    """Base class for all rejections raised by the engine."""
    code = "error"
    http_status = 400

    def __init__(self, message=None, code=None):
        super().__init__(message or self.__class__.__doc__)
        if code:
            self.code = code

    @property
    def message(self):
        return str(self)

    def to_dict(self):
        return {"status": "error", "reason": self.code, "message": self.message}


# ---------------------------
# Validation
# ---------------------------
class ValidationError(SettlementError):
    """Invalid input."""
    code = "invalid"
    http_status = 400


class ReferralCycleError(ValidationError):
    """Referral link would create a cycle."""
    code = "referral_cycle"


class NotFound(SettlementError):
    """Record not found."""
    code = "not_found"
    http_status = 404


class Forbidden(SettlementError):
    """Admin access required."""
    code = "forbidden"
    http_status = 403


# ---------------------------
# Preconditions
# ---------------------------
class PreconditionFailed(SettlementError):
    """Operation not allowed in the current state."""
    code = "precondition_failed"
    http_status = 409


class InvalidTransition(PreconditionFailed):
    """Illegal status transition."""
    code = "invalid_transition"

    def __init__(self, entity, current, target):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from {current} to {target}")


class OrderNotPending(PreconditionFailed):
    """Order is not awaiting payment."""
    code = "order_not_pending"


class BelowMinimum(PreconditionFailed):
    """Amount is below the minimum withdrawal."""
    code = "below_minimum"


class InsufficientBalance(PreconditionFailed):
    """Amount exceeds the withdrawable balance."""
    code = "insufficient_balance"


class NotEligible(PreconditionFailed):
    """Both signal and partner access are required to withdraw."""
    code = "not_eligible"
    http_status = 403


class PhoneInUse(PreconditionFailed):
    """Phone number already withdraws for another account."""
    code = "phone_in_use"


class RateLimitExceeded(PreconditionFailed):
    """Too many codes requested, try again later."""
    code = "rate_limited"
    http_status = 429


# ---------------------------
# Infrastructure
# ---------------------------
class StoreUnavailable(SettlementError):
    """Storage failed mid-transaction; safe to retry."""
    code = "store_unavailable"
    http_status = 503


class CodeDeliveryError(SettlementError):
    """Out-of-band code could not be delivered."""
    code = "delivery_failed"
    http_status = 502


def register_error_handlers(app):
    @app.errorhandler(SettlementError)
    def handle_settlement_error(err):
        if isinstance(err, StoreUnavailable):
            app.logger.error("Retriable store failure: %s", err)
        return jsonify(err.to_dict()), err.http_status
