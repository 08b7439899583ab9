# settlement/models/withdrawal.py
from settlement.extensions import db
from settlement.models.lifecycle import Lifecycle, StrEnum, enum_values
from settlement.utils import utcnow


class WithdrawalStatus(StrEnum):
    REQUESTED = "requested"
    OTP_VERIFIED = "otp_verified"
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"
    EXPIRED = "expired"


WITHDRAWAL_LIFECYCLE = Lifecycle("withdrawal", {
    WithdrawalStatus.REQUESTED: {WithdrawalStatus.OTP_VERIFIED, WithdrawalStatus.EXPIRED},
    WithdrawalStatus.OTP_VERIFIED: {WithdrawalStatus.PENDING},
    WithdrawalStatus.PENDING: {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED},
    WithdrawalStatus.APPROVED: {WithdrawalStatus.PAID},
})

# statuses holding a claim on the balance
IN_FLIGHT_STATUSES = (
    WithdrawalStatus.OTP_VERIFIED,
    WithdrawalStatus.PENDING,
    WithdrawalStatus.APPROVED,
)

_STAMPS = {
    WithdrawalStatus.OTP_VERIFIED: "otp_verified_at",
    WithdrawalStatus.PENDING: "submitted_at",
    WithdrawalStatus.APPROVED: "approved_at",
    WithdrawalStatus.PAID: "paid_at",
    WithdrawalStatus.REJECTED: "rejected_at",
    WithdrawalStatus.EXPIRED: "expired_at",
}


class Withdrawal(db.Model):
    __tablename__ = "withdrawal_requests"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    # satang
    amount = db.Column(db.Integer, nullable=False)

    # Bank details for manual payout
    bank_name = db.Column(db.String(120), nullable=False)
    account_name = db.Column(db.String(120), nullable=False)
    account_number = db.Column(db.String(20), nullable=False)

    # Lifecycle
    status = db.Column(
        db.Enum(WithdrawalStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=WithdrawalStatus.REQUESTED,
        index=True,
    )
    # unconfirmed requests die after this moment
    expires_at = db.Column(db.DateTime, nullable=True)

    note = db.Column(db.String(255), nullable=True)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    otp_verified_at = db.Column(db.DateTime, nullable=True)
    submitted_at = db.Column(db.DateTime, nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    expired_at = db.Column(db.DateTime, nullable=True)

    user = db.relationship(
        "User",
        backref=db.backref("withdrawal_requests", lazy="dynamic"),
        foreign_keys=[user_id],
    )
    reviewed_by = db.relationship("User", foreign_keys=[reviewed_by_id])
    commissions = db.relationship("Commission", backref="withdrawal", lazy=True)

    def __repr__(self) -> str:
        return f"<Withdrawal id={self.id} user_id={self.user_id} amount={self.amount} status={self.status}>"

    @property
    def is_final(self) -> bool:
        return WITHDRAWAL_LIFECYCLE.is_final(self.status)

    def is_expired_at(self, now) -> bool:
        return (
            self.status == WithdrawalStatus.REQUESTED
            and self.expires_at is not None
            and now >= self.expires_at
        )

    def transition_to(self, target, now=None):
        WITHDRAWAL_LIFECYCLE.check(self.status, target)
        self.status = target
        setattr(self, _STAMPS[target], now or utcnow())

    def to_dict(self):
        return {
            "id": self.id,
            "amount": self.amount,
            "status": str(self.status),
            "bank_name": self.bank_name,
            "account_name": self.account_name,
            "account_number": self.account_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
