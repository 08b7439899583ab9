from settlement.extensions import db
from settlement.models.lifecycle import Lifecycle, StrEnum, enum_values
from settlement.utils import utcnow


class CommissionStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"


COMMISSION_LIFECYCLE = Lifecycle("commission", {
    CommissionStatus.PENDING: {CommissionStatus.PAID},
})


class Commission(db.Model):
    __tablename__ = "commissions"
    __table_args__ = (
        db.UniqueConstraint("order_id", "user_id", name="uq_commission_order_user"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # ancestor who earns, never the buyer
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    buyer_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    level = db.Column(db.Integer, nullable=False)
    # normalized share w_i / S, informational only
    weight = db.Column(db.Numeric(12, 10), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    status = db.Column(
        db.Enum(CommissionStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=CommissionStatus.PENDING,
        index=True,
    )
    withdrawal_id = db.Column(db.Integer, db.ForeignKey("withdrawal_requests.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    paid_at = db.Column(db.DateTime)

    user = db.relationship("User", foreign_keys=[user_id], backref=db.backref("commissions", lazy="dynamic"))
    buyer = db.relationship("User", foreign_keys=[buyer_id])
    order = db.relationship("Order", backref=db.backref("commissions", lazy=True, order_by="Commission.level"))

    def __repr__(self) -> str:
        return f"<Commission id={self.id} user_id={self.user_id} level={self.level} amount={self.amount} status={self.status}>"


class CommissionDistribution(db.Model):
    """One row per order whose pool was split; doubles as the 'already distributed' flag."""
    __tablename__ = "commission_distributions"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, unique=True)

    pool = db.Column(db.Integer, nullable=False)
    decay_rate = db.Column(db.String(20), nullable=False)
    levels = db.Column(db.Integer, nullable=False)
    distributed_total = db.Column(db.Integer, nullable=False)
    truncated = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    order = db.relationship("Order", backref=db.backref("distribution", uselist=False))
