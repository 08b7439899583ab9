from settlement.extensions import db
from settlement.models.lifecycle import Lifecycle, StrEnum, enum_values
from settlement.utils import utcnow


class ProductKind(StrEnum):
    SIGNAL = "signal"
    PARTNER = "partner"


class OrderStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


ORDER_LIFECYCLE = Lifecycle("order", {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED},
    OrderStatus.PAID: {OrderStatus.REFUNDED},
})

# timestamp column stamped on entering each status
_STAMPS = {
    OrderStatus.PAID: "paid_at",
    OrderStatus.FAILED: "failed_at",
    OrderStatus.REFUNDED: "refunded_at",
}


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    kind = db.Column(
        db.Enum(ProductKind, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
    )

    # 💰 minor units (satang)
    original_amount = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    amount = db.Column(db.Integer, nullable=False)
    commission_pool = db.Column(db.Integer, nullable=True)

    # {"months": 3, "bonus": 1}
    details = db.Column(db.JSON, nullable=False, default=dict)

    status = db.Column(
        db.Enum(OrderStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    paid_at = db.Column(db.DateTime)
    failed_at = db.Column(db.DateTime)
    refunded_at = db.Column(db.DateTime)

    buyer = db.relationship("User", backref=db.backref("orders", lazy="dynamic"))

    def __repr__(self) -> str:
        return f"<Order id={self.id} {self.kind} amount={self.amount} status={self.status}>"

    @property
    def months(self) -> int:
        return int((self.details or {}).get("months") or 1)

    @property
    def bonus_months(self) -> int:
        return int((self.details or {}).get("bonus") or 0)

    @property
    def total_months(self) -> int:
        return self.months + self.bonus_months

    def transition_to(self, target, now=None):
        ORDER_LIFECYCLE.check(self.status, target)
        self.status = target
        setattr(self, _STAMPS[target], now or utcnow())
