from settlement.extensions import db
from settlement.models.lifecycle import StrEnum, enum_values
from settlement.models.order import ProductKind
from settlement.utils import utcnow


class EntitlementStatus(StrEnum):
    ACTIVE = "active"
    EXPIRED = "expired"


class Entitlement(db.Model):
    __tablename__ = "entitlements"
    __table_args__ = (
        db.UniqueConstraint("user_id", "kind", name="uq_entitlement_user_kind"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # 🔗 Relationships done in user model
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False)
    kind = db.Column(
        db.Enum(ProductKind, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
    )

    status = db.Column(
        db.Enum(EntitlementStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=EntitlementStatus.ACTIVE,
    )
    start_at = db.Column(db.DateTime, nullable=False)
    end_at = db.Column(db.DateTime, nullable=False)

    # 💰 price of the last purchase (satang)
    price = db.Column(db.Integer, nullable=False, default=0)
    last_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Entitlement user_id={self.user_id} {self.kind} {self.status} until={self.end_at}>"

    def is_active_at(self, now=None) -> bool:
        now = now or utcnow()
        return (
            self.status == EntitlementStatus.ACTIVE
            and self.end_at is not None
            and self.end_at > now
        )

    @property
    def is_active(self) -> bool:
        return self.is_active_at()
