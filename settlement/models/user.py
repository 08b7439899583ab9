from flask_login import UserMixin

from settlement.extensions import db
from settlement.models.lifecycle import StrEnum, enum_values
from settlement.utils import utcnow


class UserRole(StrEnum):
    USER = "user"
    PARTNER = "partner"
    ADMIN = "admin"


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone = db.Column(db.String(20))
    role = db.Column(
        db.Enum(UserRole, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=UserRole.USER,
    )

    referral_code = db.Column(db.String(10), unique=True)
    # weak back-reference: at most one referrer, never ownership
    referred_by_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    referrer = db.relationship("User", remote_side=[id], foreign_keys=[referred_by_id])

    entitlements = db.relationship(
        "Entitlement",
        backref="user",
        lazy=True,
        cascade="all, delete-orphan"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} code={self.referral_code} referred_by={self.referred_by_id}>"
