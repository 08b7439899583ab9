from werkzeug.security import generate_password_hash, check_password_hash

from settlement.extensions import db
from settlement.utils import utcnow


class OtpCode(db.Model):
    __tablename__ = "otp_codes"

    id = db.Column(db.Integer, primary_key=True)
    destination = db.Column(db.String(120), nullable=False, index=True)
    purpose = db.Column(db.String(20), nullable=False, default="withdrawal")
    withdrawal_id = db.Column(db.Integer, db.ForeignKey("withdrawal_requests.id"), nullable=True, index=True)

    code_hash = db.Column(db.String(256), nullable=False)
    attempts = db.Column(db.Integer, nullable=False, default=0)

    expires_at = db.Column(db.DateTime, nullable=False)
    consumed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    withdrawal = db.relationship("Withdrawal", backref=db.backref("codes", lazy="dynamic"))

    def set_code(self, code):
        self.code_hash = generate_password_hash(code)

    def check_code(self, code):
        return check_password_hash(self.code_hash, code or "")

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def __repr__(self) -> str:
        return f"<OtpCode id={self.id} withdrawal_id={self.withdrawal_id} attempts={self.attempts}>"
