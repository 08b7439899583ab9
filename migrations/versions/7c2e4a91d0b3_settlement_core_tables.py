"""settlement core: users, orders, commissions, entitlements, withdrawals, codes

Revision ID: 7c2e4a91d0b3
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "7c2e4a91d0b3"
down_revision = None
branch_labels = None
depends_on = None


def _status(*values, name):
    return sa.Enum(*values, name=name, native_enum=False, length=20)


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(80), nullable=False, unique=True),
        sa.Column("email", sa.String(120), nullable=False, unique=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", _status("user", "partner", "admin", name="userrole"), nullable=False),
        sa.Column("referral_code", sa.String(10), nullable=True, unique=True),
        sa.Column("referred_by_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_user_referred_by_id", "user", ["referred_by_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(40), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("kind", _status("signal", "partner", name="productkind"), nullable=False),
        sa.Column("original_amount", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("commission_pool", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("status", _status("pending", "paid", "failed", "refunded", name="orderstatus"), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("bank_name", sa.String(120), nullable=False),
        sa.Column("account_name", sa.String(120), nullable=False),
        sa.Column("account_number", sa.String(20), nullable=False),
        sa.Column(
            "status",
            _status("requested", "otp_verified", "pending", "approved", "paid", "rejected", "expired",
                    name="withdrawalstatus"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("otp_verified_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("expired_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_withdrawal_requests_user_id", "withdrawal_requests", ["user_id"])
    op.create_index("ix_withdrawal_requests_status", "withdrawal_requests", ["status"])

    op.create_table(
        "commissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Numeric(12, 10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", _status("pending", "paid", name="commissionstatus"), nullable=False),
        sa.Column("withdrawal_id", sa.Integer(), sa.ForeignKey("withdrawal_requests.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("order_id", "user_id", name="uq_commission_order_user"),
    )
    op.create_index("ix_commissions_user_id", "commissions", ["user_id"])
    op.create_index("ix_commissions_order_id", "commissions", ["order_id"])
    op.create_index("ix_commissions_status", "commissions", ["status"])

    op.create_table(
        "commission_distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False, unique=True),
        sa.Column("pool", sa.Integer(), nullable=False),
        sa.Column("decay_rate", sa.String(20), nullable=False),
        sa.Column("levels", sa.Integer(), nullable=False),
        sa.Column("distributed_total", sa.Integer(), nullable=False),
        sa.Column("truncated", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "entitlements",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("kind", _status("signal", "partner", name="productkind"), nullable=False),
        sa.Column("status", _status("active", "expired", name="entitlementstatus"), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("last_order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("user_id", "kind", name="uq_entitlement_user_kind"),
    )

    op.create_table(
        "otp_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("destination", sa.String(120), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("withdrawal_id", sa.Integer(), sa.ForeignKey("withdrawal_requests.id"), nullable=True),
        sa.Column("code_hash", sa.String(256), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_otp_codes_destination", "otp_codes", ["destination"])
    op.create_index("ix_otp_codes_withdrawal_id", "otp_codes", ["withdrawal_id"])
    op.create_index("ix_otp_codes_created_at", "otp_codes", ["created_at"])


def downgrade():
    op.drop_table("otp_codes")
    op.drop_table("entitlements")
    op.drop_table("commission_distributions")
    op.drop_table("commissions")
    op.drop_table("withdrawal_requests")
    op.drop_table("orders")
    op.drop_table("user")
