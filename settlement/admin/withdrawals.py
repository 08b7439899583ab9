# settlement/admin/withdrawals.py
from flask import current_app, jsonify, request
from flask_login import login_required, current_user

from settlement.models import Withdrawal, WithdrawalStatus
from settlement.errors import ValidationError
from settlement.services.withdrawal import (
    approve_withdrawal,
    mark_withdrawal_paid,
    reject_withdrawal,
)
from settlement.utils import admin_required

from . import admin_bp, request_note


@admin_bp.route("/withdrawals", methods=["GET"])
@login_required
@admin_required
def withdrawals():
    query = Withdrawal.query
    status = (request.args.get("status") or "").strip().lower()
    if status:
        try:
            query = query.filter(Withdrawal.status == WithdrawalStatus(status))
        except ValueError:
            raise ValidationError(f"Invalid status: {status}")

    rows = (
        query
        .order_by(Withdrawal.created_at.desc())
        .limit(200)
        .all()
    )
    return jsonify({"withdrawals": [dict(w.to_dict(), user_id=w.user_id) for w in rows]})


@admin_bp.route("/withdrawals/<int:withdrawal_id>/approve", methods=["POST"])
@login_required
@admin_required
def approve(withdrawal_id: int):
    wr = approve_withdrawal(withdrawal_id, admin_id=current_user.id, note=request_note())
    current_app.logger.info(f"Admin {current_user.id} set withdrawal {wr.id} → approved")
    return jsonify({"status": "ok", "withdrawal": wr.to_dict()})


@admin_bp.route("/withdrawals/<int:withdrawal_id>/reject", methods=["POST"])
@login_required
@admin_required
def reject(withdrawal_id: int):
    wr = reject_withdrawal(withdrawal_id, admin_id=current_user.id, note=request_note())
    current_app.logger.info(f"Admin {current_user.id} set withdrawal {wr.id} → rejected")
    return jsonify({"status": "ok", "withdrawal": wr.to_dict()})


@admin_bp.route("/withdrawals/<int:withdrawal_id>/paid", methods=["POST"])
@login_required
@admin_required
def mark_paid(withdrawal_id: int):
    wr = mark_withdrawal_paid(withdrawal_id, admin_id=current_user.id, note=request_note())
    current_app.logger.info(f"Admin {current_user.id} set withdrawal {wr.id} → paid")
    return jsonify({"status": "ok", "withdrawal": wr.to_dict()})
