# settlement/referrals/routes.py
from flask import jsonify, current_app
from flask_login import login_required, current_user

from settlement.models import Commission, Withdrawal
from settlement.services.otp import CODE_OK
from settlement.services.wallet import get_balance, get_withdrawable_balance
from settlement.services.withdrawal import (
    confirm_withdrawal_code,
    request_withdrawal,
    resend_withdrawal_code,
)
from . import referral_bp
from .forms import ConfirmCodeForm, WithdrawalForm


def _form_errors(form):
    return jsonify({"status": "error", "reason": "invalid", "errors": form.errors}), 400


@referral_bp.route("/balance")
@login_required
def balance():
    return jsonify({
        "balance": get_balance(current_user.id),
        "withdrawable": get_withdrawable_balance(current_user.id),
        "min_withdrawal": current_app.config.get("MIN_WITHDRAWAL_AMOUNT"),
        "referral_code": current_user.referral_code,
    })


@referral_bp.route("/commissions")
@login_required
def commissions():
    rows = (
        Commission.query
        .filter_by(user_id=current_user.id)
        .order_by(Commission.created_at.desc())
        .limit(50)
        .all()
    )
    return jsonify({
        "commissions": [
            {
                "id": c.id,
                "order_id": c.order_id,
                "level": c.level,
                "amount": c.amount,
                "status": str(c.status),
                "created_at": c.created_at.isoformat(),
            }
            for c in rows
        ]
    })


@referral_bp.route("/withdraw", methods=["POST"])
@login_required
def withdraw():
    form = WithdrawalForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    dispatch = request_withdrawal(
        current_user.id,
        form.amount.data,
        form.bank_name.data,
        form.account_name.data,
        form.account_number.data,
    )
    return jsonify({"status": "ok", **dispatch.to_dict()}), 201


@referral_bp.route("/withdraw/<int:withdrawal_id>/resend", methods=["POST"])
@login_required
def resend_code(withdrawal_id: int):
    dispatch = resend_withdrawal_code(withdrawal_id, user_id=current_user.id)
    return jsonify({"status": "ok", **dispatch.to_dict()})


@referral_bp.route("/withdraw/<int:withdrawal_id>/confirm", methods=["POST"])
@login_required
def confirm_code(withdrawal_id: int):
    form = ConfirmCodeForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    result = confirm_withdrawal_code(withdrawal_id, form.code.data, user_id=current_user.id)
    status_code = 200 if result == CODE_OK else 400
    return jsonify({"status": "ok" if result == CODE_OK else "error", "result": result}), status_code


@referral_bp.route("/withdrawals")
@login_required
def withdrawal_history():
    withdrawals = Withdrawal.query.filter_by(user_id=current_user.id)\
        .order_by(Withdrawal.created_at.desc()).limit(50).all()

    return jsonify({"withdrawals": [w.to_dict() for w in withdrawals]})
