from flask import current_app, jsonify
from flask_login import login_required, current_user
from flask_wtf import FlaskForm
from wtforms import IntegerField
from wtforms.validators import DataRequired, NumberRange

from settlement.models import ProductKind
from settlement.services.orders import create_order
from . import checkout_bp


class CheckoutForm(FlaskForm):
    months = IntegerField("Months", validators=[DataRequired(), NumberRange(min=1)])


def _plans(kind):
    key = "SIGNAL_PLANS" if kind == ProductKind.SIGNAL else "PARTNER_PLANS"
    return [
        {"months": months, "price": price, "bonus": bonus, "total_months": months + bonus}
        for months, (price, bonus) in sorted(current_app.config[key].items())
    ]


@checkout_bp.route("/<any(signal, partner):kind>/plans")
def plans(kind):
    kind = ProductKind(kind)
    payload = {"plans": _plans(kind)}
    if kind == ProductKind.SIGNAL:
        payload["referral_discount"] = current_app.config.get("SIGNAL_REFERRAL_DISCOUNT", 0)
    return jsonify(payload)


@checkout_bp.route("/<any(signal, partner):kind>", methods=["POST"])
@login_required
def start_checkout(kind):
    form = CheckoutForm()
    if not form.validate_on_submit():
        return jsonify({"status": "error", "reason": "invalid", "errors": form.errors}), 400

    order = create_order(current_user, kind, form.months.data)

    return jsonify({
        "status": "ok",
        "order_id": order.id,
        "order_number": order.order_number,
        "kind": str(order.kind),
        "original_amount": order.original_amount,
        "discount_amount": order.discount_amount,
        "amount": order.amount,
        "months": order.months,
        "bonus": order.bonus_months,
    }), 201
