# settlement/admin/orders.py
from flask import current_app, jsonify
from flask_login import login_required, current_user

from settlement.services.orders import fail_order, refund_order, settle_order
from settlement.utils import admin_required

from . import admin_bp, request_note


@admin_bp.route("/orders/<int:order_id>/approve", methods=["POST"])
@login_required
@admin_required
def approve_order(order_id: int):
    result = settle_order(order_id)

    current_app.logger.info(
        f"Admin {current_user.id} approved order {order_id}: "
        f"{result.distributed_count} commissions, {result.distributed_total} satang"
    )
    return jsonify({"status": "ok", **result.to_dict()})


@admin_bp.route("/orders/<int:order_id>/fail", methods=["POST"])
@login_required
@admin_required
def mark_order_failed(order_id: int):
    order = fail_order(order_id, note=request_note())
    current_app.logger.info(f"Admin {current_user.id} set order {order.id} → failed")
    return jsonify({"status": "ok", "order_id": order.id, "order_status": str(order.status)})


@admin_bp.route("/orders/<int:order_id>/refund", methods=["POST"])
@login_required
@admin_required
def mark_order_refunded(order_id: int):
    order = refund_order(order_id, note=request_note())
    current_app.logger.info(f"Admin {current_user.id} set order {order.id} → refunded")
    return jsonify({"status": "ok", "order_id": order.id, "order_status": str(order.status)})
