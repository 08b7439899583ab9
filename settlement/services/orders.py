# settlement/services/orders.py
"""
Order lifecycle: checkout creates pending orders, settlement marks them paid.

``settle_order`` is the only transition with side effects. Marking the
order paid, activating the product and distributing commissions commit
together or not at all.
"""
import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from settlement.errors import (
    NotFound,
    OrderNotPending,
    SettlementError,
    StoreUnavailable,
    ValidationError,
)
from settlement.extensions import db
from settlement.models import Order, OrderStatus, ProductKind
from settlement.services.activation import activate_product
from settlement.services.commission import commission_summary, distribute_commission, pool_for
from settlement.utils import generate_order_number, utcnow

logger = logging.getLogger(__name__)

_ORDER_PREFIX = {
    ProductKind.SIGNAL: "SIG",
    ProductKind.PARTNER: "PTN",
}


@dataclass
class SettlementResult:
    order: Order
    distributed_count: int
    distributed_total: int
    already_settled: bool = False

    def to_dict(self):
        return {
            "order_id": self.order.id,
            "status": str(self.order.status),
            "already_settled": self.already_settled,
            "distributed_count": self.distributed_count,
            "distributed_total": self.distributed_total,
        }


def _get_order(order_id, lock=False):
    query = db.session.query(Order).filter(Order.id == order_id)
    if lock:
        query = query.with_for_update()
    order = query.first()
    if order is None:
        raise NotFound(f"Order {order_id} not found")
    return order


def _already_settled(order):
    count, total = commission_summary(order.id)
    return SettlementResult(order, count, total, already_settled=True)


def settle_order(order_id, now=None) -> SettlementResult:
    """
    Mark a pending order paid and apply its side effects exactly once.

    Retrying on an order that is already paid returns the commissions
    written by the first run. Failed or refunded orders are rejected.
    """
    now = now or utcnow()

    try:
        order = _get_order(order_id, lock=True)

        if order.status == OrderStatus.PAID:
            db.session.rollback()
            return _already_settled(order)
        if order.status != OrderStatus.PENDING:
            raise OrderNotPending(f"Order {order.id} is {order.status}, not pending")

        # Only one concurrent approver can flip pending -> paid
        flipped = db.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.PAID, paid_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if flipped != 1:
            db.session.rollback()
            order = _get_order(order_id)
            logger.info("Order %s settled by a concurrent request", order.id)
            return _already_settled(order)

        db.session.refresh(order)

        activate_product(order, now=now)
        result = distribute_commission(order, now=now)

        db.session.commit()

    except IntegrityError:
        # the loser of a settlement race trips the uniqueness constraints
        db.session.rollback()
        order = _get_order(order_id)
        if order.status == OrderStatus.PAID:
            logger.warning("Order %s: duplicate settlement rejected by constraints", order_id)
            return _already_settled(order)
        raise StoreUnavailable(f"Settlement of order {order_id} failed; retry")
    except SettlementError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Settlement of order %s rolled back", order_id)
        raise StoreUnavailable(f"Settlement of order {order_id} failed; retry") from e
    except Exception:
        db.session.rollback()
        logger.exception("Settlement of order %s aborted", order_id)
        raise

    logger.info(
        "Order %s paid: %s commissions, total %s",
        order.id, result.count, result.total,
    )
    return SettlementResult(order, result.count, result.total)


def _simple_transition(order_id, target, note=None, now=None):
    now = now or utcnow()
    try:
        order = _get_order(order_id, lock=True)
        if order.status == target:
            db.session.rollback()
            return order
        order.transition_to(target, now=now)
        if note:
            order.note = note[:255]
        db.session.commit()
    except SettlementError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable(f"Could not update order {order_id}; retry") from e

    logger.info("Order %s -> %s", order.id, target)
    return order


def fail_order(order_id, note=None, now=None):
    """pending -> failed (payment never arrived or was declined)."""
    return _simple_transition(order_id, OrderStatus.FAILED, note=note, now=now)


def refund_order(order_id, note=None, now=None):
    """
    paid -> refunded. Entitlement and commissions written at settlement are
    left as they are; reversing them is a manual admin decision.
    """
    return _simple_transition(order_id, OrderStatus.REFUNDED, note=note, now=now)


def plan_for(kind, months):
    plans = current_app.config["SIGNAL_PLANS" if kind == ProductKind.SIGNAL else "PARTNER_PLANS"]
    plan = plans.get(months)
    if plan is None:
        raise ValidationError(f"No {kind} plan for {months} months", code="invalid_plan")
    return plan


def create_order(user, kind, months) -> Order:
    """Open a pending order for a plan; price is always computed server-side."""
    try:
        kind = ProductKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown product kind: {kind}", code="invalid_kind")

    price, bonus = plan_for(kind, months)

    discount = 0
    if kind == ProductKind.SIGNAL and user.referred_by_id:
        discount = min(price, current_app.config.get("SIGNAL_REFERRAL_DISCOUNT", 0))

    order = Order(
        order_number=generate_order_number(_ORDER_PREFIX[kind]),
        user_id=user.id,
        kind=kind,
        original_amount=price,
        discount_amount=discount,
        amount=price - discount,
        details={"months": months, "bonus": bonus},
        status=OrderStatus.PENDING,
    )
    order.commission_pool = pool_for(order)

    db.session.add(order)
    db.session.commit()

    logger.info("Order %s opened for user %s: %s %s months, %s satang", order.order_number, user.id, kind, months, order.amount)
    return order
