import logging

from settlement.extensions import db
from settlement.models import (
    Entitlement,
    EntitlementStatus,
    ProductKind,
    User,
    UserRole,
)
from settlement.utils import add_months, utcnow

logger = logging.getLogger(__name__)


def get_entitlement(user_id, kind):
    return Entitlement.query.filter_by(user_id=user_id, kind=kind).first()


def has_active_entitlement(user_id, kind, now=None) -> bool:
    entitlement = get_entitlement(user_id, kind)
    return bool(entitlement and entitlement.is_active_at(now or utcnow()))


def activate_product(order, now=None):
    """
    Apply a paid order's entitlement to its buyer.

    An unexpired entitlement is extended from its current end; a missing or
    expired one restarts from ``now``. Partner purchases also promote the
    buyer's role. Does not commit.
    """
    now = now or utcnow()
    months = order.total_months

    entitlement = (
        Entitlement.query
        .filter_by(user_id=order.user_id, kind=order.kind)
        .with_for_update()
        .first()
    )

    if entitlement and entitlement.is_active_at(now):
        previous_end = entitlement.end_at
        entitlement.end_at = add_months(previous_end, months)
        action = "extended"
    else:
        previous_end = None
        if entitlement is None:
            entitlement = Entitlement(user_id=order.user_id, kind=order.kind)
            db.session.add(entitlement)
        entitlement.start_at = now
        entitlement.end_at = add_months(now, months)
        action = "started"

    entitlement.status = EntitlementStatus.ACTIVE
    entitlement.price = order.amount
    entitlement.last_order_id = order.id

    if order.kind == ProductKind.PARTNER:
        buyer = db.session.get(User, order.user_id)
        if buyer.role == UserRole.USER:
            buyer.role = UserRole.PARTNER

    logger.info(
        "Order %s %s %s entitlement for user %s: %s -> %s (+%s months)",
        order.id, action, order.kind, order.user_id, previous_end, entitlement.end_at, months,
    )
    return entitlement


def expire_entitlements(now=None) -> int:
    """Flip past-due active entitlements to expired. Returns rows touched."""
    now = now or utcnow()
    count = (
        Entitlement.query
        .filter(
            Entitlement.status == EntitlementStatus.ACTIVE,
            Entitlement.end_at <= now,
        )
        .update({Entitlement.status: EntitlementStatus.EXPIRED}, synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Expired %s entitlements", count)
    return count
