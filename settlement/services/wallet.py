import logging

from flask import current_app
from sqlalchemy import func

from settlement.extensions import db
from settlement.models import Commission, CommissionStatus, IN_FLIGHT_STATUSES, User, Withdrawal
from settlement.models.commission import COMMISSION_LIFECYCLE

logger = logging.getLogger(__name__)

SETTLE_ALL_PENDING = "all_pending"
SETTLE_OLDEST_FIRST = "oldest_first"


def get_balance(user_id: int) -> int:
    """Sum of the user's pending commissions, in satang."""
    total = db.session.query(
        func.coalesce(func.sum(Commission.amount), 0)
    ).filter(
        Commission.user_id == user_id,
        Commission.status == CommissionStatus.PENDING,
    ).scalar()
    return int(total or 0)


def get_reserved_amount(user_id: int, exclude_id=None) -> int:
    query = db.session.query(
        func.coalesce(func.sum(Withdrawal.amount), 0)
    ).filter(
        Withdrawal.user_id == user_id,
        Withdrawal.status.in_(IN_FLIGHT_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(Withdrawal.id != exclude_id)
    return int(query.scalar() or 0)


def get_withdrawable_balance(user_id: int, exclude_id=None) -> int:
    """Balance minus what in-flight withdrawals have already claimed."""
    return get_balance(user_id) - get_reserved_amount(user_id, exclude_id=exclude_id)


def lock_user(user_id: int):
    """Row-lock the user; every ledger mutation for that user goes through here."""
    return (
        db.session.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .one()
    )


def settle_commissions(withdrawal, now, policy=None) -> list:
    """
    Flip pending commissions to paid for a withdrawal being paid out.

    ``all_pending`` consumes every pending commission of the user, however
    large the withdrawal. ``oldest_first`` consumes the oldest rows until the
    withdrawn amount is covered. Caller holds the user lock and commits.
    """
    policy = policy or current_app.config.get("WITHDRAWAL_SETTLE_POLICY", SETTLE_ALL_PENDING)

    pending = (
        Commission.query
        .filter_by(user_id=withdrawal.user_id, status=CommissionStatus.PENDING)
        .order_by(Commission.created_at.asc(), Commission.id.asc())
        .all()
    )

    if policy == SETTLE_OLDEST_FIRST:
        selected, covered = [], 0
        for commission in pending:
            if covered >= withdrawal.amount:
                break
            selected.append(commission)
            covered += commission.amount
    elif policy == SETTLE_ALL_PENDING:
        selected = pending
    else:
        raise ValueError(f"Unknown WITHDRAWAL_SETTLE_POLICY: {policy}")

    for commission in selected:
        COMMISSION_LIFECYCLE.check(commission.status, CommissionStatus.PAID)
        commission.status = CommissionStatus.PAID
        commission.paid_at = now
        commission.withdrawal_id = withdrawal.id

    flipped = sum(c.amount for c in selected)
    logger.info(
        "Withdrawal %s (%s satang) settled %s commissions worth %s using %s",
        withdrawal.id, withdrawal.amount, len(selected), flipped, policy,
    )
    if flipped != withdrawal.amount:
        logger.warning(
            "Withdrawal %s: settled commissions (%s) differ from withdrawn amount (%s)",
            withdrawal.id, flipped, withdrawal.amount,
        )
    return selected
