# settlement/services/commission.py
"""
Commission distribution: split a fixed pool across the buyer's upline.

Weights decay geometrically by level, w_i = r ** (i - 1), and are
re-normalized over the actual chain length, so a lone referrer takes the
whole pool. Amounts are integers; exact shares are floored and the leftover
units go to the largest fractional remainders (ties to the nearer level),
so the amounts always sum to the pool.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from fractions import Fraction

from flask import current_app
from sqlalchemy import func

from settlement.errors import ValidationError
from settlement.extensions import db
from settlement.models import (
    Commission,
    CommissionDistribution,
    CommissionStatus,
    User,
)
from settlement.services.referral import walk_ancestors

logger = logging.getLogger(__name__)

WEIGHT_PLACES = Decimal("0.0000000001")


@dataclass(frozen=True)
class Share:
    level: int
    weight: Fraction  # normalized, w_i / S
    amount: int


@dataclass
class DistributionResult:
    commissions: list
    created: bool
    truncated: bool = False

    @property
    def count(self) -> int:
        return len(self.commissions)

    @property
    def total(self) -> int:
        return sum(c.amount for c in self.commissions)


def _decay(rate) -> Fraction:
    # Fraction(str) keeps "0.8" exact as 4/5
    try:
        r = Fraction(str(rate))
    except (ValueError, ZeroDivisionError):
        raise ValidationError(f"Decay rate must be a number, got {rate!r}", code="invalid_decay_rate")
    if not (0 < r <= 1):
        raise ValidationError(f"Decay rate must be in (0, 1], got {rate}", code="invalid_decay_rate")
    return r


def compute_shares(chain_length: int, pool: int, decay_rate="0.8", min_amount: int = 0) -> list:
    """
    Split ``pool`` minor units across ``chain_length`` levels.

    >>> [s.amount for s in compute_shares(3, 300)]
    [123, 98, 79]
    """
    if chain_length < 0:
        raise ValidationError("Chain length cannot be negative.", code="invalid_chain_depth")
    if isinstance(pool, bool) or not isinstance(pool, int) or pool < 0:
        raise ValidationError(f"Pool must be a non-negative integer, got {pool!r}", code="invalid_pool")
    if chain_length == 0:
        return []

    r = _decay(decay_rate)
    raw = [r ** i for i in range(chain_length)]
    total_weight = sum(raw)

    exact = [pool * w / total_weight for w in raw]
    amounts = [int(x) for x in exact]  # floor, all shares are >= 0

    leftover = pool - sum(amounts)
    by_remainder = sorted(
        range(chain_length),
        key=lambda i: (exact[i] - amounts[i], -i),
        reverse=True,
    )
    for i in by_remainder[:leftover]:
        amounts[i] += 1

    shares = [
        Share(level=i + 1, weight=raw[i] / total_weight, amount=amounts[i])
        for i in range(chain_length)
    ]

    if min_amount:
        # dropped units are not redistributed
        shares = [s for s in shares if s.amount >= min_amount]

    return shares


def pool_for(order) -> int:
    if order.commission_pool is not None:
        return order.commission_pool
    pools = current_app.config.get("COMMISSION_POOLS", {})
    return int(pools.get(str(order.kind), 0))


def _existing(order_id):
    return (
        Commission.query
        .filter_by(order_id=order_id)
        .order_by(Commission.level)
        .all()
    )


def distribute_commission(order, now=None) -> DistributionResult:
    """
    Write one pending Commission per ancestor of the order's buyer.

    Runs inside the caller's transaction and does not commit. A second call
    for the same order returns the rows written by the first.
    """
    already = (
        db.session.query(CommissionDistribution.id)
        .filter_by(order_id=order.id)
        .first()
    )
    if already:
        logger.info("Order %s already distributed; skipping", order.id)
        return DistributionResult(commissions=_existing(order.id), created=False)

    chain = walk_ancestors(order.user_id)
    pool = pool_for(order)
    decay_rate = current_app.config.get("COMMISSION_DECAY_RATE", "0.8")

    shares = compute_shares(
        len(chain),
        pool,
        decay_rate=decay_rate,
        min_amount=current_app.config.get("MIN_COMMISSION", 0),
    )

    by_level = {i + 1: user for i, user in enumerate(chain.users)}
    recipient_ids = sorted({by_level[s.level].id for s in shares})
    if recipient_ids:
        # serialize with balance mutations of the same users; fixed order avoids deadlocks
        (
            db.session.query(User.id)
            .filter(User.id.in_(recipient_ids))
            .order_by(User.id)
            .with_for_update()
            .all()
        )

    commissions = []
    for share in shares:
        commission = Commission(
            user_id=by_level[share.level].id,
            buyer_id=order.user_id,
            order_id=order.id,
            level=share.level,
            weight=(Decimal(share.weight.numerator) / Decimal(share.weight.denominator)).quantize(WEIGHT_PLACES),
            amount=share.amount,
            status=CommissionStatus.PENDING,
        )
        if now is not None:
            commission.created_at = now
        db.session.add(commission)
        commissions.append(commission)

    distribution = CommissionDistribution(
        order_id=order.id,
        pool=pool,
        decay_rate=str(decay_rate),
        levels=len(chain),
        distributed_total=sum(c.amount for c in commissions),
        truncated=chain.truncated,
    )
    db.session.add(distribution)
    db.session.flush()

    if chain.truncated:
        logger.warning(
            "Order %s distributed over truncated chain (%s, %s levels)",
            order.id, chain.reason, len(chain),
        )

    logger.info(
        "Order %s: distributed %s commissions, total %s of pool %s",
        order.id, len(commissions), distribution.distributed_total, pool,
    )
    return DistributionResult(commissions=commissions, created=True, truncated=chain.truncated)


def commission_summary(order_id):
    """(count, total) of commissions recorded for an order."""
    count, total = (
        db.session.query(func.count(Commission.id), func.coalesce(func.sum(Commission.amount), 0))
        .filter(Commission.order_id == order_id)
        .one()
    )
    return int(count), int(total)
