# settlement/services/referral.py
import logging
from dataclasses import dataclass, field

from flask import current_app

from settlement.errors import NotFound, ReferralCycleError, ValidationError
from settlement.extensions import db
from settlement.models import User

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 50


@dataclass
class AncestorChain:
    users: list = field(default_factory=list)
    truncated: bool = False
    reason: str | None = None  # "cycle" | "max_depth"

    def __len__(self):
        return len(self.users)

    def __iter__(self):
        return iter(self.users)


def _max_depth(max_depth=None):
    if max_depth is not None:
        return max_depth
    return current_app.config.get("MAX_REFERRAL_DEPTH", DEFAULT_MAX_DEPTH)


def walk_ancestors(user_id: int, max_depth: int | None = None) -> AncestorChain:
    """
    Follow referred_by from the user upward, nearest referrer first.

    Stops at the root, at ``max_depth`` ancestors, or when a user repeats.
    Truncations are logged as integrity anomalies and flagged on the result.
    """
    limit = _max_depth(max_depth)
    chain = AncestorChain()

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")

    visited = {user.id}
    parent_id = user.referred_by_id

    while parent_id is not None:
        if parent_id in visited:
            logger.error(
                "Referral cycle detected above user %s at user %s; chain truncated at %s levels",
                user_id, parent_id, len(chain.users),
            )
            chain.truncated, chain.reason = True, "cycle"
            break

        if len(chain.users) >= limit:
            logger.warning(
                "Referral chain of user %s exceeds max depth %s; truncated",
                user_id, limit,
            )
            chain.truncated, chain.reason = True, "max_depth"
            break

        parent = db.session.get(User, parent_id)
        if parent is None:
            # dangling pointer: treat the last reachable user as the root
            logger.error("User %s points at missing referrer %s", user_id, parent_id)
            break

        chain.users.append(parent)
        visited.add(parent.id)
        parent_id = parent.referred_by_id

    return chain


def ancestors(user_id: int, max_depth: int | None = None) -> list:
    """Ordered ancestor chain of a user, nearest first; empty for a root user."""
    return walk_ancestors(user_id, max_depth).users


def link_referrer(user, referral_code):
    """
    Attach the owner of ``referral_code`` as the user's referrer.
    Rejects self-referral and any link that would close a cycle.
    Caller commits.
    """
    code = (referral_code or "").strip().upper()
    if not code:
        raise ValidationError("Referral code is required.", code="missing_referral_code")

    referrer = User.query.filter_by(referral_code=code).first()
    if referrer is None:
        raise NotFound("Unknown referral code.")

    if referrer.id == user.id:
        raise ReferralCycleError("Users cannot refer themselves.")

    # the new parent must not already descend from the user
    upline = walk_ancestors(referrer.id)
    if any(u.id == user.id for u in upline) or upline.reason == "cycle":
        raise ReferralCycleError(
            f"Linking user {user.id} under {referrer.id} would create a referral cycle."
        )

    user.referred_by_id = referrer.id
    logger.info("User %s linked under referrer %s", user.id, referrer.id)
    return referrer
