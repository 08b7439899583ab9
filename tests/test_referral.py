import pytest

from settlement.errors import NotFound, ReferralCycleError
from settlement.extensions import db
from settlement.services.referral import ancestors, link_referrer, walk_ancestors


class TestWalkAncestors:
    """Upward walk over referred_by pointers."""

    def test_root_user_has_no_ancestors(self, make_user):
        user = make_user()
        chain = walk_ancestors(user.id)

        assert chain.users == []
        assert not chain.truncated

    def test_nearest_referrer_first(self, make_chain):
        root, a, b, buyer = make_chain(3)

        assert [u.id for u in ancestors(buyer.id)] == [b.id, a.id, root.id]

    def test_unknown_user(self, app):
        with pytest.raises(NotFound):
            walk_ancestors(9999)

    def test_cycle_is_truncated(self, make_user):
        a = make_user()
        b = make_user(referrer=a)
        a.referred_by_id = b.id
        db.session.commit()
        buyer = make_user(referrer=a)

        chain = walk_ancestors(buyer.id)

        assert [u.id for u in chain] == [a.id, b.id]
        assert chain.truncated
        assert chain.reason == "cycle"

    def test_cycle_through_buyer(self, make_user):
        a = make_user()
        buyer = make_user(referrer=a)
        a.referred_by_id = buyer.id
        db.session.commit()

        chain = walk_ancestors(buyer.id)

        assert [u.id for u in chain] == [a.id]
        assert chain.reason == "cycle"

    def test_max_depth_truncates(self, make_chain):
        users = make_chain(5)
        chain = walk_ancestors(users[-1].id, max_depth=3)

        assert len(chain) == 3
        assert chain.truncated
        assert chain.reason == "max_depth"

    def test_chain_exactly_at_max_depth_is_complete(self, make_chain):
        users = make_chain(3)
        chain = walk_ancestors(users[-1].id, max_depth=3)

        assert len(chain) == 3
        assert not chain.truncated

    def test_depth_from_config(self, app, make_chain):
        app.config["MAX_REFERRAL_DEPTH"] = 2
        users = make_chain(4)

        assert len(walk_ancestors(users[-1].id)) == 2


class TestLinkReferrer:
    def test_links_by_code(self, make_user):
        referrer = make_user()
        user = make_user()

        linked = link_referrer(user, referrer.referral_code.lower())
        db.session.commit()

        assert linked.id == referrer.id
        assert user.referred_by_id == referrer.id

    def test_self_referral_rejected(self, make_user):
        user = make_user()
        with pytest.raises(ReferralCycleError):
            link_referrer(user, user.referral_code)

    def test_descendant_cannot_become_referrer(self, make_chain):
        root, child, grandchild = make_chain(2)

        with pytest.raises(ReferralCycleError):
            link_referrer(root, grandchild.referral_code)
        assert root.referred_by_id is None

    def test_unknown_code(self, make_user):
        with pytest.raises(NotFound):
            link_referrer(make_user(), "NOPE0000")
