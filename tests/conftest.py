"""Pytest configuration and shared fixtures for all tests."""
import itertools
from datetime import timedelta

import pytest
from flask import g

from settlement import create_app
from settlement.errors import CodeDeliveryError
from settlement.extensions import db
from settlement.models import (
    Commission,
    CommissionStatus,
    Entitlement,
    EntitlementStatus,
    Order,
    OrderStatus,
    ProductKind,
    User,
    UserRole,
)
from settlement.services.delivery import CodeSender
from settlement.utils import generate_unique_referral_code, utcnow


class RecordingCodeSender(CodeSender):
    """Keeps every code in memory instead of sending it."""
    channel = "test"

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, destination, code):
        if self.fail:
            raise CodeDeliveryError("gateway down")
        self.sent.append((destination, code))

    @property
    def last_code(self):
        return self.sent[-1][1]


@pytest.fixture
def app():
    """Application on an in-memory database, context pushed for the test."""
    app = create_app("config.TestingConfig")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def sender(app):
    recording = RecordingCodeSender()
    app.extensions["code_sender"] = recording
    return recording


@pytest.fixture
def now():
    return utcnow()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make_user(referrer=None, role=UserRole.USER, phone=None):
        n = next(counter)
        user = User(
            username=f"user{n}",
            email=f"user{n}@example.com",
            phone=phone or f"08{n:08d}",
            role=role,
            referral_code=generate_unique_referral_code(),
            referred_by_id=referrer.id if referrer else None,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_chain(make_user):
    """make_chain(3) -> [root, ..., buyer]; the buyer has 3 ancestors."""
    def _make_chain(ancestors):
        users = [make_user()]
        for _ in range(ancestors):
            users.append(make_user(referrer=users[-1]))
        return users

    return _make_chain


@pytest.fixture
def make_order(app):
    def _make_order(user, kind=ProductKind.SIGNAL, months=1, amount=250_000, pool=30_000,
                    status=OrderStatus.PENDING):
        order = Order(
            order_number=f"T-{user.id}-{Order.query.count() + 1}",
            user_id=user.id,
            kind=kind,
            original_amount=amount,
            discount_amount=0,
            amount=amount,
            commission_pool=pool,
            details={"months": months, "bonus": 0},
            status=status,
        )
        db.session.add(order)
        db.session.commit()
        return order

    return _make_order


@pytest.fixture
def grant_access(app):
    """Give a user active signal and partner entitlements."""
    def _grant(user, kinds=(ProductKind.SIGNAL, ProductKind.PARTNER), days=30):
        start = utcnow()
        for kind in kinds:
            db.session.add(Entitlement(
                user_id=user.id,
                kind=kind,
                status=EntitlementStatus.ACTIVE,
                start_at=start,
                end_at=start + timedelta(days=days),
                price=0,
            ))
        db.session.commit()

    return _grant


@pytest.fixture
def seed_commission(make_user, make_order):
    """Pending commission for ``user`` from a fresh paid order of a new buyer."""
    def _seed(user, amount, created_at=None):
        buyer = make_user(referrer=user)
        order = make_order(buyer, status=OrderStatus.PAID)
        commission = Commission(
            user_id=user.id,
            buyer_id=buyer.id,
            order_id=order.id,
            level=1,
            weight=1,
            amount=amount,
            status=CommissionStatus.PENDING,
            created_at=created_at or utcnow(),
        )
        db.session.add(commission)
        db.session.commit()
        return commission

    return _seed


@pytest.fixture
def login(app):
    """login(user) -> test client with that user's session."""
    def _login(user):
        # Requests share the fixture's app context, so drop the user
        # Flask-Login cached on ``g`` by a previous client.
        g.pop("_login_user", None)
        client = app.test_client()
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user.id)
            sess["_fresh"] = True
        return client

    return _login
