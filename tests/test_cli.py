from datetime import timedelta

from settlement.models import OrderStatus, WithdrawalStatus
from settlement.services.withdrawal import request_withdrawal


def test_settle_order_command(app, make_chain, make_order):
    users = make_chain(1)
    order = make_order(users[-1])

    result = app.test_cli_runner().invoke(args=["settle-order", str(order.id)])

    assert result.exit_code == 0
    assert "1 commission(s), 30000 satang" in result.output
    assert order.status == OrderStatus.PAID


def test_expire_withdrawals_command(app, make_user, grant_access, seed_commission, sender, now):
    user = make_user()
    grant_access(user)
    seed_commission(user, 50_000)
    dispatch = request_withdrawal(
        user.id, 40_000, "Kasikorn", "Jane Doe", "1234567890", now=now - timedelta(minutes=30),
    )

    result = app.test_cli_runner().invoke(args=["expire-withdrawals"])

    assert "Expired 1 withdrawal request(s)." in result.output
    assert dispatch.withdrawal.status == WithdrawalStatus.EXPIRED


def test_expire_entitlements_command(app, make_user, grant_access):
    grant_access(make_user(), days=-1)

    result = app.test_cli_runner().invoke(args=["expire-entitlements"])

    assert "Expired 2 entitlement(s)." in result.output
