import pytest

from settlement.errors import InvalidTransition, NotEligible, SettlementError
from settlement.models import (
    ORDER_LIFECYCLE,
    WITHDRAWAL_LIFECYCLE,
    OrderStatus,
    WithdrawalStatus,
)
from settlement.models.commission import COMMISSION_LIFECYCLE, CommissionStatus


class TestOrderLifecycle:
    @pytest.mark.parametrize("current, target", [
        (OrderStatus.PENDING, OrderStatus.PAID),
        (OrderStatus.PENDING, OrderStatus.FAILED),
        (OrderStatus.PAID, OrderStatus.REFUNDED),
    ])
    def test_allowed(self, current, target):
        ORDER_LIFECYCLE.check(current, target)

    @pytest.mark.parametrize("current, target", [
        (OrderStatus.PAID, OrderStatus.PENDING),
        (OrderStatus.FAILED, OrderStatus.PAID),
        (OrderStatus.REFUNDED, OrderStatus.PAID),
        (OrderStatus.PENDING, OrderStatus.REFUNDED),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition) as exc:
            ORDER_LIFECYCLE.check(current, target)
        assert exc.value.entity == "order"

    def test_final_states(self):
        assert ORDER_LIFECYCLE.is_final(OrderStatus.FAILED)
        assert ORDER_LIFECYCLE.is_final(OrderStatus.REFUNDED)
        assert not ORDER_LIFECYCLE.is_final(OrderStatus.PAID)


class TestWithdrawalLifecycle:
    def test_happy_path(self):
        path = [
            WithdrawalStatus.REQUESTED,
            WithdrawalStatus.OTP_VERIFIED,
            WithdrawalStatus.PENDING,
            WithdrawalStatus.APPROVED,
            WithdrawalStatus.PAID,
        ]
        for current, target in zip(path, path[1:]):
            assert WITHDRAWAL_LIFECYCLE.can(current, target)

    @pytest.mark.parametrize("status", [
        WithdrawalStatus.PAID,
        WithdrawalStatus.REJECTED,
        WithdrawalStatus.EXPIRED,
    ])
    def test_terminal(self, status):
        assert WITHDRAWAL_LIFECYCLE.is_final(status)

    def test_code_cannot_be_skipped(self):
        assert not WITHDRAWAL_LIFECYCLE.can(WithdrawalStatus.REQUESTED, WithdrawalStatus.PENDING)

    def test_only_pending_can_be_rejected(self):
        rejectable = [
            s for s in WithdrawalStatus
            if WITHDRAWAL_LIFECYCLE.can(s, WithdrawalStatus.REJECTED)
        ]
        assert rejectable == [WithdrawalStatus.PENDING]


class TestCommissionLifecycle:
    def test_paid_is_final(self):
        assert COMMISSION_LIFECYCLE.can(CommissionStatus.PENDING, CommissionStatus.PAID)
        with pytest.raises(InvalidTransition):
            COMMISSION_LIFECYCLE.check(CommissionStatus.PAID, CommissionStatus.PENDING)


class TestErrors:
    def test_payload(self):
        err = NotEligible("Active partner access required to withdraw.")
        assert err.to_dict() == {
            "status": "error",
            "reason": "not_eligible",
            "message": "Active partner access required to withdraw.",
        }
        assert err.http_status == 403

    def test_default_message_from_docstring(self):
        assert SettlementError().message == "Base class for all rejections raised by the engine."

    def test_code_override(self):
        assert SettlementError("x", code="custom").code == "custom"
