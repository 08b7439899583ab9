"""HTTP surface: admin, referral and checkout blueprints."""
import pytest

from settlement.models import Commission, OrderStatus, UserRole, WithdrawalStatus

WITHDRAW_FORM = {
    "amount": 40_000,
    "bank_name": "Kasikorn",
    "account_name": "Jane Doe",
    "account_number": "1234567890",
}


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN)


@pytest.fixture
def earner(make_user, grant_access, seed_commission):
    user = make_user()
    grant_access(user)
    seed_commission(user, 30_000)
    seed_commission(user, 20_000)
    return user


class TestAdminOrders:
    def test_approve_settles_order(self, admin, login, make_chain, make_order):
        users = make_chain(2)
        order = make_order(users[-1])

        resp = login(admin).post(f"/admin/orders/{order.id}/approve")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "ok"
        assert data["distributed_count"] == 2
        assert data["distributed_total"] == 30_000
        assert data["already_settled"] is False
        assert order.status == OrderStatus.PAID

    def test_approve_twice_reports_existing(self, admin, login, make_chain, make_order):
        users = make_chain(1)
        order = make_order(users[-1])
        client = login(admin)

        client.post(f"/admin/orders/{order.id}/approve")
        resp = client.post(f"/admin/orders/{order.id}/approve")

        assert resp.status_code == 200
        assert resp.get_json()["already_settled"] is True
        assert Commission.query.count() == 1

    def test_approve_failed_order_conflicts(self, admin, login, make_user, make_order):
        order = make_order(make_user())
        client = login(admin)
        client.post(f"/admin/orders/{order.id}/fail", json={"note": "declined"})

        resp = client.post(f"/admin/orders/{order.id}/approve")

        assert resp.status_code == 409
        assert resp.get_json()["reason"] == "order_not_pending"
        assert order.note == "declined"

    def test_unknown_order(self, admin, login):
        resp = login(admin).post("/admin/orders/999/approve")
        assert resp.status_code == 404

    def test_non_admin_forbidden(self, login, make_user, make_order):
        user = make_user()
        order = make_order(user)

        resp = login(user).post(f"/admin/orders/{order.id}/approve")

        assert resp.status_code == 403
        assert resp.get_json()["reason"] == "forbidden"
        assert order.status == OrderStatus.PENDING

    def test_anonymous_gets_json_401(self, app, make_user, make_order):
        order = make_order(make_user())

        resp = app.test_client().post(f"/admin/orders/{order.id}/approve")

        assert resp.status_code == 401
        assert resp.get_json()["reason"] == "unauthorized"


class TestWithdrawEndpoints:
    def test_balance(self, earner, login):
        data = login(earner).get("/referrals/balance").get_json()

        assert data["balance"] == 50_000
        assert data["withdrawable"] == 50_000
        assert data["min_withdrawal"] == 35_000
        assert data["referral_code"] == earner.referral_code

    def test_withdraw_and_confirm(self, earner, login, sender):
        client = login(earner)

        resp = client.post("/referrals/withdraw", json=WITHDRAW_FORM)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "requested"
        assert data["code_sent"] is True
        assert "****" in data["destination"]

        withdrawal_id = data["withdrawal_id"]
        resp = client.post(f"/referrals/withdraw/{withdrawal_id}/confirm", json={"code": sender.last_code})
        assert resp.status_code == 200
        assert resp.get_json()["result"] == "ok"

        history = client.get("/referrals/withdrawals").get_json()["withdrawals"]
        assert [w["status"] for w in history] == ["pending"]
        assert client.get("/referrals/balance").get_json()["withdrawable"] == 10_000

    def test_wrong_code(self, earner, login, sender):
        client = login(earner)
        withdrawal_id = client.post("/referrals/withdraw", json=WITHDRAW_FORM).get_json()["withdrawal_id"]
        bad = "111111" if sender.last_code != "111111" else "222222"

        resp = client.post(f"/referrals/withdraw/{withdrawal_id}/confirm", json={"code": bad})

        assert resp.status_code == 400
        assert resp.get_json()["result"] == "mismatch"

    def test_below_minimum(self, earner, login, sender):
        resp = login(earner).post("/referrals/withdraw", json=dict(WITHDRAW_FORM, amount=1_000))

        assert resp.status_code == 409
        assert resp.get_json()["reason"] == "below_minimum"

    def test_phone_used_by_another_account(self, make_user, grant_access, seed_commission, login, sender):
        owner = make_user(phone="0812345678")
        other = make_user(phone="+66 81 234 5678")
        for user in (owner, other):
            grant_access(user)
            seed_commission(user, 50_000)

        client = login(owner)
        withdrawal_id = client.post("/referrals/withdraw", json=WITHDRAW_FORM).get_json()["withdrawal_id"]
        client.post(f"/referrals/withdraw/{withdrawal_id}/confirm", json={"code": sender.last_code})

        resp = login(other).post("/referrals/withdraw", json=WITHDRAW_FORM)

        assert resp.status_code == 409
        assert resp.get_json()["reason"] == "phone_in_use"

    def test_not_eligible(self, make_user, seed_commission, login, sender):
        user = make_user()
        seed_commission(user, 50_000)

        resp = login(user).post("/referrals/withdraw", json=WITHDRAW_FORM)

        assert resp.status_code == 403
        assert resp.get_json()["reason"] == "not_eligible"

    def test_form_errors(self, earner, login):
        resp = login(earner).post("/referrals/withdraw", json={"amount": 40_000})

        assert resp.status_code == 400
        assert "bank_name" in resp.get_json()["errors"]

    def test_rate_limited(self, earner, login, sender):
        client = login(earner)
        withdrawal_id = client.post("/referrals/withdraw", json=WITHDRAW_FORM).get_json()["withdrawal_id"]
        client.post(f"/referrals/withdraw/{withdrawal_id}/resend")
        client.post(f"/referrals/withdraw/{withdrawal_id}/resend")

        resp = client.post(f"/referrals/withdraw/{withdrawal_id}/resend")

        assert resp.status_code == 429

    def test_commission_history(self, earner, login):
        rows = login(earner).get("/referrals/commissions").get_json()["commissions"]

        assert sorted(r["amount"] for r in rows) == [20_000, 30_000]


class TestAdminWithdrawals:
    @pytest.fixture
    def pending_id(self, earner, login, sender):
        client = login(earner)
        withdrawal_id = client.post("/referrals/withdraw", json=WITHDRAW_FORM).get_json()["withdrawal_id"]
        client.post(f"/referrals/withdraw/{withdrawal_id}/confirm", json={"code": sender.last_code})
        return withdrawal_id

    def test_list_by_status(self, admin, login, pending_id):
        client = login(admin)

        pending = client.get("/admin/withdrawals?status=pending").get_json()["withdrawals"]
        paid = client.get("/admin/withdrawals?status=paid").get_json()["withdrawals"]

        assert [w["id"] for w in pending] == [pending_id]
        assert paid == []

    def test_non_admin_gets_json_403(self, earner, login):
        resp = login(earner).get("/admin/withdrawals")

        assert resp.status_code == 403
        assert resp.get_json() == {
            "status": "error",
            "reason": "forbidden",
            "message": "Admin access required.",
        }

    def test_invalid_status_filter(self, admin, login):
        resp = login(admin).get("/admin/withdrawals?status=bogus")
        assert resp.status_code == 400

    def test_approve_then_pay(self, admin, login, earner, pending_id):
        client = login(admin)

        resp = client.post(f"/admin/withdrawals/{pending_id}/approve")
        assert resp.get_json()["withdrawal"]["status"] == WithdrawalStatus.APPROVED.value

        resp = client.post(f"/admin/withdrawals/{pending_id}/paid", json={"note": "transfer ref 884"})
        assert resp.status_code == 200
        assert resp.get_json()["withdrawal"]["status"] == "paid"
        assert login(earner).get("/referrals/balance").get_json()["balance"] == 0

    def test_reject(self, admin, login, earner, pending_id):
        resp = login(admin).post(f"/admin/withdrawals/{pending_id}/reject", json={"note": "wrong account"})

        assert resp.get_json()["withdrawal"]["status"] == "rejected"
        assert login(earner).get("/referrals/balance").get_json()["withdrawable"] == 50_000

    def test_pay_before_approve_conflicts(self, admin, login, pending_id):
        resp = login(admin).post(f"/admin/withdrawals/{pending_id}/paid")

        assert resp.status_code == 409
        assert resp.get_json()["reason"] == "invalid_transition"


class TestCheckout:
    def test_plans(self, app):
        data = app.test_client().get("/checkout/signal/plans").get_json()

        assert [p["months"] for p in data["plans"]] == [1, 3, 6, 9]
        assert data["referral_discount"] == 30_000

    def test_start_checkout(self, make_user, login):
        resp = login(make_user()).post("/checkout/partner", json={"months": 12})

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["amount"] == 149_900
        assert data["bonus"] == 3

    def test_unknown_plan(self, make_user, login):
        resp = login(make_user()).post("/checkout/signal", json={"months": 2})

        assert resp.status_code == 400
        assert resp.get_json()["reason"] == "invalid_plan"
