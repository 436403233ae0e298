from datetime import date, datetime

import pytest

from sipdesk.domain.fulfillment.service import FulfillmentService
from sipdesk.domain.fulfillment.units import DayUnit, WholeOrderUnit
from sipdesk.domain.wallet.coordinator import CancellationCoordinator, wallet_share
from sipdesk.domain.wallet.ledger import apply_movement
from sipdesk.domain.wallet.service import WalletService
from sipdesk.errors import InsufficientBalance, InvalidRequest, InvalidStateTransition, NotFound
from sipdesk.models import WalletTransaction, Withdrawal

from .helpers import add_plan_order, add_quicksip_order

NOW = datetime(2024, 1, 10, 9, 30)
LATER = datetime(2024, 1, 10, 11, 0)


@pytest.fixture
def service(db):
    return WalletService(db)


@pytest.fixture
def admin(make_user, actor_for):
    return actor_for(make_user(role="admin"))


@pytest.fixture
def chef(make_user, actor_for):
    return actor_for(make_user(role="chef"))


def balance(db, user):
    db.refresh(user)
    return user.referral_wallet


# ---------------------------------------------------------------- ledger


def test_movement_applies_once_per_reference(db, make_user):
    user = make_user(wallet=10)
    assert apply_movement(db, user.id, 25, "referral_credit", "referral:abc", NOW)
    assert not apply_movement(db, user.id, 25, "referral_credit", "referral:abc", NOW)
    db.commit()
    assert balance(db, user) == 35
    assert db.query(WalletTransaction).count() == 1


def test_movement_never_overdraws(db, make_user):
    user = make_user(wallet=10)
    with pytest.raises(InsufficientBalance):
        apply_movement(db, user.id, -11, "order_debit", "order:1:wallet", NOW)
    db.rollback()
    assert balance(db, user) == 10


def test_referral_credit_is_idempotent(db, make_user, service):
    user = make_user()
    assert service.credit_referral(user.id, 40, "friend-7", NOW)
    assert not service.credit_referral(user.id, 40, "friend-7", LATER)
    summary = service.get_summary(user.id)
    assert summary.currentBalance == 40
    assert summary.totalEarned == 40
    assert [t.reference for t in summary.transactions] == ["referral:friend-7"]


# ---------------------------------------------------------------- withdrawals


def test_request_withdrawal_holds_the_amount(db, make_user, actor_for, service):
    user = make_user(wallet=150)
    withdrawal = service.request_withdrawal(actor_for(user), 120, "asha@okbank", NOW)

    assert withdrawal.status == "pending"
    assert withdrawal.upi_id == "asha@okbank"
    assert balance(db, user) == 30
    hold = db.query(WalletTransaction).filter_by(reference=f"withdrawal:{withdrawal.id}:hold").one()
    assert hold.amount == -120


def test_request_more_than_balance(db, make_user, actor_for, service):
    user = make_user(wallet=50)
    with pytest.raises(InsufficientBalance):
        service.request_withdrawal(actor_for(user), 51, "asha@okbank", NOW)
    assert db.query(Withdrawal).count() == 0
    assert balance(db, user) == 50


@pytest.mark.parametrize("amount, upi", [(0, "asha@okbank"), (-5, "asha@okbank"), (10, "  ")])
def test_request_validates_input(make_user, actor_for, service, amount, upi):
    user = make_user(wallet=50)
    with pytest.raises(InvalidRequest):
        service.request_withdrawal(actor_for(user), amount, upi, NOW)


def test_rejecting_refunds_exactly_once(db, make_user, actor_for, service, admin):
    user = make_user(wallet=150)
    withdrawal = service.request_withdrawal(actor_for(user), 120, "asha@okbank", NOW)
    assert balance(db, user) == 30

    rejected, changed = service.set_withdrawal_status(withdrawal.id, "rejected", admin, LATER, "Invalid UPI")
    assert changed
    assert rejected.status == "rejected"
    assert rejected.processed_at == LATER
    assert balance(db, user) == 150

    # A retried call after a timeout must not credit again
    _, changed = service.set_withdrawal_status(withdrawal.id, "rejected", admin, LATER, "Invalid UPI")
    assert not changed
    assert balance(db, user) == 150
    assert db.query(WalletTransaction).filter_by(kind="withdrawal_refund").count() == 1


def test_approving_keeps_the_hold(db, make_user, actor_for, service, admin):
    user = make_user(wallet=100)
    withdrawal = service.request_withdrawal(actor_for(user), 60, "asha@okbank", NOW)

    approved, changed = service.set_withdrawal_status(withdrawal.id, "approved", admin, LATER, "UTR 991")
    assert changed
    assert approved.processed_by_id == admin.user_id
    assert approved.transfer_note == "UTR 991"
    assert balance(db, user) == 40
    assert service.get_summary(user.id).totalWithdrawn == 60


def test_processed_withdrawal_cannot_flip(db, make_user, actor_for, service, admin):
    user = make_user(wallet=100)
    withdrawal = service.request_withdrawal(actor_for(user), 60, "asha@okbank", NOW)
    service.set_withdrawal_status(withdrawal.id, "approved", admin, LATER)

    with pytest.raises(InvalidStateTransition):
        service.set_withdrawal_status(withdrawal.id, "rejected", admin, LATER)
    assert balance(db, user) == 40


def test_rejection_rolls_back_when_refund_fails(db, make_user, actor_for, service, admin, monkeypatch):
    user = make_user(wallet=100)
    withdrawal = service.request_withdrawal(actor_for(user), 60, "asha@okbank", NOW)

    def broken_movement(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr("sipdesk.domain.wallet.service.apply_movement", broken_movement)
    with pytest.raises(RuntimeError):
        service.set_withdrawal_status(withdrawal.id, "rejected", admin, LATER)

    db.expire_all()
    assert db.get(Withdrawal, withdrawal.id).status == "pending"
    assert balance(db, user) == 40


def test_unknown_withdrawal(service, admin):
    with pytest.raises(NotFound):
        service.set_withdrawal_status(404, "approved", admin, LATER)
    with pytest.raises(InvalidRequest):
        service.set_withdrawal_status(404, "pending", admin, LATER)


# ---------------------------------------------------------------- cancellation refunds


def test_wallet_share_for_whole_order_and_days(db, make_user):
    user = make_user()
    quick = add_quicksip_order(db, user, date(2024, 1, 10), subtotal=120, wallet_used=50)
    assert wallet_share(WholeOrderUnit(quick)) == 50

    plan = add_plan_order(db, user, [100, 100, 100], date(2024, 1, 11), wallet_used=50)
    assert [wallet_share(DayUnit(d)) for d in plan.days] == [16, 16, 16]

    no_wallet = add_quicksip_order(db, user, date(2024, 1, 10))
    assert wallet_share(WholeOrderUnit(no_wallet)) == 0


def test_coordinator_refunds_once_per_unit(db, make_user):
    user = make_user()
    order = add_quicksip_order(db, user, date(2024, 1, 10), subtotal=120, wallet_used=50)
    coordinator = CancellationCoordinator(db)

    assert coordinator.on_unit_cancelled(WholeOrderUnit(order), NOW) == 50
    assert coordinator.on_unit_cancelled(WholeOrderUnit(order), NOW) == 0
    db.commit()
    assert balance(db, user) == 50


def test_cancelling_order_returns_wallet_spend(db, make_user, chef):
    user = make_user()
    order = add_quicksip_order(db, user, date(2024, 1, 10), subtotal=120, wallet_used=50)
    fulfillment = FulfillmentService(db)

    unit, changed, refunded = fulfillment.cancel(chef, order.id, None, "Out of oranges", NOW)
    assert changed and refunded == 50
    assert unit.order.status == "cancelled"
    assert balance(db, user) == 50

    _, changed, refunded = fulfillment.cancel(chef, order.id, None, "Out of oranges", LATER)
    assert not changed and refunded == 0
    assert balance(db, user) == 50


def test_cancelling_one_plan_day_refunds_its_share(db, make_user, chef):
    user = make_user()
    plan = add_plan_order(db, user, [60, 90, 150], date(2024, 1, 11), wallet_used=100)
    fulfillment = FulfillmentService(db)

    _, _, refunded = fulfillment.cancel(chef, plan.id, plan.days[1].id, "Holiday", NOW)
    assert refunded == 30
    assert balance(db, user) == 30
    db.refresh(plan)
    assert plan.status == "pending"
    assert [d.cancelled_at is not None for d in plan.days] == [False, True, False]


def test_cancelling_every_plan_day_returns_the_whole_wallet_spend(db, make_user, chef):
    user = make_user()
    plan = add_plan_order(db, user, [50, 50, 50], date(2024, 1, 11), wallet_used=100)
    fulfillment = FulfillmentService(db)

    refunds = [fulfillment.cancel(chef, plan.id, day.id, "Customer travelling", NOW)[2] for day in list(plan.days)]

    assert refunds == [33, 33, 34]
    assert balance(db, user) == 100
    db.refresh(plan)
    assert plan.status == "cancelled"
    refund_rows = db.query(WalletTransaction).filter(WalletTransaction.kind == "cancellation_refund").all()
    assert sum(row.amount for row in refund_rows) == 100


def test_failed_refund_aborts_cancellation(db, make_user, chef, monkeypatch):
    user = make_user()
    order = add_quicksip_order(db, user, date(2024, 1, 10), subtotal=120, wallet_used=50)
    fulfillment = FulfillmentService(db)

    def broken_refund(unit, now):
        raise RuntimeError("ledger unavailable")

    monkeypatch.setattr(fulfillment.coordinator, "on_unit_cancelled", broken_refund)
    with pytest.raises(RuntimeError):
        fulfillment.cancel(chef, order.id, None, "Out of oranges", NOW)

    db.expire_all()
    assert order.cancelled_at is None
    assert order.status == "pending"
    assert balance(db, user) == 0
