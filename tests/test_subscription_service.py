"""Subscription state machine: creation, plan changes, cancellation, reconciliation."""

from decimal import Decimal

import pytest

from billing.config import get_settings
from billing.db.session import async_session_factory
from billing.models import PlanChangeKind, PlanChangeStatus, Subscription, SubscriptionStatus
from billing.services import subscription_service
from billing.services.errors import (
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PaymentInitiationError,
)
from billing.services.payment_client import PaymentInitiation


async def _assert_plan(subscription_id, plan_id, price):
    async with async_session_factory() as fresh:
        current = await fresh.get(Subscription, subscription_id)
        assert current.plan_id == plan_id
        assert current.price == Decimal(price)


async def _change_statuses(subscription_id):
    async with async_session_factory() as fresh:
        changes = await subscription_service.list_plan_changes(fresh, subscription_id)
        return [(c.target_plan_id, c.status) for c in changes]


async def _active_subscription(db, user_id, plan_id="fixed-basic", price="9.99") -> Subscription:
    subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status=SubscriptionStatus.ACTIVE,
        price=Decimal(price),
        payment_id="pay-initial",
    )
    db.add(subscription)
    await db.commit()
    return subscription


class TestCreateSubscription:
    async def test_creates_pending_and_initiates_payment_for_plan_price(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway

        subscription = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        assert subscription.status == SubscriptionStatus.PENDING
        assert subscription.plan_id == "fixed-basic"
        assert subscription.price == Decimal("9.99")
        assert subscription.start_date is None
        initiate.assert_awaited_once_with(subscription.id, Decimal("9.99"))

    async def test_rejects_second_open_subscription(self, billing_db, seeded, payment_gateway):
        await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        with pytest.raises(ConflictError, match="active or pending subscription"):
            await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-pro")

    async def test_conflict_is_checked_before_plan_lookup(self, billing_db, seeded, payment_gateway):
        await _active_subscription(billing_db, seeded.user_id)

        with pytest.raises(ConflictError):
            await subscription_service.create_subscription(billing_db, seeded.user_id, "no-such-plan")

    async def test_allowed_again_after_cancellation(self, billing_db, seeded, payment_gateway):
        existing = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.cancel_subscription(billing_db, existing.id)

        subscription = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-pro")

        assert subscription.status == SubscriptionStatus.PENDING

    async def test_unknown_plan(self, billing_db, seeded, payment_gateway):
        with pytest.raises(NotFoundError):
            await subscription_service.create_subscription(billing_db, seeded.user_id, "no-such-plan")

    async def test_initiation_failure_cancels_subscription(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        initiate.side_effect = PaymentInitiationError("Payment initiation failed")

        with pytest.raises(PaymentInitiationError, match="Payment initiation failed"):
            await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        rows = await subscription_service.list_subscriptions(billing_db, user_id=seeded.user_id)
        assert [s.status for s in rows] == [SubscriptionStatus.CANCELLED]


class TestUpgrade:
    async def test_bills_price_difference_and_applies_plan_immediately(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        initiate.return_value = PaymentInitiation(payment_id="pay-up", status="SUCCESS", message="ok")
        subscription = await _active_subscription(billing_db, seeded.user_id)

        upgraded = await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        assert upgraded.status == SubscriptionStatus.ACTIVE
        assert upgraded.plan_id == "fixed-pro"
        assert upgraded.price == Decimal("29.99")
        initiate.assert_awaited_once_with(subscription.id, Decimal("20.00"))

        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert len(changes) == 1
        assert changes[0].kind == PlanChangeKind.UPGRADE
        assert changes[0].status == PlanChangeStatus.PENDING
        assert changes[0].previous_plan_id == "fixed-basic"
        assert changes[0].payment_id == "pay-up"

    async def test_rejects_cheaper_or_equal_plan(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id, "fixed-pro", "29.99")

        with pytest.raises(InvalidTransitionError, match="higher price"):
            await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-basic")
        with pytest.raises(InvalidTransitionError):
            await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        await _assert_plan(subscription.id, "fixed-pro", "29.99")
        assert await _change_statuses(subscription.id) == []

    async def test_requires_active_subscription(self, billing_db, seeded, payment_gateway):
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        with pytest.raises(InvalidStateError, match="Only active subscriptions can be upgraded"):
            await subscription_service.upgrade_subscription(billing_db, pending.id, "fixed-pro")

        await _assert_plan(pending.id, "fixed-basic", "9.99")

    async def test_unknown_subscription_and_plan(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id)

        with pytest.raises(NotFoundError):
            await subscription_service.upgrade_subscription(billing_db, "missing", "fixed-pro")
        with pytest.raises(NotFoundError):
            await subscription_service.upgrade_subscription(billing_db, subscription.id, "no-such-plan")

        await _assert_plan(subscription.id, "fixed-basic", "9.99")

    async def test_initiation_failure_reverts_plan(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        initiate.side_effect = PaymentInitiationError("Payment initiation failed")
        subscription = await _active_subscription(billing_db, seeded.user_id)

        with pytest.raises(PaymentInitiationError):
            await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        current = await subscription_service.get_subscription(billing_db, subscription.id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.plan_id == "fixed-basic"
        assert current.price == Decimal("9.99")
        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert changes[0].status == PlanChangeStatus.REVERTED


class TestDowngrade:
    async def test_applies_cheaper_plan_without_payment(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        subscription = await _active_subscription(billing_db, seeded.user_id, "fixed-pro", "29.99")

        downgraded = await subscription_service.downgrade_subscription(billing_db, subscription.id, "fixed-basic")

        assert downgraded.plan_id == "fixed-basic"
        assert downgraded.price == Decimal("9.99")
        assert downgraded.status == SubscriptionStatus.ACTIVE
        initiate.assert_not_awaited()
        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert changes[0].kind == PlanChangeKind.DOWNGRADE
        assert changes[0].status == PlanChangeStatus.APPLIED

    async def test_rejects_more_expensive_plan(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id)

        with pytest.raises(InvalidTransitionError, match="lower price"):
            await subscription_service.downgrade_subscription(billing_db, subscription.id, "fixed-pro")
        with pytest.raises(InvalidTransitionError):
            await subscription_service.downgrade_subscription(billing_db, subscription.id, "fixed-basic")

        await _assert_plan(subscription.id, "fixed-basic", "9.99")
        assert await _change_statuses(subscription.id) == []

    async def test_requires_active_subscription(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id, "fixed-pro", "29.99")
        await subscription_service.cancel_subscription(billing_db, subscription.id)

        with pytest.raises(InvalidStateError, match="downgraded"):
            await subscription_service.downgrade_subscription(billing_db, subscription.id, "fixed-basic")

        await _assert_plan(subscription.id, "fixed-pro", "29.99")


class TestCancel:
    async def test_cancels_active_and_stops_deliveries(self, billing_db, seeded, payment_gateway):
        _, cancel = payment_gateway
        subscription = await _active_subscription(billing_db, seeded.user_id)

        cancelled = await subscription_service.cancel_subscription(billing_db, subscription.id)

        assert cancelled.status == SubscriptionStatus.CANCELLED
        assert cancelled.canceled_at is not None
        cancel.assert_awaited_once_with(subscription.id)

    async def test_pending_cannot_be_cancelled(self, billing_db, seeded, payment_gateway):
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        with pytest.raises(InvalidStateError, match="Only active subscriptions can be cancelled"):
            await subscription_service.cancel_subscription(billing_db, pending.id)

    async def test_concurrent_modification_is_a_conflict(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id)

        async with async_session_factory() as other:
            stale = await other.get(Subscription, subscription.id)
            await subscription_service.cancel_subscription(billing_db, subscription.id)

            stale.plan_id = "fixed-pro"
            with pytest.raises(ConflictError):
                await subscription_service._commit(other)


class TestReconcile:
    async def test_success_activates_pending(self, billing_db, seeded, payment_gateway):
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        result = await subscription_service.reconcile_payment(billing_db, pending.id, "pay-1", True)

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.payment_id == "pay-1"
        assert result.start_date is not None

    async def test_repeated_success_is_harmless(self, billing_db, seeded, payment_gateway):
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        await subscription_service.reconcile_payment(billing_db, pending.id, "pay-1", True)
        again = await subscription_service.reconcile_payment(billing_db, pending.id, "pay-1", True)

        assert again.status == SubscriptionStatus.ACTIVE
        assert again.payment_id == "pay-1"
        assert again.plan_id == "fixed-basic"

    async def test_failure_cancels_pending(self, billing_db, seeded, payment_gateway):
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")

        result = await subscription_service.reconcile_payment(billing_db, pending.id, "pay-1", False)

        assert result.status == SubscriptionStatus.CANCELLED
        assert result.payment_id is None

    async def test_failure_on_active_keeps_status_and_marks_upgrade_failed(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        initiate.return_value = PaymentInitiation(payment_id="pay-up", status="FAILED", message="Payment failed")
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up", False)

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.plan_id == "fixed-pro"
        assert result.payment_id == "pay-initial"
        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert changes[0].status == PlanChangeStatus.FAILED

    async def test_failure_on_active_restores_plan_when_configured(
        self, billing_db, seeded, payment_gateway, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "restore_plan_on_failed_upgrade", True)
        initiate, _ = payment_gateway
        initiate.return_value = PaymentInitiation(payment_id="pay-up", status="FAILED", message="Payment failed")
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up", False)

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.plan_id == "fixed-basic"
        assert result.price == Decimal("9.99")
        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert changes[0].status == PlanChangeStatus.REVERTED

    async def test_upgrade_success_marks_change_applied(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        initiate.return_value = PaymentInitiation(payment_id="pay-up", status="SUCCESS", message="ok")
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up", True)

        assert result.payment_id == "pay-up"
        changes = await subscription_service.list_plan_changes(billing_db, subscription.id)
        assert changes[0].status == PlanChangeStatus.APPLIED

    async def test_failure_on_cancelled_changes_nothing(self, billing_db, seeded, payment_gateway):
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.cancel_subscription(billing_db, subscription.id)

        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-late", False)

        assert result.status == SubscriptionStatus.CANCELLED
        assert result.payment_id == "pay-initial"

    async def test_unknown_subscription(self, billing_db, seeded):
        with pytest.raises(NotFoundError):
            await subscription_service.reconcile_payment(billing_db, "missing", "pay-1", True)


class TestPlanChangeOrdering:
    async def test_late_failure_does_not_undo_a_later_paid_upgrade(
        self, billing_db, seeded, payment_gateway, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "restore_plan_on_failed_upgrade", True)
        initiate, _ = payment_gateway
        initiate.side_effect = [
            PaymentInitiation(payment_id="pay-up1", status="FAILED", message="Payment failed"),
            PaymentInitiation(payment_id="pay-up2", status="SUCCESS", message="ok"),
        ]
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-max")

        await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up2", True)
        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up1", False)

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.plan_id == "fixed-max"
        assert result.price == Decimal("49.99")
        await _assert_plan(subscription.id, "fixed-max", "49.99")
        assert await _change_statuses(subscription.id) == [
            ("fixed-pro", PlanChangeStatus.FAILED),
            ("fixed-max", PlanChangeStatus.APPLIED),
        ]

    async def test_late_failure_does_not_undo_a_later_downgrade(
        self, billing_db, seeded, payment_gateway, monkeypatch
    ):
        monkeypatch.setattr(get_settings(), "restore_plan_on_failed_upgrade", True)
        initiate, _ = payment_gateway
        initiate.return_value = PaymentInitiation(payment_id="pay-up", status="FAILED", message="Payment failed")
        subscription = await _active_subscription(billing_db, seeded.user_id)
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-max")
        await subscription_service.downgrade_subscription(billing_db, subscription.id, "fixed-pro")

        result = await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up", False)

        assert result.plan_id == "fixed-pro"
        assert result.price == Decimal("29.99")
        assert await _change_statuses(subscription.id) == [
            ("fixed-max", PlanChangeStatus.FAILED),
            ("fixed-pro", PlanChangeStatus.APPLIED),
        ]

    async def test_repeated_first_payment_success_during_upgrade_is_not_bound_to_it(
        self, billing_db, seeded, payment_gateway
    ):
        initiate, _ = payment_gateway
        pending = await subscription_service.create_subscription(billing_db, seeded.user_id, "fixed-basic")
        await subscription_service.reconcile_payment(billing_db, pending.id, "pay-1", True)

        async def repeated_delivery_then_respond(subscription_id, amount):
            async with async_session_factory() as other:
                await subscription_service.reconcile_payment(other, subscription_id, "pay-1", True)
            return PaymentInitiation(payment_id="pay-2", status="FAILED", message="Payment failed")

        initiate.side_effect = repeated_delivery_then_respond
        await subscription_service.upgrade_subscription(billing_db, pending.id, "fixed-pro")
        assert await _change_statuses(pending.id) == [("fixed-pro", PlanChangeStatus.PENDING)]

        result = await subscription_service.reconcile_payment(billing_db, pending.id, "pay-2", False)

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.payment_id == "pay-1"
        assert await _change_statuses(pending.id) == [("fixed-pro", PlanChangeStatus.FAILED)]

    async def test_repeated_delivery_for_an_earlier_change_is_not_bound_to_the_next(
        self, billing_db, seeded, payment_gateway
    ):
        initiate, _ = payment_gateway
        subscription = await _active_subscription(billing_db, seeded.user_id)
        initiate.return_value = PaymentInitiation(payment_id="pay-up1", status="FAILED", message="Payment failed")
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")
        await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up1", False)

        async def repeated_delivery_then_respond(subscription_id, amount):
            async with async_session_factory() as other:
                await subscription_service.reconcile_payment(other, subscription_id, "pay-up1", False)
            return PaymentInitiation(payment_id="pay-up2", status="SUCCESS", message="ok")

        initiate.side_effect = repeated_delivery_then_respond
        await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-max")
        await subscription_service.reconcile_payment(billing_db, subscription.id, "pay-up2", True)

        await _assert_plan(subscription.id, "fixed-max", "49.99")
        assert await _change_statuses(subscription.id) == [
            ("fixed-pro", PlanChangeStatus.FAILED),
            ("fixed-max", PlanChangeStatus.APPLIED),
        ]

    @pytest.mark.parametrize(
        "restore, plan_id, price, status",
        [
            (False, "fixed-pro", "29.99", PlanChangeStatus.FAILED),
            (True, "fixed-basic", "9.99", PlanChangeStatus.REVERTED),
        ],
    )
    async def test_failure_webhook_arriving_before_initiate_returns(
        self, billing_db, seeded, payment_gateway, monkeypatch, restore, plan_id, price, status
    ):
        monkeypatch.setattr(get_settings(), "restore_plan_on_failed_upgrade", restore)
        initiate, _ = payment_gateway
        subscription = await _active_subscription(billing_db, seeded.user_id)

        async def webhook_first(subscription_id, amount):
            async with async_session_factory() as other:
                await subscription_service.reconcile_payment(other, subscription_id, "pay-up", False)
            return PaymentInitiation(payment_id="pay-up", status="FAILED", message="Payment failed")

        initiate.side_effect = webhook_first
        result = await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        assert result.status == SubscriptionStatus.ACTIVE
        assert result.plan_id == plan_id
        assert result.price == Decimal(price)
        await _assert_plan(subscription.id, plan_id, price)
        async with async_session_factory() as fresh:
            changes = await subscription_service.list_plan_changes(fresh, subscription.id)
        assert [(c.payment_id, c.status) for c in changes] == [("pay-up", status)]

    async def test_success_webhook_arriving_before_initiate_returns(self, billing_db, seeded, payment_gateway):
        initiate, _ = payment_gateway
        subscription = await _active_subscription(billing_db, seeded.user_id)

        async def webhook_first(subscription_id, amount):
            async with async_session_factory() as other:
                await subscription_service.reconcile_payment(other, subscription_id, "pay-up", True)
            return PaymentInitiation(payment_id="pay-up", status="SUCCESS", message="ok")

        initiate.side_effect = webhook_first
        result = await subscription_service.upgrade_subscription(billing_db, subscription.id, "fixed-pro")

        assert result.plan_id == "fixed-pro"
        assert result.payment_id == "pay-up"
        assert await _change_statuses(subscription.id) == [("fixed-pro", PlanChangeStatus.APPLIED)]
