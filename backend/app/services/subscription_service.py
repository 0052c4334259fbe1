# Overview: Subscription lifecycle state machine; encapsulates business logic and database work.

"""
Subscription Lifecycle Service

================================================================================
STATE MACHINE:
    pending -> active <-> paused
    pending -> cancelled
    active  -> cancelled
    paused  -> cancelled

    pending:   Created, waiting for the gateway to confirm payment
    active:    Paid; delivery schedule materialized
    paused:    Customer/admin hold; schedule rows are kept
    cancelled: Terminal. Nothing leaves this state.
================================================================================

RULES:
1. Only payment reconciliation (or an operator) activates; customers cannot
2. Activation is idempotent at both levels: status is only moved from
   pending, and schedule generation never duplicates a day
3. Every customer-path operation checks ownership; the admin path passes
   PRIVILEGED instead of a user
4. Gateway-initiated cancellation (force_cancel) skips ownership checks
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date, timedelta

from ..extensions import db
from ..models import DeliverySchedule, PausedDate, Subscription
from ..validation import AuthorizationError, NotFoundError, ValidationError
from app.time_utils import today_utc
from .concurrency import atomic, lock_for_update, run_with_retry
from .interfaces import Caller, ExternalOrder, Owner, PaymentGateway, Privileged, ProductDirectory
from .pricing_service import PricingCalculator
from .schedule_service import ScheduleGenerator


STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_PAUSED = "paused"
STATUS_CANCELLED = "cancelled"

VALID_STATUSES = {STATUS_PENDING, STATUS_ACTIVE, STATUS_PAUSED, STATUS_CANCELLED}

_TRANSITIONS = {
    (STATUS_PENDING, STATUS_ACTIVE),
    (STATUS_PENDING, STATUS_CANCELLED),
    (STATUS_ACTIVE, STATUS_PAUSED),
    (STATUS_PAUSED, STATUS_ACTIVE),
    (STATUS_ACTIVE, STATUS_CANCELLED),
    (STATUS_PAUSED, STATUS_CANCELLED),
}


def validate_status(status: str) -> None:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check a status change against the lifecycle table.

    Same-state moves are not transitions and return False; callers decide
    whether that is a no-op or an error.
    """
    validate_status(from_status)
    validate_status(to_status)
    return (from_status, to_status) in _TRANSITIONS


@dataclass
class ActivationResult:
    subscription: Subscription
    activated: bool
    scheduled_dates: list[date] = field(default_factory=list)


class SubscriptionService:
    """
    Owns subscription status. Collaborators are injected so tests can swap
    the gateway (and anything else) for in-memory fakes.
    """

    def __init__(
        self,
        *,
        gateway: PaymentGateway,
        products: ProductDirectory,
        currency: str = "INR",
        schedules: ScheduleGenerator | None = None,
        session=None,
        today=today_utc,
    ):
        self.gateway = gateway
        self.pricing = PricingCalculator(products, currency=currency)
        self._session = session
        self.schedules = schedules or ScheduleGenerator(session)
        self.today = today

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get(self, subscription_id: int, *, lock: bool = False) -> Subscription:
        query = self.session.query(Subscription).filter_by(id=subscription_id)
        if lock:
            query = lock_for_update(query)
        subscription = query.first()
        if subscription is None:
            raise NotFoundError("Subscription")
        return subscription

    @staticmethod
    def _authorize(subscription: Subscription, caller: Caller) -> None:
        if isinstance(caller, Privileged):
            return
        if isinstance(caller, Owner) and caller.user_id == subscription.user_id:
            return
        raise AuthorizationError("Unauthorized")

    @staticmethod
    def _move(subscription: Subscription, to_status: str) -> bool:
        """Apply a lifecycle move. Returns False when already in to_status."""
        if subscription.status == to_status:
            return False
        if not can_transition(subscription.status, to_status):
            raise ValidationError(
                f"Cannot move subscription from {subscription.status} to {to_status}"
            )
        subscription.status = to_status
        return True

    def _run(self, op):
        return run_with_retry(op, session=self.session)

    # =========================================================================
    # CREATION
    # =========================================================================

    def create(
        self,
        user_id: int,
        product_id: int,
        daily_quantity,
        duration_months: int,
        delivery_time,
    ) -> tuple[Subscription, ExternalOrder]:
        """
        Create a pending subscription and its gateway order.

        The window is start=today, end=start + (duration_months * 30) - 1, so
        the inclusive delivery range covers exactly the billed days.

        Returns:
            (subscription, external order descriptor for client-side checkout)

        Raises:
            ValidationError: Missing fields, bad quantity/duration, inactive product
            NotFoundError: Product does not exist
        """
        if any(v is None or v == "" for v in (user_id, product_id, daily_quantity, duration_months, delivery_time)):
            raise ValidationError("All fields are required")

        quote = self.pricing.quote(product_id, daily_quantity, duration_months)

        start_date = self.today()
        end_date = start_date + timedelta(days=quote.billed_days - 1)

        order = self.gateway.create_order(
            amount=quote.amount_minor,
            currency=quote.currency,
            receipt=f"milko_sub_{user_id}_{int(time.time() * 1000)}",
            notes={
                "user_id": str(user_id),
                "product_id": str(product_id),
                "daily_quantity": str(daily_quantity),
                "duration_months": str(duration_months),
                "delivery_time": delivery_time.strftime("%H:%M") if hasattr(delivery_time, "strftime") else str(delivery_time),
            },
        )

        session = self.session
        with atomic(session):
            subscription = Subscription(
                user_id=user_id,
                product_id=product_id,
                daily_quantity=daily_quantity,
                duration_months=duration_months,
                delivery_time=delivery_time,
                status=STATUS_PENDING,
                start_date=start_date,
                end_date=end_date,
                amount_minor=quote.amount_minor,
                currency=quote.currency,
                external_order_id=order.id,
            )
            session.add(subscription)

        return subscription, order

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def activate(self, subscription_id: int) -> ActivationResult:
        """
        pending -> active, then materialize the delivery schedule.

        Status change and schedule rows commit together. Re-activating an
        active or paused subscription leaves its status alone and the schedule
        run inserts nothing new.

        Raises:
            NotFoundError: Unknown subscription
            ValidationError: Subscription is cancelled
        """
        def _op():
            session = self.session
            with atomic(session):
                subscription = self._get(subscription_id, lock=True)
                if subscription.status == STATUS_CANCELLED:
                    raise ValidationError("Cancelled subscriptions cannot be activated")

                activated = False
                if subscription.status == STATUS_PENDING:
                    activated = self._move(subscription, STATUS_ACTIVE)

                scheduled = self.schedules.generate(
                    subscription.id,
                    subscription.start_date,
                    subscription.end_date,
                )
            return ActivationResult(subscription, activated, scheduled)

        return self._run(_op)

    def pause(self, subscription_id: int, caller: Caller) -> Subscription:
        """
        active -> paused.

        Raises:
            NotFoundError: Unknown subscription
            AuthorizationError: Caller does not own the subscription
            ValidationError: Subscription is not active
        """
        def _op():
            with atomic(self.session):
                subscription = self._get(subscription_id, lock=True)
                self._authorize(subscription, caller)
                if subscription.status != STATUS_ACTIVE:
                    raise ValidationError("Only active subscriptions can be paused")
                self._move(subscription, STATUS_PAUSED)
            return subscription

        return self._run(_op)

    def resume(self, subscription_id: int, caller: Caller) -> Subscription:
        """paused -> active. Same authorization rule as pause."""
        def _op():
            with atomic(self.session):
                subscription = self._get(subscription_id, lock=True)
                self._authorize(subscription, caller)
                if subscription.status != STATUS_PAUSED:
                    raise ValidationError("Only paused subscriptions can be resumed")
                self._move(subscription, STATUS_ACTIVE)
            return subscription

        return self._run(_op)

    def cancel(self, subscription_id: int, caller: Caller) -> Subscription:
        """
        Any status -> cancelled. Cancelling twice returns the row unchanged.

        Customer routes always pass Owner. PRIVILEGED is accepted for
        operator tooling only; no HTTP route cancels on a customer's behalf.

        Raises:
            NotFoundError: Unknown subscription
            AuthorizationError: Caller does not own the subscription
        """
        def _op():
            with atomic(self.session):
                subscription = self._get(subscription_id, lock=True)
                self._authorize(subscription, caller)
                self._move(subscription, STATUS_CANCELLED)
            return subscription

        return self._run(_op)

    def force_cancel(self, subscription_id: int) -> tuple[Subscription, bool]:
        """
        Gateway-initiated cancellation; no ownership check.

        Returns:
            (subscription, whether the status changed)
        """
        def _op():
            with atomic(self.session):
                subscription = self._get(subscription_id, lock=True)
                changed = self._move(subscription, STATUS_CANCELLED)
            return subscription, changed

        return self._run(_op)

    # =========================================================================
    # PAUSED DATES
    # =========================================================================

    def pause_date(self, subscription_id: int, caller: Caller, day: date) -> PausedDate:
        """
        Exclude one calendar day from deliveries.

        Works before activation (the generator will skip the day) and after
        it (a pending row on that day becomes skipped). Pausing the same day
        twice returns the existing record.

        Raises:
            NotFoundError: Unknown subscription
            AuthorizationError: Caller does not own the subscription
            ValidationError: Cancelled subscription, past date, or date outside the window
        """
        def _op():
            session = self.session
            with atomic(session):
                subscription = self._get(subscription_id, lock=True)
                self._authorize(subscription, caller)
                if subscription.status == STATUS_CANCELLED:
                    raise ValidationError("Cancelled subscriptions cannot pause deliveries")
                if not (subscription.start_date <= day <= subscription.end_date):
                    raise ValidationError("Date is outside the subscription period")
                if day < self.today():
                    raise ValidationError("Cannot pause a date in the past")

                paused = (
                    session.query(PausedDate)
                    .filter_by(subscription_id=subscription.id, date=day)
                    .first()
                )
                if paused is None:
                    paused = PausedDate(subscription_id=subscription.id, date=day)
                    session.add(paused)
                self.schedules.skip_pending_delivery(subscription.id, day)
            return paused

        return self._run(_op)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get(self, subscription_id: int, caller: Caller) -> Subscription:
        subscription = self._get(subscription_id)
        self._authorize(subscription, caller)
        return subscription

    def find_by_external_order(self, external_order_id: str) -> Subscription | None:
        if not external_order_id:
            return None
        return (
            self.session.query(Subscription)
            .filter_by(external_order_id=external_order_id)
            .first()
        )

    def list_for_user(self, user_id: int) -> list[Subscription]:
        return (
            self.session.query(Subscription)
            .filter_by(user_id=user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .all()
        )

    def list_all(self, status: str | None = None) -> list[Subscription]:
        query = self.session.query(Subscription)
        if status is not None:
            validate_status(status)
            query = query.filter_by(status=status)
        return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()

    def list_deliveries(self, subscription_id: int, caller: Caller) -> list[DeliverySchedule]:
        subscription = self.get(subscription_id, caller)
        return self.schedules.deliveries_for_subscription(subscription.id)
