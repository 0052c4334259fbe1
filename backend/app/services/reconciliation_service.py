# Overview: Applies verified payment-gateway events to subscriptions and records the outcome.

"""
Payment Reconciliation

Events reach this module only after the webhook route has verified the
gateway signature. Each event kind maps to one narrowly scoped mutation,
so duplicated or out-of-order deliveries cannot corrupt state:

    payment_captured        -> activate (idempotent)
    payment_failed          -> nothing; recorded for review
    subscription_cancelled  -> force cancel
    subscription_activated  -> nothing; payment_captured is authoritative
    anything else           -> ignored

handle() never raises. It returns an Outcome and the webhook route
acknowledges every outcome.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import PaymentEvent
from ..validation import NotFoundError, ValidationError
from .subscription_service import SubscriptionService


EVENT_PAYMENT_CAPTURED = "payment_captured"
EVENT_PAYMENT_FAILED = "payment_failed"
EVENT_SUBSCRIPTION_CANCELLED = "subscription_cancelled"
EVENT_SUBSCRIPTION_ACTIVATED = "subscription_activated"

OUTCOME_APPLIED = "applied"
OUTCOME_IGNORED = "ignored"
OUTCOME_FAILED = "failed"


@dataclass(frozen=True)
class Applied:
    detail: str
    kind = OUTCOME_APPLIED


@dataclass(frozen=True)
class Ignored:
    reason: str
    kind = OUTCOME_IGNORED

    @property
    def detail(self) -> str:
        return self.reason


@dataclass(frozen=True)
class Failed:
    detail: str
    kind = OUTCOME_FAILED


def normalize_event_kind(event_kind) -> str:
    """'payment.captured' and 'payment_captured' name the same event."""
    if not isinstance(event_kind, str):
        return ""
    return event_kind.strip().lower().replace(".", "_")


def _entity(payload, name: str) -> dict:
    if not isinstance(payload, dict):
        return {}
    wrapper = payload.get(name)
    if not isinstance(wrapper, dict):
        return {}
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else {}


class PaymentReconciler:
    def __init__(self, subscriptions: SubscriptionService, session=None):
        self.subscriptions = subscriptions
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def handle(self, event_kind, payload):
        """
        Apply one verified gateway event.

        Returns:
            Applied, Ignored or Failed; never raises
        """
        kind = normalize_event_kind(event_kind)
        order_id = None
        payment_id = None
        try:
            if kind == EVENT_PAYMENT_CAPTURED:
                payment = _entity(payload, "payment")
                order_id, payment_id = payment.get("order_id"), payment.get("id")
                outcome = self._payment_captured(order_id)
            elif kind == EVENT_PAYMENT_FAILED:
                payment = _entity(payload, "payment")
                order_id, payment_id = payment.get("order_id"), payment.get("id")
                current_app.logger.warning(
                    "Payment failed: payment=%s order=%s reason=%s",
                    payment_id, order_id, payment.get("error_description"),
                )
                outcome = Ignored("payment failure recorded; subscription unchanged")
            elif kind == EVENT_SUBSCRIPTION_CANCELLED:
                order_id = _entity(payload, "subscription").get("id")
                outcome = self._subscription_cancelled(order_id)
            elif kind == EVENT_SUBSCRIPTION_ACTIVATED:
                order_id = _entity(payload, "subscription").get("id")
                outcome = Ignored("informational; activation follows payment capture")
            else:
                current_app.logger.warning("Unhandled payment event: %r", event_kind)
                outcome = Ignored(f"unhandled event kind {event_kind!r}")
        except Exception as exc:
            self.session.rollback()
            current_app.logger.exception(
                "Payment event processing failed: kind=%s order=%s", kind, order_id
            )
            outcome = Failed(f"{type(exc).__name__}: {exc}")

        self._record(kind or str(event_kind), order_id, payment_id, outcome)
        return outcome

    def _payment_captured(self, order_id):
        if not order_id:
            return Ignored("payment entity has no order_id")
        subscription = self.subscriptions.find_by_external_order(order_id)
        if subscription is None:
            return Ignored(f"no subscription for order {order_id}")
        try:
            result = self.subscriptions.activate(subscription.id)
        except (NotFoundError, ValidationError) as exc:
            return Ignored(str(exc))

        current_app.logger.info(
            "Subscription %s activated after payment (status_changed=%s, new_deliveries=%d)",
            subscription.id, result.activated, len(result.scheduled_dates),
        )
        if not result.activated:
            return Applied(f"subscription {subscription.id} already {result.subscription.status}; "
                           f"{len(result.scheduled_dates)} new deliveries")
        return Applied(f"subscription {subscription.id} activated; "
                       f"{len(result.scheduled_dates)} deliveries scheduled")

    def _subscription_cancelled(self, order_id):
        if not order_id:
            return Ignored("subscription entity has no id")
        subscription = self.subscriptions.find_by_external_order(order_id)
        if subscription is None:
            return Ignored(f"no subscription for order {order_id}")
        _, changed = self.subscriptions.force_cancel(subscription.id)
        if not changed:
            return Ignored(f"subscription {subscription.id} already cancelled")
        current_app.logger.info("Subscription %s cancelled by payment gateway", subscription.id)
        return Applied(f"subscription {subscription.id} cancelled")

    def _record(self, kind: str, order_id, payment_id, outcome) -> None:
        session = self.session
        try:
            session.add(PaymentEvent(
                event_kind=kind[:64],
                external_order_id=str(order_id)[:64] if order_id else None,
                external_payment_id=str(payment_id)[:64] if payment_id else None,
                outcome=outcome.kind,
                detail=(outcome.detail or "")[:512],
            ))
            session.commit()
        except Exception:
            session.rollback()
            current_app.logger.exception("Failed to record payment event: kind=%s", kind)
