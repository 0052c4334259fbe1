# Overview: Delivery schedule generation and delivery-row maintenance.

"""
Delivery Schedule Generator

Materializes one `pending` DeliverySchedule row per calendar day of a
subscription window, skipping the subscription's paused dates.

RULES:
1. The paused-date set is read once, inside the same transaction as the inserts
2. Days are walked in strictly increasing calendar order (no timezone math)
3. Inserts are ON CONFLICT DO NOTHING on (subscription_id, delivery_date);
   the storage layer, not this module, is what rejects duplicate days
4. Only the dates inserted by *this* call are returned
5. All-or-nothing: any failure rolls back every row of the invocation
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DeliverySchedule, PausedDate
from ..validation import NotFoundError, ValidationError
from .concurrency import atomic


DELIVERY_PENDING = "pending"
DELIVERY_DELIVERED = "delivered"
DELIVERY_SKIPPED = "skipped"
DELIVERY_CANCELLED = "cancelled"

VALID_DELIVERY_STATUSES = {
    DELIVERY_PENDING,
    DELIVERY_DELIVERED,
    DELIVERY_SKIPPED,
    DELIVERY_CANCELLED,
}


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """Inclusive calendar range; empty when end_date < start_date."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def _conflict_tolerant_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return insert


class ScheduleGenerator:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def generate(self, subscription_id: int, start_date: date, end_date: date) -> list[date]:
        """
        Create pending delivery rows for [start_date, end_date] minus paused dates.

        Safe to call repeatedly: existing days are left untouched and are not
        part of the returned list.

        Returns:
            Dates inserted by this call, ascending
        """
        session = self.session
        with atomic(session):
            paused = {
                row.date
                for row in session.query(PausedDate.date).filter_by(subscription_id=subscription_id)
            }

            insert = _conflict_tolerant_insert(session.get_bind().dialect.name)
            inserted: list[date] = []
            for day in iter_days(start_date, end_date):
                if day in paused:
                    continue
                if insert is not None:
                    added = self._insert_on_conflict_skip(session, insert, subscription_id, day)
                else:
                    added = self._insert_with_savepoint(session, subscription_id, day)
                if added:
                    inserted.append(day)
        return inserted

    @staticmethod
    def _insert_on_conflict_skip(session, insert, subscription_id: int, day: date) -> bool:
        stmt = (
            insert(DeliverySchedule.__table__)
            .values(subscription_id=subscription_id, delivery_date=day, status=DELIVERY_PENDING)
            .on_conflict_do_nothing(index_elements=["subscription_id", "delivery_date"])
        )
        result = session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    def _insert_with_savepoint(session, subscription_id: int, day: date) -> bool:
        # Dialects without ON CONFLICT: let the unique constraint reject the row
        try:
            with session.begin_nested():
                session.add(DeliverySchedule(
                    subscription_id=subscription_id,
                    delivery_date=day,
                    status=DELIVERY_PENDING,
                ))
        except IntegrityError:
            return False
        return True

    # =========================================================================
    # DELIVERY ROWS
    # =========================================================================

    def deliveries_for_subscription(self, subscription_id: int) -> list[DeliverySchedule]:
        return (
            self.session.query(DeliverySchedule)
            .filter_by(subscription_id=subscription_id)
            .order_by(DeliverySchedule.delivery_date.asc())
            .all()
        )

    def deliveries_for_date(self, delivery_date: date) -> list[DeliverySchedule]:
        return (
            self.session.query(DeliverySchedule)
            .filter_by(delivery_date=delivery_date)
            .order_by(DeliverySchedule.subscription_id.asc())
            .all()
        )

    def skip_pending_delivery(self, subscription_id: int, day: date) -> bool:
        """Mark a not-yet-fulfilled row as skipped. Caller owns the transaction."""
        row = (
            self.session.query(DeliverySchedule)
            .filter_by(subscription_id=subscription_id, delivery_date=day, status=DELIVERY_PENDING)
            .first()
        )
        if row is None:
            return False
        row.status = DELIVERY_SKIPPED
        return True

    def update_delivery_status(self, delivery_id: int, status: str) -> DeliverySchedule:
        """
        Raises:
            ValidationError: Unknown status
            NotFoundError: No such delivery row
        """
        if status not in VALID_DELIVERY_STATUSES:
            raise ValidationError(
                f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_DELIVERY_STATUSES))}"
            )
        session = self.session
        with atomic(session):
            row = session.get(DeliverySchedule, delivery_id)
            if row is None:
                raise NotFoundError("Delivery")
            row.status = status
        return row
