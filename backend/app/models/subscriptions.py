from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


class Subscription(db.Model):
    """
    A customer's recurring order for a product over a fixed date range.

    Lifecycle (see services/subscription_service.py):
        pending -> active <-> paused
        pending/active/paused -> cancelled (terminal)

    start_date..end_date is inclusive and spans exactly the billed days.
    external_order_id correlates the row with the gateway order; webhooks
    look subscriptions up by it.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        db.UniqueConstraint("external_order_id", name="uq_subscriptions_external_order"),
        db.CheckConstraint("end_date >= start_date", name="ck_subscriptions_date_range"),
        db.CheckConstraint("daily_quantity > 0", name="ck_subscriptions_quantity_positive"),
        db.CheckConstraint("duration_months > 0", name="ck_subscriptions_duration_positive"),
        db.Index("ix_subscriptions_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    daily_quantity = db.Column(db.Numeric(10, 2), nullable=False)
    duration_months = db.Column(db.Integer, nullable=False)
    delivery_time = db.Column(db.Time, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    # Amount charged for the whole term, in minor units (paise)
    amount_minor = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="INR")
    external_order_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product")
    user = db.relationship("User", backref=db.backref("subscriptions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Subscription id={self.id} user_id={self.user_id} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "daily_quantity": str(self.daily_quantity),
            "duration_months": self.duration_months,
            "delivery_time": self.delivery_time.strftime("%H:%M") if self.delivery_time else None,
            "status": self.status,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "amount_minor": self.amount_minor,
            "currency": self.currency,
            "external_order_id": self.external_order_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class PausedDate(db.Model):
    """
    A calendar date on which no delivery should happen.

    Recorded independently of schedule materialization; the schedule
    generator reads the set once per run.
    """
    __tablename__ = "paused_dates"
    __table_args__ = (
        db.UniqueConstraint("subscription_id", "date", name="uq_paused_dates_subscription_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    subscription = db.relationship("Subscription", backref=db.backref("paused_dates", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "date": to_iso_date(self.date),
            "created_at": to_utc_z(self.created_at),
        }


class DeliverySchedule(db.Model):
    """
    One day's planned delivery for a subscription.

    (subscription_id, delivery_date) is unique at the storage layer so two
    concurrent activations can never insert the same day twice.
    """
    __tablename__ = "delivery_schedules"
    __table_args__ = (
        db.UniqueConstraint("subscription_id", "delivery_date", name="uq_delivery_schedules_subscription_date"),
        db.Index("ix_delivery_schedules_date_status", "delivery_date", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id"), nullable=False, index=True)
    delivery_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    subscription = db.relationship("Subscription", backref=db.backref("deliveries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "delivery_date": to_iso_date(self.delivery_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
