from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class PaymentEvent(db.Model):
    """
    Append-only log of processed payment-gateway webhook events.

    The webhook route acknowledges every verified event; this table is where
    failed and ignored events stay visible after the fact.
    """
    __tablename__ = "payment_events"
    __table_args__ = (
        db.Index("ix_payment_events_order", "external_order_id"),
        db.Index("ix_payment_events_kind_received", "event_kind", "received_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_kind = db.Column(db.String(64), nullable=False)
    external_order_id = db.Column(db.String(64), nullable=True)
    external_payment_id = db.Column(db.String(64), nullable=True)

    # applied, ignored, failed
    outcome = db.Column(db.String(16), nullable=False)
    detail = db.Column(db.String(512), nullable=True)

    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_kind": self.event_kind,
            "external_order_id": self.external_order_id,
            "external_payment_id": self.external_payment_id,
            "outcome": self.outcome,
            "detail": self.detail,
            "received_at": to_utc_z(self.received_at),
        }
