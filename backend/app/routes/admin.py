# Overview: Flask API routes for admin subscription and delivery operations.

# backend/app/routes/admin.py
"""
Admin API Routes

Admin actions run with the PRIVILEGED caller context: ownership checks
are skipped, lifecycle rules still apply.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_admin, translate_errors
from ..services.container import get_services
from ..services.interfaces import PRIVILEGED
from ..validation import ValidationError, coerce_date
from app.time_utils import today_utc


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

@admin_bp.get("/subscriptions")
@require_auth
@require_admin
@translate_errors("Failed to list subscriptions")
def list_subscriptions_route():
    """Query params: status (optional) - pending, active, paused, cancelled"""
    status = request.args.get("status") or None
    subscriptions = get_services().subscriptions.list_all(status=status)
    return jsonify({"success": True, "data": [s.to_dict() for s in subscriptions]})


@admin_bp.post("/subscriptions/<int:subscription_id>/pause")
@require_auth
@require_admin
@translate_errors("Failed to pause subscription")
def pause_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.pause(subscription_id, PRIVILEGED)
    return jsonify({"success": True, "data": subscription.to_dict(), "message": "Subscription paused"})


@admin_bp.post("/subscriptions/<int:subscription_id>/resume")
@require_auth
@require_admin
@translate_errors("Failed to resume subscription")
def resume_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.resume(subscription_id, PRIVILEGED)
    return jsonify({"success": True, "data": subscription.to_dict(), "message": "Subscription resumed"})


# =============================================================================
# DELIVERIES
# =============================================================================

@admin_bp.get("/deliveries")
@require_auth
@require_admin
@translate_errors("Failed to load deliveries")
def list_deliveries_route():
    """Query params: date (YYYY-MM-DD, default today UTC)"""
    raw = request.args.get("date")
    delivery_date = coerce_date(raw) if raw else today_utc()
    deliveries = get_services().schedules.deliveries_for_date(delivery_date)
    return jsonify({"success": True, "data": [d.to_dict() for d in deliveries]})


@admin_bp.put("/deliveries/<int:delivery_id>")
@require_auth
@require_admin
@translate_errors("Failed to update delivery")
def update_delivery_route(delivery_id: int):
    """Request body: {"status": "delivered"}"""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        raise ValidationError("status is required")
    delivery = get_services().schedules.update_delivery_status(delivery_id, status)
    return jsonify({"success": True, "data": delivery.to_dict()})
