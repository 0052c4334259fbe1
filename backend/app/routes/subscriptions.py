# Overview: Flask API routes for customer subscription operations; parses input and returns JSON responses.

# backend/app/routes/subscriptions.py
"""
Customer Subscription API Routes

All routes require authentication and act as Owner(current user); a
customer can only see and change their own subscriptions.

Activation is not exposed here: it happens when the payment webhook
confirms the order.
"""

from flask import Blueprint, request, jsonify, g

from ..models import Subscription
from ..decorators import require_auth, translate_errors
from ..services.container import get_services
from ..services.interfaces import Owner
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_date,
    enforce_rules_subscription,
    validate_payload,
)


subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")

SUBSCRIPTION_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "daily_quantity", "duration_months", "delivery_time"},
    required_on_create={"product_id", "daily_quantity", "duration_months", "delivery_time"},
)


def _caller() -> Owner:
    return Owner(g.current_user.id)


@subscriptions_bp.get("/")
@require_auth
@translate_errors("Failed to list subscriptions")
def list_my_subscriptions_route():
    subscriptions = get_services().subscriptions.list_for_user(g.current_user.id)
    return jsonify({"success": True, "data": [s.to_dict() for s in subscriptions]})


@subscriptions_bp.post("/")
@require_auth
@translate_errors("Failed to create subscription")
def create_subscription_route():
    """
    Create a pending subscription and its payment order.

    Request body:
    {
        "product_id": 1,
        "daily_quantity": "1.5",      (litres per day)
        "duration_months": 3,
        "delivery_time": "06:30"
    }

    Returns:
        201: subscription + razorpay_order for client-side checkout
        400: Invalid input or product unavailable
        404: Product not found
        502: Payment gateway unavailable
    """
    patch = validate_payload(
        model=Subscription,
        payload=request.get_json(silent=True),
        policy=SUBSCRIPTION_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_subscription(patch)

    subscription, order = get_services().subscriptions.create(
        user_id=g.current_user.id,
        product_id=patch["product_id"],
        daily_quantity=patch["daily_quantity"],
        duration_months=patch["duration_months"],
        delivery_time=patch["delivery_time"],
    )

    return jsonify({
        "success": True,
        "data": {
            "subscription": subscription.to_dict(),
            "razorpay_order": order.to_dict(),
        },
        "message": "Subscription created. Please complete payment.",
    }), 201


@subscriptions_bp.get("/<int:subscription_id>")
@require_auth
@translate_errors("Failed to load subscription")
def get_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.get(subscription_id, _caller())
    return jsonify({"success": True, "data": subscription.to_dict()})


@subscriptions_bp.post("/<int:subscription_id>/pause")
@require_auth
@translate_errors("Failed to pause subscription")
def pause_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.pause(subscription_id, _caller())
    return jsonify({"success": True, "data": subscription.to_dict(), "message": "Subscription paused"})


@subscriptions_bp.post("/<int:subscription_id>/resume")
@require_auth
@translate_errors("Failed to resume subscription")
def resume_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.resume(subscription_id, _caller())
    return jsonify({"success": True, "data": subscription.to_dict(), "message": "Subscription resumed"})


@subscriptions_bp.post("/<int:subscription_id>/cancel")
@require_auth
@translate_errors("Failed to cancel subscription")
def cancel_subscription_route(subscription_id: int):
    subscription = get_services().subscriptions.cancel(subscription_id, _caller())
    return jsonify({"success": True, "data": subscription.to_dict(), "message": "Subscription cancelled"})


@subscriptions_bp.post("/<int:subscription_id>/paused-dates")
@require_auth
@translate_errors("Failed to pause delivery date")
def pause_date_route(subscription_id: int):
    """
    Skip delivery on one day.

    Request body: {"date": "2026-11-02"}
    """
    data = request.get_json(silent=True) or {}
    if not data.get("date"):
        raise ValidationError("date is required")
    day = coerce_date(data["date"])

    paused = get_services().subscriptions.pause_date(subscription_id, _caller(), day)
    return jsonify({"success": True, "data": paused.to_dict(), "message": "Delivery paused"}), 201


@subscriptions_bp.get("/<int:subscription_id>/deliveries")
@require_auth
@translate_errors("Failed to load deliveries")
def list_deliveries_route(subscription_id: int):
    deliveries = get_services().subscriptions.list_deliveries(subscription_id, _caller())
    return jsonify({"success": True, "data": [d.to_dict() for d in deliveries]})
