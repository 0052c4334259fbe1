# Overview: Payment-gateway webhook endpoint; verifies signatures and always acknowledges receipt.

# backend/app/routes/webhooks.py
"""
Webhook Routes

Public endpoint called by Razorpay. Security is the HMAC signature over
the raw request body (X-Razorpay-Signature).

ACKNOWLEDGMENT CONTRACT:
- 401 only when the signature is missing or wrong
- 200 for every verified delivery, whatever the processing outcome
"""

import json

from flask import Blueprint, request, jsonify, current_app

from ..services.container import get_services


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")

SIGNATURE_HEADER = "X-Razorpay-Signature"


@webhooks_bp.post("/razorpay")
def razorpay_webhook_route():
    raw_body = request.get_data(cache=False)
    services = get_services()

    if not services.gateway.verify_webhook_signature(raw_body, request.headers.get(SIGNATURE_HEADER)):
        return jsonify({"success": False, "error": "Invalid webhook signature"}), 401

    try:
        body = json.loads(raw_body)
    except ValueError:
        current_app.logger.warning("Webhook body is not valid JSON")
        return jsonify({"success": False, "error": "Webhook processing failed"}), 200

    if not isinstance(body, dict):
        body = {}
    event = body.get("event")
    current_app.logger.info("Razorpay webhook event: %s", event)

    outcome = services.reconciler.handle(event, body.get("payload"))

    return jsonify({
        "success": outcome.kind != "failed",
        "message": "Webhook received",
        "outcome": outcome.kind,
    }), 200
