# Overview: Razorpay client for order creation and webhook signature verification.

"""
Razorpay Gateway Client

Only the two calls the subscription core consumes:
- POST /v1/orders (basic auth with key id/secret), amounts in paise
- HMAC-SHA256 verification of the raw webhook body with the webhook secret

Transport errors and non-2xx responses raise PaymentGatewayError; the
caller decides how to surface them.
"""

from __future__ import annotations

import hashlib
import hmac

import httpx

from .interfaces import ExternalOrder


class PaymentGatewayError(Exception):
    """Raised when the payment gateway rejects or cannot serve a request."""
    pass


class RazorpayGateway:
    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        webhook_secret: str,
        base_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.webhook_secret = webhook_secret or ""
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def create_order(self, amount: int, currency: str, receipt: str, notes: dict) -> ExternalOrder:
        try:
            response = self._client.post(
                "/v1/orders",
                json={
                    "amount": amount,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes or {},
                },
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            raise PaymentGatewayError(
                f"Failed to create order (HTTP {exc.response.status_code})"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise PaymentGatewayError("Failed to create order") from exc

        try:
            return ExternalOrder(
                id=body["id"],
                amount=int(body["amount"]),
                currency=body["currency"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise PaymentGatewayError("Unexpected order response from gateway") from exc

    def verify_webhook_signature(self, raw_body: bytes, signature: str | None) -> bool:
        if not signature or not self.webhook_secret:
            return False
        expected = compute_webhook_signature(self.webhook_secret, raw_body)
        return hmac.compare_digest(expected, signature)


def compute_webhook_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
