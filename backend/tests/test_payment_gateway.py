"""
Razorpay client tests against an in-process httpx transport.
"""

import base64
import json

import httpx
import pytest

from app.services.payment_gateway import PaymentGatewayError, RazorpayGateway, compute_webhook_signature


def _gateway(handler, webhook_secret="whsec_unit"):
    return RazorpayGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        webhook_secret=webhook_secret,
        base_url="https://razorpay.test",
        transport=httpx.MockTransport(handler),
    )


def test_create_order_posts_amount_and_basic_auth():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_ABC", "amount": 360000, "currency": "INR", "status": "created"})

    order = _gateway(handler).create_order(360000, "INR", "milko_sub_1_1", {"user_id": "1"})

    assert order.id == "order_ABC"
    assert order.amount == 360000
    assert order.currency == "INR"
    assert seen["path"] == "/v1/orders"
    assert seen["body"] == {"amount": 360000, "currency": "INR", "receipt": "milko_sub_1_1", "notes": {"user_id": "1"}}
    expected = base64.b64encode(b"rzp_test_key:rzp_test_secret").decode()
    assert seen["auth"] == f"Basic {expected}"


def test_http_error_is_wrapped():
    def handler(request):
        return httpx.Response(400, json={"error": {"description": "amount too small"}})

    with pytest.raises(PaymentGatewayError, match="HTTP 400"):
        _gateway(handler).create_order(1, "INR", "r", {})


def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentGatewayError):
        _gateway(handler).create_order(100, "INR", "r", {})


@pytest.mark.parametrize("response", [
    httpx.Response(200, content=b"<html>oops</html>"),
    httpx.Response(200, json={"amount": 100}),
    httpx.Response(200, json={"id": "order_1", "amount": "lots", "currency": "INR"}),
])
def test_malformed_response_is_wrapped(response):
    with pytest.raises(PaymentGatewayError):
        _gateway(lambda request: response).create_order(100, "INR", "r", {})


class TestWebhookSignature:
    def test_matching_signature(self):
        body = b'{"event":"payment.captured"}'
        gateway = _gateway(lambda request: httpx.Response(500))
        assert gateway.verify_webhook_signature(body, compute_webhook_signature("whsec_unit", body))

    def test_tampered_body(self):
        body = b'{"event":"payment.captured"}'
        signature = compute_webhook_signature("whsec_unit", body)
        gateway = _gateway(lambda request: httpx.Response(500))
        assert not gateway.verify_webhook_signature(body + b" ", signature)

    def test_missing_signature(self):
        gateway = _gateway(lambda request: httpx.Response(500))
        assert not gateway.verify_webhook_signature(b"{}", None)
        assert not gateway.verify_webhook_signature(b"{}", "")

    def test_unconfigured_secret_rejects_everything(self):
        gateway = _gateway(lambda request: httpx.Response(500), webhook_secret="")
        assert not gateway.verify_webhook_signature(b"{}", compute_webhook_signature("", b"{}"))

    def test_known_vector(self):
        # hex HMAC-SHA256("key", "The quick brown fox jumps over the lazy dog")
        assert compute_webhook_signature("key", b"The quick brown fox jumps over the lazy dog") == (
            "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"
        )
