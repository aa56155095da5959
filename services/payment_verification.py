"""
Razorpay signature checks.

Checkout callback: hex HMAC-SHA256(key_secret, "<order_id>|<payment_id>").
Webhooks:          hex HMAC-SHA256(webhook_secret, <raw request body>).

Both are pure functions with no I/O. A False result is a hard rejection.
"""
import hashlib
import hmac


def _hex_hmac(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(gateway_order_id, gateway_payment_id, signature, secret) -> bool:
    if not (gateway_order_id and gateway_payment_id and signature and secret):
        return False

    expected = _hex_hmac(secret, f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, str(signature).strip().lower())


def verify_webhook_signature(body: bytes, signature, secret) -> bool:
    if not (signature and secret) or body is None:
        return False

    expected = _hex_hmac(secret, body)
    return hmac.compare_digest(expected, str(signature).strip().lower())
