"""
Razorpay REST client.

Constructed explicitly from configuration in create_app() and stored on
app.extensions['payment_gateway']; nothing in here is process-global.

Contract used by the rest of the app:
- create_order(): raises GatewayError on any failure (checkout must not
  create an order the customer cannot pay).
- fetch_order_payments(): never raises. Network, auth and decode failures
  are logged and return [], which callers read as "cannot confirm yet".
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from config import APP_STAGE, IS_PRODUCTION, IS_STAGING
from constants import GATEWAY_PAYMENT_CAPTURED, GATEWAY_TERMINAL_FAILURE_STATUSES
from utils.redaction import redact_secret

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.razorpay.com/v1"


class GatewayError(Exception):
    """Gateway call failed (network, auth, or rejected request)."""


@dataclass
class PaymentAttempt:
    id: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    captured: bool = False
    method: Optional[str] = None
    created_at: Optional[int] = None
    order_id: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentAttempt":
        amount = data.get("amount")
        return cls(
            id=data.get("id"),
            amount=int(amount) if amount is not None else None,
            currency=data.get("currency"),
            status=data.get("status"),
            captured=data.get("captured") is True,
            method=data.get("method"),
            created_at=data.get("created_at"),
            order_id=data.get("order_id"),
            error_description=data.get("error_description"),
        )

    @property
    def is_successful(self) -> bool:
        """Capture-confirmed: status 'captured' AND captured flag set."""
        return self.status == GATEWAY_PAYMENT_CAPTURED and self.captured is True

    @property
    def is_failed(self) -> bool:
        return self.status in GATEWAY_TERMINAL_FAILURE_STATUSES


class RazorpayClient:
    def __init__(self, key_id, key_secret, timeout=10, api_base=DEFAULT_API_BASE, session=None):
        self.key_id = key_id or ""
        self.key_secret = key_secret or ""
        self.timeout = timeout
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _url(self, path: str) -> str:
        return f"{self.api_base}/{path.lstrip('/')}"

    def create_order(self, amount_paise: int, currency: str = "INR", receipt=None, notes=None) -> Dict[str, Any]:
        """Create a gateway order. Returns the gateway's order payload (id, amount, currency, status)."""
        if not self.configured:
            raise GatewayError("Razorpay credentials are not configured")

        body = {
            "amount": int(amount_paise),
            "currency": currency,
            "payment_capture": 1,
        }
        if receipt:
            body["receipt"] = receipt
        if notes:
            body["notes"] = notes

        try:
            response = self.session.post(
                self._url("orders"),
                json=body,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Gateway] create_order failed ({type(e).__name__}): {e}")
            raise GatewayError(f"Gateway unreachable: {type(e).__name__}") from e

        if not response.ok:
            logger.error(f"[Gateway] create_order rejected: HTTP {response.status_code} {response.text[:200]}")
            raise GatewayError(f"Gateway rejected order creation (HTTP {response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise GatewayError("Gateway returned a malformed order payload") from e

        if not payload.get("id"):
            raise GatewayError("Gateway order payload has no id")

        logger.info(f"[Gateway] Created gateway order {payload['id']} for receipt {receipt}")
        return payload

    def fetch_order_payments(self, gateway_order_id: str) -> List[PaymentAttempt]:
        """All payment attempts for a gateway order. [] on any failure."""
        if not gateway_order_id:
            return []
        if not self.configured:
            logger.error("[Gateway] Cannot fetch payments: Razorpay credentials are not configured")
            return []

        try:
            response = self.session.get(
                self._url(f"orders/{gateway_order_id}/payments"),
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning(f"[Gateway] Timed out after {self.timeout}s fetching payments for {gateway_order_id}")
            return []
        except requests.RequestException as e:
            logger.error(f"[Gateway] Error fetching payments for {gateway_order_id} ({type(e).__name__}): {e}")
            return []

        if not response.ok:
            logger.error(
                f"[Gateway] Payment fetch for {gateway_order_id} failed: HTTP {response.status_code}"
            )
            return []

        try:
            items = response.json().get("items") or []
        except (ValueError, AttributeError):
            logger.error(f"[Gateway] Malformed payment list for {gateway_order_id}")
            return []

        attempts = [PaymentAttempt.from_dict(item) for item in items if isinstance(item, dict) and item.get("id")]
        logger.info(f"[Gateway] {len(attempts)} payment attempt(s) for {gateway_order_id}")
        return attempts


def init_payment_gateway(app):
    """
    Build the gateway client from app config unless one was injected
    (PAYMENT_GATEWAY) and register it on app.extensions.
    """
    gateway = app.config.get('PAYMENT_GATEWAY')
    if gateway is None:
        key_id = app.config.get('RAZORPAY_KEY_ID')
        if not key_id:
            if IS_PRODUCTION or IS_STAGING:
                raise RuntimeError("Missing RAZORPAY_KEY_ID in production/staging.")
            logger.warning("Missing RAZORPAY_KEY_ID (Dev Mode). Gateway calls will fail.")

        gateway = RazorpayClient(
            key_id=key_id,
            key_secret=app.config.get('RAZORPAY_KEY_SECRET'),
            timeout=app.config.get('GATEWAY_TIMEOUT_SECONDS', 10),
            api_base=app.config.get('RAZORPAY_API_BASE', DEFAULT_API_BASE),
        )
        logger.info(f"Razorpay client initialized for stage={APP_STAGE} (key={redact_secret(key_id, 9)})")

    app.extensions['payment_gateway'] = gateway
    return gateway
