import json
import logging

from flask import Blueprint, request, jsonify, current_app

from constants import (
    GATEWAY_EVENT_FAILED,
    GATEWAY_EVENT_PROCESSED,
    GATEWAY_EVENT_PROCESSING,
    GATEWAY_EVENT_RECEIVED,
)
from database import get_db
from extensions import limiter
from services.payment_gateway import PaymentAttempt
from services.payment_verification import verify_webhook_signature
from services.reconciliation import ERROR_INCONCLUSIVE, engine_for_request
from utils.timestamps import utc_iso

logger = logging.getLogger(__name__)

webhook_bp = Blueprint('webhook', __name__)


class RetryableWebhookError(Exception):
    """Processing was inconclusive; answer 5xx so the gateway redelivers."""


def _event_id(event):
    """
    Razorpay sends X-Razorpay-Event-Id; fall back to type + entity id for
    older deliveries without it.
    """
    header_id = request.headers.get('X-Razorpay-Event-Id')
    if header_id:
        return header_id
    payload = event.get('payload') or {}
    entity = (payload.get('payment') or {}).get('entity') or (payload.get('order') or {}).get('entity') or {}
    if entity.get('id'):
        return f"{event.get('event')}:{entity['id']}"
    return None


@webhook_bp.route("/razorpay/webhook", methods=["POST"])
@limiter.limit("100 per minute")
def razorpay_webhook():
    webhook_secret = current_app.config.get('RAZORPAY_WEBHOOK_SECRET')
    # Surfaces misconfig quickly instead of cryptic signature errors
    if not webhook_secret:
        logger.error("[Webhook] RAZORPAY_WEBHOOK_SECRET is not configured.")
        return jsonify({"error": "Webhook not configured"}), 500

    body = request.get_data()
    signature = request.headers.get('X-Razorpay-Signature')

    # 1. Validate Signature
    if not verify_webhook_signature(body, signature, webhook_secret):
        logger.warning("[Security] Webhook rejected: invalid or missing signature")
        return jsonify({"error": "Invalid signature"}), 400

    try:
        event = json.loads(body)
    except ValueError as e:
        logger.warning(f"[Webhook] Invalid payload: {e}")
        return jsonify({"error": "Invalid payload"}), 400

    event_type = event.get('event')
    event_id = _event_id(event)
    if not event_id:
        logger.warning(f"[Webhook] Event {event_type} has no identifiable id; ignoring")
        return jsonify({"status": "ignored"}), 200

    db = get_db()
    logger.info(f"[Webhook] Received event: {event_type} (ID: {event_id})")

    # 2. Status-Based Idempotency
    # Insert (if new) -> Claim (atomic update) -> Process
    now = utc_iso()
    db.execute(
        """INSERT INTO gateway_events (event_id, event_type, status, created_at, updated_at)
           VALUES (%s, %s, %s, %s, %s)
           ON CONFLICT (event_id) DO NOTHING""",
        (event_id, event_type, GATEWAY_EVENT_RECEIVED, now, now)
    )
    db.commit()

    # Only 'received' or 'failed' events can be claimed for processing
    cursor = db.execute(
        """UPDATE gateway_events
           SET status = %s, updated_at = %s
           WHERE event_id = %s AND status IN (%s, %s)""",
        (GATEWAY_EVENT_PROCESSING, utc_iso(), event_id, GATEWAY_EVENT_RECEIVED, GATEWAY_EVENT_FAILED)
    )
    claimed = cursor.rowcount == 1
    db.commit()

    if not claimed:
        existing = db.execute(
            "SELECT status FROM gateway_events WHERE event_id = %s", (event_id,)
        ).fetchone()
        status = existing['status'] if existing else 'unknown'
        logger.info(f"[Webhook] Event {event_id} skipped. Status: {status} (Note: idempotent_concurrent)")
        return jsonify({"status": "success", "note": "idempotent_concurrent"}), 200

    # 3. Process Event - 5xx on inconclusive outcomes so the gateway retries
    try:
        payment_entity = ((event.get('payload') or {}).get('payment') or {}).get('entity')

        if event_type in ('payment.captured', 'order.paid') and payment_entity:
            handle_payment_captured(payment_entity)
        elif event_type == 'payment.failed' and payment_entity:
            handle_payment_failed(payment_entity)
        else:
            logger.info(f"[Webhook] Unhandled event type: {event_type}")

        db.execute(
            """UPDATE gateway_events SET status = %s, last_error = NULL, updated_at = %s
               WHERE event_id = %s""",
            (GATEWAY_EVENT_PROCESSED, utc_iso(), event_id)
        )
        db.commit()
        logger.info(f"[Webhook] Event {event_id} processed successfully.")

    except Exception as e:
        logger.error(f"[Webhook] ERROR processing {event_type}: {e}", exc_info=True)
        db.rollback()
        db.execute(
            """UPDATE gateway_events SET status = %s, last_error = %s, updated_at = %s
               WHERE event_id = %s""",
            (GATEWAY_EVENT_FAILED, str(e)[:500], utc_iso(), event_id)
        )
        db.commit()
        return jsonify({"error": "Webhook processing failed"}), 500

    return jsonify({"status": "success"}), 200


def handle_payment_captured(payment_entity):
    attempt = PaymentAttempt.from_dict(payment_entity)
    if not attempt.is_successful:
        logger.info(f"[Webhook] Payment {attempt.id} not capture-confirmed (status={attempt.status}); ignoring")
        return

    result = engine_for_request().apply_payment(attempt.order_id, attempt)
    if result.error == ERROR_INCONCLUSIVE:
        raise RetryableWebhookError(f"Could not record payment {attempt.id}")
    if result.error:
        # Unknown order: redelivery will not help
        logger.error(f"[Webhook] Payment {attempt.id} for {attempt.order_id}: {result.error}")
        return
    logger.info(
        f"[Webhook] Payment {attempt.id} applied to {attempt.order_id} "
        f"(order_updated={result.order_updated})"
    )


def handle_payment_failed(payment_entity):
    # A failed attempt never changes the order: the customer may still retry.
    attempt = PaymentAttempt.from_dict(payment_entity)
    logger.info(
        f"[Webhook] Payment attempt {attempt.id} failed for {attempt.order_id}: "
        f"{attempt.error_description or 'no reason given'}"
    )
