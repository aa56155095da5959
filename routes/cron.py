import logging

from flask import Blueprint, request, jsonify, current_app

from services.reconciliation import engine_for_request

logger = logging.getLogger(__name__)

cron_bp = Blueprint("cron", __name__, url_prefix="/cron")


@cron_bp.route("/reconcile-payments", methods=["POST"])
def reconcile_payments():
    expected_token = current_app.config.get("CRON_TOKEN")
    if not expected_token:
        # If the token is not configured we can't verify, so deny.
        return jsonify({"success": False, "error": "unauthorized"}), 401

    incoming_token = request.headers.get("X-CRON-TOKEN")
    if incoming_token != expected_token:
        return jsonify({"success": False, "error": "unauthorized"}), 401

    summary = engine_for_request().sweep_pending_orders(
        min_age_minutes=current_app.config.get("RECONCILE_MIN_AGE_MINUTES", 5),
        limit=current_app.config.get("RECONCILE_BATCH_LIMIT", 100),
        failure_grace_hours=current_app.config.get("PAYMENT_FAILURE_GRACE_HOURS", 24),
    )
    logger.info(f"[Cron] reconcile-payments finished: {summary}")
    return jsonify({"success": True, "summary": summary})
