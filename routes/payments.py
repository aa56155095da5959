"""
Customer-facing payment endpoints.

/initiate      checkout: gateway order + pending local order
/verify        gateway redirect callback (signature-checked)
/check-status  polling fallback when the callback never arrived
"""
import logging

from flask import Blueprint, request, jsonify, current_app

from database import get_db
from extensions import limiter
from services.checkout import CheckoutValidationError, create_pending_order
from services.payment_gateway import GatewayError
from services.reconciliation import (
    ERROR_INVALID_SIGNATURE,
    ERROR_ORDER_NOT_FOUND,
    engine_for_request,
)

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payment")


def _result_status_code(result):
    if result.error == ERROR_INVALID_SIGNATURE:
        return 400
    if result.error == ERROR_ORDER_NOT_FOUND:
        return 404
    if result.error:
        return 503
    return 200


@payments_bp.route("/initiate", methods=["POST"])
def initiate_payment():
    data = request.get_json(silent=True) or {}
    gateway = current_app.extensions['payment_gateway']

    try:
        order, gateway_order = create_pending_order(get_db(), gateway, data)
    except CheckoutValidationError as e:
        return jsonify({"success": False, "error": "Validation failed", "errors": e.errors}), 400
    except GatewayError as e:
        logger.error(f"[Payments] Gateway order creation failed: {e}")
        return jsonify({"success": False, "error": "Payment gateway unavailable, please retry"}), 502

    return jsonify({
        "success": True,
        "order_id": order.order_number,
        "razorpay_order_id": gateway_order["id"],
        "amount": order.amount_paise,
        "currency": order.currency,
        "key": current_app.config.get("RAZORPAY_KEY_ID"),
    }), 201


@payments_bp.route("/verify", methods=["POST"])
@limiter.limit("30 per minute")
def verify_payment():
    data = request.get_json(silent=True) or {}
    gateway_order_id = data.get("razorpay_order_id")
    gateway_payment_id = data.get("razorpay_payment_id")
    signature = data.get("razorpay_signature")

    if not (gateway_order_id and gateway_payment_id and signature):
        return jsonify({"success": False, "error": "Missing payment verification fields"}), 400

    result = engine_for_request().handle_callback(gateway_order_id, gateway_payment_id, signature)
    return jsonify(result.to_dict()), _result_status_code(result)


@payments_bp.route("/check-status", methods=["POST"])
def check_payment_status():
    data = request.get_json(silent=True) or {}
    gateway_order_id = data.get("razorpay_order_id")
    if not gateway_order_id:
        return jsonify({"success": False, "error": "razorpay_order_id is required"}), 400

    result = engine_for_request().poll_payment_status(gateway_order_id)
    # Inconclusive polls are a normal "try again later", not a server error.
    status = 404 if result.error == ERROR_ORDER_NOT_FOUND else 200
    return jsonify(result.to_dict()), status
