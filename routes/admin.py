import logging
import secrets
from functools import wraps

from flask import Blueprint, request, jsonify, current_app

from database import get_db
from services import orders as order_store
from services.fulfillment import get_print_job_for_order
from services.order_state import (
    CancellationNotAllowed,
    ConcurrentStatusChange,
    InvalidStatusTransition,
    cancel,
    change_order_status,
)
from services.reconciliation import engine_for_request

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin/api')


def check_auth():
    """Verify Bearer token matches ADMIN_API_TOKEN constant-time."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return False
    token = auth_header.split(" ", 1)[1].strip()

    expected = (current_app.config.get('ADMIN_API_TOKEN') or "").strip()
    if not expected:
        return False
    return secrets.compare_digest(token, expected)


def admin_token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not check_auth():
            logger.warning(f"[Security] Unauthorized admin API call to {request.path}")
            return jsonify({"success": False, "error": "unauthorized"}), 401
        return f(*args, **kwargs)
    return decorated


def _load_order_or_404(order_id):
    order = order_store.get_order(get_db(), order_id)
    if order is None:
        return None, (jsonify({"success": False, "error": "Order not found"}), 404)
    return order, None


@admin_bp.route('/orders/<int:order_id>', methods=['GET'])
@admin_token_required
def get_order(order_id):
    order, error = _load_order_or_404(order_id)
    if error:
        return error
    job = get_print_job_for_order(get_db(), order.id)
    return jsonify({
        "success": True,
        "order": order.to_dict(),
        "print_job": job.to_dict() if job else None,
    })


@admin_bp.route('/orders/<int:order_id>/status', methods=['PATCH'])
@admin_token_required
def update_status(order_id):
    order, error = _load_order_or_404(order_id)
    if error:
        return error

    new_status = (request.get_json(silent=True) or {}).get('order_status')
    if not new_status:
        return jsonify({"success": False, "error": "order_status is required"}), 400

    try:
        updated = change_order_status(get_db(), order, new_status)
    except InvalidStatusTransition as e:
        return jsonify({"success": False, "error": str(e)}), 400
    except ConcurrentStatusChange as e:
        return jsonify({"success": False, "error": str(e)}), 409

    return jsonify({"success": True, "order": updated.to_dict()})


@admin_bp.route('/orders/<int:order_id>/cancel', methods=['POST'])
@admin_token_required
def cancel_order(order_id):
    order, error = _load_order_or_404(order_id)
    if error:
        return error

    try:
        cancelled = cancel(get_db(), order)
    except (CancellationNotAllowed, ConcurrentStatusChange) as e:
        return jsonify({"success": False, "error": str(e)}), 409

    return jsonify({"success": True, "order": cancelled.to_dict()})


@admin_bp.route('/orders/<int:order_id>', methods=['DELETE'])
@admin_token_required
def delete_order(order_id):
    if not order_store.delete_order(get_db(), order_id):
        return jsonify({"success": False, "error": "Order not found"}), 404
    logger.info(f"[Admin] Order {order_id} deleted")
    return jsonify({"success": True, "deleted": order_id})


@admin_bp.route('/orders/<int:order_id>/check-payment', methods=['POST'])
@admin_token_required
def check_payment(order_id):
    """Poll the gateway using the order's stored gateway order id."""
    order, error = _load_order_or_404(order_id)
    if error:
        return error
    if not order.gateway_order_id:
        return jsonify({"success": False, "error": "Order has no gateway order"}), 400

    result = engine_for_request().poll_order(order)
    payload = result.to_dict()
    if result.order is not None:
        payload["order"] = result.order.to_dict()
    return jsonify(payload)
