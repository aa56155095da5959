"""
Administrator-facing order_status rules.

    pending -> processing -> printing -> dispatched -> delivered

Admins may skip steps (any non-terminal status can move to any other
non-cancelled status). delivered and cancelled are terminal. Cancellation is
its own operation: only from pending, only while unpaid. Cancelling a paid
order is a refund, which this service does not do.
"""
import logging

from constants import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PENDING,
    ORDER_STATUSES,
    PAYMENT_STATUS_COMPLETED,
    TERMINAL_ORDER_STATUSES,
)
from services import orders as order_store

logger = logging.getLogger(__name__)


class OrderStateError(Exception):
    """Base for rejected admin status changes."""


class InvalidStatusTransition(OrderStateError):
    pass


class CancellationNotAllowed(OrderStateError):
    pass


class ConcurrentStatusChange(OrderStateError):
    """The order moved between read and write; re-read and retry."""


def validate_transition(order, new_status):
    if new_status == ORDER_STATUS_CANCELLED:
        raise InvalidStatusTransition("Use the cancel operation to cancel an order")
    if new_status not in ORDER_STATUSES:
        raise InvalidStatusTransition(f"Unknown order status '{new_status}'")
    if order.order_status in TERMINAL_ORDER_STATUSES:
        raise InvalidStatusTransition(f"Order is {order.order_status}; no further status changes allowed")
    if order.order_status == new_status:
        raise InvalidStatusTransition(f"Order is already {new_status}")


def validate_cancellation(order):
    if order.payment_status == PAYMENT_STATUS_COMPLETED:
        raise CancellationNotAllowed("Order payment is completed; cancellation requires a refund")
    if order.order_status != ORDER_STATUS_PENDING:
        raise CancellationNotAllowed(f"Only pending orders can be cancelled (order is {order.order_status})")


def change_order_status(db, order, new_status):
    """Validate, then compare-and-set against the status we validated."""
    validate_transition(order, new_status)
    if not order_store.update_order_status(db, order.id, order.order_status, new_status):
        raise ConcurrentStatusChange(f"Order {order.order_number} changed concurrently; reload and retry")
    logger.info(f"[Admin] Order {order.order_number}: {order.order_status} -> {new_status}")
    return order_store.get_order(db, order.id)


def cancel(db, order):
    validate_cancellation(order)
    if not order_store.cancel_order(db, order.id):
        # Re-read to report the real reason (usually a payment that just landed)
        current = order_store.get_order(db, order.id)
        if current is not None:
            validate_cancellation(current)
        raise ConcurrentStatusChange(f"Order {order.order_number} changed concurrently; reload and retry")
    logger.info(f"[Admin] Order {order.order_number} cancelled")
    return order_store.get_order(db, order.id)
