"""
Payment Reconciliation Engine.

Every "this order is paid" observation ends up in apply_to_order(), whichever
path produced it:

- callback: the checkout redirect carries (order_id, payment_id, signature);
  the signature is checked before anything is looked up.
- polling: admin click, cron sweep or the customer's status check; the
  gateway is asked for all attempts and the first captured one is applied.
- webhook: payment.captured / order.paid events (routes/webhook.py).

apply_to_order():
1. Same payment already recorded as completed -> success, no writes.
2. One conditional UPDATE (orders.mark_payment_completed). Exactly one of
   any number of concurrent callers sees rowcount == 1; the rest read the
   order back and report "already applied".
3. Amount mismatch is logged, never blocking.
4. The winner runs the side effects (print job, notification) after the
   payment write is committed. Each is caught and logged on its own and none
   can undo the payment.

Store or gateway trouble is inconclusive and reported as 'pending'.
Terminal failures are reported as 'failed' but never written to the order
here; the sweep's grace-period policy is the only writer of that status.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from flask import current_app

from constants import (
    ORDER_STATUS_CANCELLED,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_PENDING,
)
from models import Order
from services import orders as order_store
from services.fulfillment import ensure_print_job, redrive_missing_print_jobs
from services.notifications import build_payment_notification, send_payment_notification
from services.payment_gateway import PaymentAttempt
from services.payment_verification import verify_payment_signature
from utils.timestamps import format_timestamp, hours_ago, minutes_ago

logger = logging.getLogger(__name__)

PAYMENT_STATUS_UNKNOWN = "unknown"

ERROR_INVALID_SIGNATURE = "invalid signature"
ERROR_ORDER_NOT_FOUND = "order not found"
ERROR_INCONCLUSIVE = "payment status could not be confirmed"

SIDE_EFFECT_FAILED = "failed"


@dataclass
class ReconcileResult:
    payment_status: str
    order_updated: bool = False
    order: Optional[Order] = None
    error: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    side_effects: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if self.payment_status == PAYMENT_STATUS_COMPLETED:
            return "Payment completed" if self.order_updated else "Payment already recorded"
        if self.payment_status == PAYMENT_STATUS_FAILED:
            return "All payment attempts failed; the customer may retry"
        return "Payment pending"

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.ok,
            "payment_status": self.payment_status,
            "order_updated": self.order_updated,
            "message": self.message,
        }
        if self.error:
            data["error"] = self.error
        if self.order is not None:
            data["order"] = self.order.to_summary()
        if self.side_effects:
            data["side_effects"] = dict(self.side_effects)
        return data


class ReconciliationEngine:
    def __init__(self, db, gateway, key_secret, notifier=None, side_effects=None):
        self.db = db
        self.gateway = gateway
        self.key_secret = key_secret
        self.notifier = notifier or send_payment_notification
        # Ordered, each idempotent or harmless to repeat
        self.side_effects = side_effects if side_effects is not None else [
            ("print_job", self._create_print_job),
            ("notification", self._notify),
        ]

    # ------------------------------------------------------------------
    # Entry paths
    # ------------------------------------------------------------------
    def handle_callback(self, gateway_order_id, gateway_payment_id, signature) -> ReconcileResult:
        if not verify_payment_signature(gateway_order_id, gateway_payment_id, signature, self.key_secret):
            logger.warning(
                f"[Security] Rejected payment callback with invalid signature "
                f"(gateway_order={gateway_order_id}, payment={gateway_payment_id})"
            )
            return ReconcileResult(payment_status=PAYMENT_STATUS_UNKNOWN, error=ERROR_INVALID_SIGNATURE)

        logger.info(f"[Reconcile] Verified callback for {gateway_order_id} / {gateway_payment_id}")
        attempt = PaymentAttempt(id=gateway_payment_id, order_id=gateway_order_id)
        return self.apply_payment(gateway_order_id, attempt)

    def poll_payment_status(self, gateway_order_id) -> ReconcileResult:
        order = self._load_by_gateway_id(gateway_order_id)
        if isinstance(order, ReconcileResult):
            return order
        return self.poll_order(order)

    def poll_order(self, order: Order) -> ReconcileResult:
        if order.is_paid:
            logger.info(f"[Reconcile] Order {order.order_number} already paid; nothing to poll")
            return ReconcileResult(
                payment_status=PAYMENT_STATUS_COMPLETED,
                order=order,
                gateway_payment_id=order.gateway_payment_id,
            )

        attempts = self.gateway.fetch_order_payments(order.gateway_order_id)
        if not attempts:
            logger.info(f"[Reconcile] No payment attempts visible for {order.gateway_order_id}; still pending")
            return ReconcileResult(payment_status=PAYMENT_STATUS_PENDING, order=order)

        for attempt in attempts:
            if attempt.is_successful:
                return self.apply_to_order(order, attempt)
            if attempt.is_failed:
                logger.info(
                    f"[Reconcile] Attempt {attempt.id} on {order.gateway_order_id} failed "
                    f"({attempt.error_description or 'no reason given'}); continuing scan"
                )

        if all(a.is_failed for a in attempts):
            logger.info(f"[Reconcile] All {len(attempts)} attempt(s) failed for {order.gateway_order_id}")
            return ReconcileResult(payment_status=PAYMENT_STATUS_FAILED, order=order)

        return ReconcileResult(payment_status=PAYMENT_STATUS_PENDING, order=order)

    def apply_payment(self, gateway_order_id, attempt: PaymentAttempt) -> ReconcileResult:
        order = self._load_by_gateway_id(gateway_order_id)
        if isinstance(order, ReconcileResult):
            return order
        return self.apply_to_order(order, attempt)

    # ------------------------------------------------------------------
    # Core transition
    # ------------------------------------------------------------------
    def apply_to_order(self, order: Order, attempt: PaymentAttempt) -> ReconcileResult:
        if order.is_paid and order.gateway_payment_id == attempt.id:
            logger.info(f"[Reconcile] Replay of {attempt.id} for order {order.order_number}; no changes")
            return ReconcileResult(
                payment_status=PAYMENT_STATUS_COMPLETED,
                order=order,
                gateway_payment_id=attempt.id,
            )

        if attempt.amount is not None and attempt.amount != order.amount_paise:
            logger.warning(
                f"[Reconcile] Amount mismatch for order {order.order_number}: "
                f"expected {order.amount_paise}, gateway reported {attempt.amount} "
                f"(payment {attempt.id}); continuing"
            )

        try:
            won = order_store.mark_payment_completed(self.db, order.id, attempt.id)
        except Exception as e:
            self._rollback()
            logger.error(f"[Reconcile] Payment write failed for order {order.order_number}: {e}", exc_info=True)
            return ReconcileResult(payment_status=PAYMENT_STATUS_PENDING, order=order, error=ERROR_INCONCLUSIVE)

        current = self._reload(order)

        if not won:
            if current.gateway_payment_id and current.gateway_payment_id != attempt.id:
                logger.warning(
                    f"[Reconcile] Order {order.order_number} already completed by payment "
                    f"{current.gateway_payment_id}; ignoring second capture {attempt.id}"
                )
            else:
                logger.info(f"[Reconcile] Order {order.order_number} already completed by a concurrent path")
            return ReconcileResult(
                payment_status=PAYMENT_STATUS_COMPLETED,
                order=current,
                gateway_payment_id=current.gateway_payment_id,
            )

        if order.order_status == ORDER_STATUS_CANCELLED:
            logger.warning(f"[Reconcile] Cancelled order {order.order_number} was paid; reopened as pending")

        logger.info(f"[Reconcile] Order {order.order_number} marked paid (payment {attempt.id})")
        result = ReconcileResult(
            payment_status=PAYMENT_STATUS_COMPLETED,
            order_updated=True,
            order=current,
            gateway_payment_id=attempt.id,
        )
        result.side_effects = self._run_side_effects(current)
        return result

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------
    def _run_side_effects(self, order: Order) -> Dict[str, str]:
        outcomes = {}
        for name, effect in self.side_effects:
            try:
                outcomes[name] = effect(order)
            except Exception as e:
                self._rollback()
                logger.error(
                    f"[Reconcile] Side effect '{name}' failed for order {order.order_number}: {e}",
                    exc_info=True,
                )
                outcomes[name] = SIDE_EFFECT_FAILED
        return outcomes

    def _create_print_job(self, order: Order) -> str:
        outcome, _ = ensure_print_job(self.db, order)
        return outcome

    def _notify(self, order: Order) -> str:
        success, error, outcome = self.notifier(build_payment_notification(order))
        if not success and outcome != "skipped":
            logger.warning(f"[Reconcile] Notification for order {order.order_number} not sent: {error}")
        return outcome

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    def sweep_pending_orders(self, min_age_minutes=5, limit=100, failure_grace_hours=24, dry_run=False) -> Dict[str, int]:
        """
        Poll unpaid orders older than min_age_minutes, expire orders whose
        attempts all failed and that are older than failure_grace_hours,
        then re-drive missing print jobs for paid orders.
        """
        summary = {
            "checked": 0,
            "completed": 0,
            "pending": 0,
            "failed": 0,
            "marked_failed": 0,
            "errors": 0,
            "print_jobs_created": 0,
        }
        grace_cutoff = hours_ago(failure_grace_hours)
        candidates = order_store.find_reconcilable_orders(self.db, minutes_ago(min_age_minutes), limit)
        logger.info(f"[Reconcile] Sweep found {len(candidates)} unpaid order(s) (dry_run={dry_run})")

        for order in candidates:
            summary["checked"] += 1
            if dry_run:
                attempts = self.gateway.fetch_order_payments(order.gateway_order_id)
                if any(a.is_successful for a in attempts):
                    logger.info(f"[Reconcile] [DRY RUN] Would mark order {order.order_number} paid")
                    summary["completed"] += 1
                else:
                    summary["pending"] += 1
                continue

            try:
                result = self.poll_order(order)
            except Exception as e:
                self._rollback()
                logger.error(f"[Reconcile] Sweep failed on order {order.order_number}: {e}", exc_info=True)
                summary["errors"] += 1
                continue

            if result.error:
                summary["errors"] += 1
                continue

            summary[result.payment_status] = summary.get(result.payment_status, 0) + 1

            if (
                result.payment_status == PAYMENT_STATUS_FAILED
                and order.payment_status == PAYMENT_STATUS_PENDING
                and (format_timestamp(order.created_at) or "") < grace_cutoff
            ):
                try:
                    marked = order_store.mark_payment_failed(self.db, order.id)
                except Exception as e:
                    self._rollback()
                    logger.error(f"[Reconcile] Could not mark order {order.order_number} failed: {e}", exc_info=True)
                    summary["errors"] += 1
                    continue
                if marked:
                    logger.info(
                        f"[Reconcile] Order {order.order_number} marked failed after "
                        f"{failure_grace_hours}h with only failed attempts"
                    )
                    summary["marked_failed"] += 1

        redrive = redrive_missing_print_jobs(self.db, limit=limit, dry_run=dry_run)
        summary["print_jobs_created"] = redrive["created"]
        logger.info(f"[Reconcile] Sweep summary: {summary}")
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load_by_gateway_id(self, gateway_order_id):
        try:
            order = order_store.get_order_by_gateway_order_id(self.db, gateway_order_id)
        except Exception as e:
            self._rollback()
            logger.error(f"[Reconcile] Order lookup failed for {gateway_order_id}: {e}", exc_info=True)
            return ReconcileResult(payment_status=PAYMENT_STATUS_PENDING, error=ERROR_INCONCLUSIVE)

        if order is None:
            logger.warning(f"[Reconcile] No order for gateway order {gateway_order_id}")
            return ReconcileResult(payment_status=PAYMENT_STATUS_UNKNOWN, error=ERROR_ORDER_NOT_FOUND)
        return order

    def _reload(self, order: Order) -> Order:
        try:
            current = order_store.get_order(self.db, order.id)
        except Exception as e:
            self._rollback()
            logger.error(f"[Reconcile] Could not re-read order {order.order_number}: {e}")
            return order
        return current or order

    def _rollback(self):
        try:
            self.db.rollback()
        except Exception as e:
            logger.error(f"[Reconcile] Rollback failed: {e}")


def engine_for_request() -> ReconciliationEngine:
    """Engine bound to the request's DB connection and the app's gateway/notifier."""
    from database import get_db

    return ReconciliationEngine(
        db=get_db(),
        gateway=current_app.extensions['payment_gateway'],
        key_secret=current_app.config.get('RAZORPAY_KEY_SECRET'),
        notifier=current_app.extensions.get('payment_notifier'),
    )
