"""
Print Job Store.

One print job per paid file order, keyed by the order's storage id
(print_jobs.order_id is UNIQUE). Creation is insert-if-absent:

1. Existence check by order id (retry after a crash between the payment
   write and the print-job write finds the job and stops).
2. INSERT ... ON CONFLICT (order_id) DO NOTHING covers two creators racing
   past the check at the same time.

Jobs are not updated here after creation; the print dispatcher owns status.
"""
import json
import logging
from typing import List, Optional, Tuple

from constants import (
    DEFAULT_PRINT_FILE_NAME,
    DEFAULT_PRINT_FILE_TYPE,
    ORDER_TYPE_FILE,
    PAYMENT_STATUS_COMPLETED,
    PRINT_JOB_MAX_RETRIES,
    PRINT_JOB_PRIORITY_NORMAL,
    PRINT_JOB_STATUS_PENDING,
)
from models import Order, PrintJob
from services.estimator import estimate_for_options
from utils.timestamps import utc_iso

logger = logging.getLogger(__name__)

PRINT_JOB_CREATED = "created"
PRINT_JOB_EXISTS = "exists"
PRINT_JOB_SKIPPED = "skipped"


def needs_print_job(order: Order) -> bool:
    """Only file orders with at least one file get a print job; template orders never do."""
    return order.order_type == ORDER_TYPE_FILE and bool(order.file_urls)


def get_print_job_for_order(db, order_id) -> Optional[PrintJob]:
    row = db.execute("SELECT * FROM print_jobs WHERE order_id = %s", (order_id,)).fetchone()
    return PrintJob.from_row(row) if row else None


def ensure_print_job(db, order: Order) -> Tuple[str, Optional[int]]:
    """
    Create the print job for a paid order if it does not exist yet.

    Returns:
        (outcome, job_id) with outcome in {'created', 'exists', 'skipped'}
    """
    if not needs_print_job(order):
        logger.info(f"[Fulfillment] Order {order.order_number} ({order.order_type}) needs no print job")
        return (PRINT_JOB_SKIPPED, None)

    existing = db.execute(
        "SELECT id FROM print_jobs WHERE order_id = %s", (order.id,)
    ).fetchone()
    if existing:
        logger.info(f"[Fulfillment] Idempotency hit: print job {existing['id']} already exists for order {order.order_number}")
        return (PRINT_JOB_EXISTS, existing['id'])

    estimated = estimate_for_options(order.printing_options)
    now = utc_iso()

    row = db.execute(
        """
        INSERT INTO print_jobs (
            order_id, order_number, customer_name, customer_email,
            file_url, file_urls, file_name, file_type, printing_options,
            priority, estimated_duration, status, retry_count, max_retries,
            created_at, updated_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (order_id) DO NOTHING
        RETURNING id
        """,
        (
            order.id, order.order_number, order.customer_name, order.customer_email,
            order.file_url, json.dumps(order.file_urls),
            order.original_file_name or DEFAULT_PRINT_FILE_NAME,
            order.file_type or DEFAULT_PRINT_FILE_TYPE,
            json.dumps(order.printing_options.to_dict()),
            PRINT_JOB_PRIORITY_NORMAL, estimated, PRINT_JOB_STATUS_PENDING,
            0, PRINT_JOB_MAX_RETRIES, now, now,
        ),
    ).fetchone()
    db.commit()

    if not row:
        logger.info(f"[Fulfillment] Concurrent creator won the print job insert for order {order.order_number}")
        existing = get_print_job_for_order(db, order.id)
        return (PRINT_JOB_EXISTS, existing.id if existing else None)

    logger.info(
        f"[Fulfillment] Created print job {row['id']} for order {order.order_number} "
        f"(estimated {estimated} min)"
    )
    return (PRINT_JOB_CREATED, row['id'])


def find_paid_orders_missing_print_job(db, limit=100) -> List[Order]:
    rows = db.execute(
        """
        SELECT o.* FROM orders o
          LEFT JOIN print_jobs pj ON pj.order_id = o.id
         WHERE o.payment_status = %s
           AND o.order_type = %s
           AND pj.id IS NULL
         ORDER BY o.id ASC
         LIMIT %s
        """,
        (PAYMENT_STATUS_COMPLETED, ORDER_TYPE_FILE, limit),
    ).fetchall()
    return [Order.from_row(r) for r in rows]


def redrive_missing_print_jobs(db, limit=100, dry_run=False) -> dict:
    """
    Re-run print job creation for paid file orders that have none.
    Safe to run any number of times.
    """
    summary = {"checked": 0, "created": 0, "failed": 0}
    for order in find_paid_orders_missing_print_job(db, limit):
        if not needs_print_job(order):
            continue
        summary["checked"] += 1
        if dry_run:
            logger.info(f"[Fulfillment] [DRY RUN] Would create print job for order {order.order_number}")
            continue
        try:
            outcome, _ = ensure_print_job(db, order)
        except Exception as e:
            db.rollback()
            logger.error(f"[Fulfillment] Re-drive failed for order {order.order_number}: {e}", exc_info=True)
            summary["failed"] += 1
            continue
        if outcome == PRINT_JOB_CREATED:
            summary["created"] += 1
    return summary
