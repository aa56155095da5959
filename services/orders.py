"""
Order Store.

Raw SQL over the PostgresDB wrapper. Every write is field-scoped: the
reconciliation path touches only payment fields (plus order_status on a
payment win) and admin paths touch only order_status, so the two never
clobber each other.

Conditional writes return True only when this caller changed the row.
rowcount == 0 means another writer got there first (or the precondition no
longer holds); that is an outcome, not an error.
"""
import json
import logging
import secrets
from typing import List, Optional

from constants import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_PENDING,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_PENDING,
)
from models import Order, normalize_file_fields
from utils.timestamps import utc_iso, utc_now

logger = logging.getLogger(__name__)


def generate_order_number() -> str:
    """ORD-YYYYMMDD-XXXXXX (UTC date + 6 random hex chars)."""
    return f"ORD-{utc_now().strftime('%Y%m%d')}-{secrets.token_hex(3).upper()}"


def get_order(db, order_id) -> Optional[Order]:
    row = db.execute("SELECT * FROM orders WHERE id = %s", (order_id,)).fetchone()
    return Order.from_row(row) if row else None


def get_order_by_gateway_order_id(db, gateway_order_id) -> Optional[Order]:
    if not gateway_order_id:
        return None
    row = db.execute(
        "SELECT * FROM orders WHERE gateway_order_id = %s", (gateway_order_id,)
    ).fetchone()
    return Order.from_row(row) if row else None


def get_order_by_number(db, order_number) -> Optional[Order]:
    row = db.execute("SELECT * FROM orders WHERE order_number = %s", (order_number,)).fetchone()
    return Order.from_row(row) if row else None


def insert_order(
    db,
    *,
    order_number,
    customer_name,
    customer_email,
    customer_phone,
    order_type,
    amount_paise,
    currency,
    gateway_order_id,
    file_urls=None,
    original_file_names=None,
    file_type=None,
    printing_options=None,
    delivery_option=None,
) -> Order:
    """Insert a new pending/pending order and return it as read back from the store."""
    urls, names = normalize_file_fields(file_urls=file_urls, file_names=original_file_names)
    now = utc_iso()

    row = db.execute(
        """
        INSERT INTO orders (
            order_number, customer_name, customer_email, customer_phone, order_type,
            file_url, file_urls, original_file_name, original_file_names, file_type,
            printing_options, delivery_option, amount_paise, currency,
            gateway_order_id, payment_status, order_status, created_at, updated_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        RETURNING id
        """,
        (
            order_number, customer_name, customer_email, customer_phone, order_type,
            urls[0] if urls else None, json.dumps(urls),
            names[0] if names else None, json.dumps(names), file_type,
            json.dumps(printing_options or {}),
            json.dumps(delivery_option) if delivery_option is not None else None,
            int(amount_paise), currency, gateway_order_id,
            PAYMENT_STATUS_PENDING, ORDER_STATUS_PENDING, now, now,
        ),
    ).fetchone()
    db.commit()

    logger.info(f"[Orders] Created order {order_number} (id={row['id']}, gateway_order={gateway_order_id})")
    return get_order(db, row['id'])


def mark_payment_completed(db, order_id, gateway_payment_id) -> bool:
    """
    The single compare-and-set for payment completion.

    Succeeds only while payment_status is not already 'completed'; a
    'failed' order can still complete. Committed before returning so the
    payment fact is durable before any side effect runs.
    """
    now = utc_iso()
    cursor = db.execute(
        """
        UPDATE orders
           SET payment_status = %s,
               gateway_payment_id = %s,
               order_status = %s,
               paid_at = %s,
               updated_at = %s
         WHERE id = %s
           AND payment_status <> %s
        """,
        (
            PAYMENT_STATUS_COMPLETED, gateway_payment_id, ORDER_STATUS_PENDING,
            now, now, order_id, PAYMENT_STATUS_COMPLETED,
        ),
    )
    won = cursor.rowcount == 1
    db.commit()
    return won


def mark_payment_failed(db, order_id) -> bool:
    """pending -> failed. Never touches a completed order."""
    cursor = db.execute(
        """
        UPDATE orders SET payment_status = %s, updated_at = %s
         WHERE id = %s AND payment_status = %s
        """,
        (PAYMENT_STATUS_FAILED, utc_iso(), order_id, PAYMENT_STATUS_PENDING),
    )
    changed = cursor.rowcount == 1
    db.commit()
    return changed


def update_order_status(db, order_id, expected_status, new_status) -> bool:
    """Compare-and-set on order_status only."""
    cursor = db.execute(
        """
        UPDATE orders SET order_status = %s, updated_at = %s
         WHERE id = %s AND order_status = %s
        """,
        (new_status, utc_iso(), order_id, expected_status),
    )
    changed = cursor.rowcount == 1
    db.commit()
    return changed


def cancel_order(db, order_id) -> bool:
    """
    pending -> cancelled, only while unpaid.

    The payment precondition sits in the same WHERE clause so a payment
    landing concurrently cannot be cancelled underneath.
    """
    cursor = db.execute(
        """
        UPDATE orders SET order_status = %s, updated_at = %s
         WHERE id = %s AND order_status = %s AND payment_status <> %s
        """,
        (ORDER_STATUS_CANCELLED, utc_iso(), order_id, ORDER_STATUS_PENDING, PAYMENT_STATUS_COMPLETED),
    )
    changed = cursor.rowcount == 1
    db.commit()
    return changed


def delete_order(db, order_id) -> bool:
    """Hard delete. The print job (if any) goes with it."""
    db.execute("DELETE FROM print_jobs WHERE order_id = %s", (order_id,))
    cursor = db.execute("DELETE FROM orders WHERE id = %s", (order_id,))
    deleted = cursor.rowcount == 1
    db.commit()
    return deleted


def find_reconcilable_orders(db, created_before, limit=100) -> List[Order]:
    """Unpaid, uncancelled orders with a gateway order, oldest first."""
    rows = db.execute(
        """
        SELECT * FROM orders
         WHERE payment_status IN (%s, %s)
           AND order_status <> %s
           AND gateway_order_id IS NOT NULL
           AND created_at < %s
         ORDER BY created_at ASC
         LIMIT %s
        """,
        (
            PAYMENT_STATUS_PENDING, PAYMENT_STATUS_FAILED, ORDER_STATUS_CANCELLED,
            created_before, limit,
        ),
    ).fetchall()
    return [Order.from_row(r) for r in rows]
