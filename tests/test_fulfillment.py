"""
Test Fulfillment Pipeline

Verifies:
1. ensure_print_job creates exactly one print_jobs row per paid file order
2. Repeat and concurrent calls are idempotent (no duplicate print_jobs)
3. Template orders never get a print job
4. The re-drive finds paid orders that lost their print job
"""
import threading

import pytest

from factories import OrderFactory, count_print_jobs
from services import orders as order_store
from services.fulfillment import (
    PRINT_JOB_CREATED,
    PRINT_JOB_EXISTS,
    PRINT_JOB_SKIPPED,
    ensure_print_job,
    find_paid_orders_missing_print_job,
    get_print_job_for_order,
    redrive_missing_print_jobs,
)

pytestmark = pytest.mark.parametrize('db_backend', ['sqlite', 'postgres'])


def _paid_order(db, **kwargs):
    order = OrderFactory.create(db, **kwargs)
    order_store.mark_payment_completed(db, order.id, f"pay_{order.id}")
    return order_store.get_order(db, order.id)


def test_ensure_print_job_creates_one_job(db):
    order = _paid_order(db)

    outcome, job_id = ensure_print_job(db, order)

    assert outcome == PRINT_JOB_CREATED
    assert job_id is not None
    job = get_print_job_for_order(db, order.id)
    assert job.id == job_id
    assert job.status == 'pending'
    assert job.printing_options['page_count'] == 10


def test_ensure_print_job_idempotency(db):
    order = _paid_order(db)

    first = ensure_print_job(db, order)
    second = ensure_print_job(db, order)

    assert first[0] == PRINT_JOB_CREATED
    assert second == (PRINT_JOB_EXISTS, first[1])
    assert count_print_jobs(db, order.id) == 1


def test_concurrent_creators_make_one_job(connect_db, db):
    order = _paid_order(db)
    workers = 6
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def worker():
        conn = connect_db()
        try:
            barrier.wait()
            outcome, _ = ensure_print_job(conn, order)
            with lock:
                outcomes.append(outcome)
        finally:
            conn.close()

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert outcomes.count(PRINT_JOB_CREATED) == 1
    assert outcomes.count(PRINT_JOB_EXISTS) == workers - 1
    assert count_print_jobs(db, order.id) == 1


def test_template_order_skipped(db):
    order = _paid_order(db, order_type='template', file_urls=[], original_file_names=[])

    assert ensure_print_job(db, order) == (PRINT_JOB_SKIPPED, None)
    assert count_print_jobs(db) == 0


def test_missing_file_name_uses_default(db):
    order = _paid_order(db)
    order.original_file_names = []
    order.file_type = None

    ensure_print_job(db, order)

    job = get_print_job_for_order(db, order.id)
    assert job.file_name == 'document.pdf'
    assert job.file_type == 'application/pdf'


def test_color_job_estimate(db):
    order = _paid_order(
        db, printing_options={'page_size': 'A4', 'color': 'color', 'sided': 'single', 'copies': 1, 'page_count': 10}
    )

    ensure_print_job(db, order)

    assert get_print_job_for_order(db, order.id).estimated_duration == 8


def test_multi_file_job_keeps_every_file(db):
    urls = ['https://f/1.pdf', 'https://f/2.pdf', 'https://f/3.pdf']
    order = _paid_order(db, file_urls=urls, original_file_names=['cover.pdf'])

    ensure_print_job(db, order)

    job = get_print_job_for_order(db, order.id)
    assert job.file_url == 'https://f/1.pdf'
    assert job.file_urls == urls
    assert job.file_name == 'cover.pdf'


def test_redrive_creates_missing_jobs_only(db):
    with_job = _paid_order(db)
    ensure_print_job(db, with_job)
    missing = _paid_order(db)
    OrderFactory.create(db)  # unpaid
    _paid_order(db, order_type='template', file_urls=[], original_file_names=[])

    assert [o.id for o in find_paid_orders_missing_print_job(db)] == [missing.id]

    summary = redrive_missing_print_jobs(db)

    assert summary == {'checked': 1, 'created': 1, 'failed': 0}
    assert count_print_jobs(db, missing.id) == 1
    assert redrive_missing_print_jobs(db) == {'checked': 0, 'created': 0, 'failed': 0}


def test_redrive_dry_run_writes_nothing(db):
    order = _paid_order(db)

    summary = redrive_missing_print_jobs(db, dry_run=True)

    assert summary == {'checked': 1, 'created': 0, 'failed': 0}
    assert count_print_jobs(db, order.id) == 0
