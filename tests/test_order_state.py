"""
Admin order_status changes and cancellation rules.
"""
import pytest

from factories import OrderFactory
from services import orders as order_store
from services.order_state import (
    CancellationNotAllowed,
    ConcurrentStatusChange,
    InvalidStatusTransition,
    cancel,
    change_order_status,
)


def _paid(db, order):
    order_store.mark_payment_completed(db, order.id, 'pay_1')
    return order_store.get_order(db, order.id)


class TestChangeOrderStatus:

    def test_forward_progression(self, db):
        order = _paid(db, OrderFactory.create(db))

        for status in ('processing', 'printing', 'dispatched', 'delivered'):
            order = change_order_status(db, order, status)
            assert order.order_status == status

        assert order.payment_status == 'completed'

    def test_steps_may_be_skipped(self, db):
        order = _paid(db, OrderFactory.create(db))

        updated = change_order_status(db, order, 'dispatched')

        assert updated.order_status == 'dispatched'

    def test_delivered_is_terminal(self, db):
        order = change_order_status(db, _paid(db, OrderFactory.create(db)), 'delivered')

        with pytest.raises(InvalidStatusTransition):
            change_order_status(db, order, 'processing')

    def test_cancelled_is_terminal(self, db):
        order = cancel(db, OrderFactory.create(db))

        with pytest.raises(InvalidStatusTransition):
            change_order_status(db, order, 'processing')

    def test_cancel_not_reachable_through_status_change(self, db):
        order = OrderFactory.create(db)

        with pytest.raises(InvalidStatusTransition):
            change_order_status(db, order, 'cancelled')

    def test_unknown_status_rejected(self, db):
        with pytest.raises(InvalidStatusTransition):
            change_order_status(db, OrderFactory.create(db), 'shipped')

    def test_same_status_rejected(self, db):
        with pytest.raises(InvalidStatusTransition):
            change_order_status(db, OrderFactory.create(db), 'pending')

    def test_stale_read_detected(self, db):
        order = _paid(db, OrderFactory.create(db))
        stale = order_store.get_order(db, order.id)
        change_order_status(db, order, 'processing')

        with pytest.raises(ConcurrentStatusChange):
            change_order_status(db, stale, 'printing')

        assert order_store.get_order(db, order.id).order_status == 'processing'

    def test_status_change_leaves_payment_fields_alone(self, db):
        order = _paid(db, OrderFactory.create(db))

        change_order_status(db, order, 'processing')

        stored = order_store.get_order(db, order.id)
        assert stored.payment_status == 'completed'
        assert stored.gateway_payment_id == 'pay_1'


class TestCancel:

    def test_unpaid_pending_order_cancelled(self, db):
        order = OrderFactory.create(db)

        cancelled = cancel(db, order)

        assert cancelled.order_status == 'cancelled'
        assert cancelled.payment_status == 'pending'

    def test_failed_payment_order_can_be_cancelled(self, db):
        order = OrderFactory.create(db)
        order_store.mark_payment_failed(db, order.id)

        assert cancel(db, order_store.get_order(db, order.id)).order_status == 'cancelled'

    def test_paid_order_cannot_be_cancelled(self, db):
        order = _paid(db, OrderFactory.create(db))

        with pytest.raises(CancellationNotAllowed):
            cancel(db, order)

    def test_processing_order_cannot_be_cancelled(self, db):
        order = OrderFactory.create(db)
        order_store.update_order_status(db, order.id, 'pending', 'processing')

        with pytest.raises(CancellationNotAllowed):
            cancel(db, order_store.get_order(db, order.id))

    def test_payment_landing_after_read_blocks_cancel(self, db):
        order = OrderFactory.create(db)
        order_store.mark_payment_completed(db, order.id, 'pay_1')

        # order still holds the unpaid snapshot
        with pytest.raises(CancellationNotAllowed):
            cancel(db, order)

        assert order_store.get_order(db, order.id).order_status == 'pending'
