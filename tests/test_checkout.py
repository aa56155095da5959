"""
Checkout validation and pending-order creation.
"""
import pytest

from services import orders as order_store
from services.checkout import (
    CheckoutValidationError,
    create_pending_order,
    to_paise,
    validate_checkout_payload,
)
from services.payment_gateway import GatewayError


def _payload(**overrides):
    data = {
        'customer_info': {'name': 'Asha Verma', 'email': 'Asha@Example.com', 'phone': '+91 98765 43210'},
        'order_type': 'file',
        'file_urls': ['https://files.example.com/a.pdf', 'https://files.example.com/b.pdf'],
        'original_file_names': ['a.pdf'],
        'file_type': 'application/pdf',
        'printing_options': {'page_size': 'A4', 'color': 'bw', 'sided': 'double', 'copies': '2', 'page_count': 20},
        'delivery_option': {'type': 'delivery', 'address': '12 MG Road'},
        'amount': '249.50',
    }
    data.update(overrides)
    return data


class TestValidation:

    def test_clean_payload(self):
        fields = validate_checkout_payload(_payload())

        assert fields['customer_name'] == 'Asha Verma'
        assert fields['customer_email'] == 'asha@example.com'
        assert fields['customer_phone'] == '9876543210'
        assert fields['amount_paise'] == 24950
        assert fields['printing_options']['copies'] == 2
        assert fields['file_urls'] == ['https://files.example.com/a.pdf', 'https://files.example.com/b.pdf']

    def test_every_problem_reported(self):
        with pytest.raises(CheckoutValidationError) as exc_info:
            validate_checkout_payload({
                'customer_info': {'name': 'A', 'email': 'not-an-email', 'phone': '12345'},
                'file_urls': [],
                'printing_options': {'page_size': 'B5', 'color': 'sepia', 'sided': 'triple', 'copies': 0},
                'amount': 'abc',
            })

        errors = exc_info.value.errors
        assert len(errors) == 9

    def test_legacy_single_file_accepted(self):
        fields = validate_checkout_payload(_payload(
            file_urls=None, original_file_names=None,
            file_url='https://files.example.com/one.pdf', original_file_name='one.pdf',
        ))

        assert fields['file_urls'] == ['https://files.example.com/one.pdf']
        assert fields['original_file_names'] == ['one.pdf']

    def test_template_order_needs_no_files(self):
        fields = validate_checkout_payload(_payload(order_type='template', file_urls=[], original_file_names=[]))

        assert fields['order_type'] == 'template'
        assert fields['file_urls'] == []

    @pytest.mark.parametrize('amount', ['0.50', '100000.01', None])
    def test_amount_out_of_range(self, amount):
        with pytest.raises(CheckoutValidationError):
            validate_checkout_payload(_payload(amount=amount))

    @pytest.mark.parametrize('copies', [0, 101, 'many'])
    def test_copies_out_of_range(self, copies):
        with pytest.raises(CheckoutValidationError):
            validate_checkout_payload(_payload(printing_options={'copies': copies}))

    @pytest.mark.parametrize('options', [
        {'page_count': 'ten'},
        {'page_count': 0},
        {'page_count': True},
        {'page_count': 2.5},
        {'color': 'mixed', 'page_colors': [1, 2]},
        {'color': 'mixed', 'page_colors': {'color_pages': ['1']}},
        {'service_options': 'binding'},
        {'service_options': [{'name': 'binding'}]},
    ])
    def test_unusable_printing_options(self, options):
        with pytest.raises(CheckoutValidationError) as exc_info:
            validate_checkout_payload(_payload(printing_options=options))

        assert len(exc_info.value.errors) == 1

    def test_printing_options_normalized(self):
        fields = validate_checkout_payload(_payload(printing_options={
            'color': 'mixed', 'copies': '3', 'page_count': '12',
            'page_colors': {'color_pages': [1, 2], 'bw_pages': [3]},
            'service_options': ['binding'],
            'coupon': 'FREE',
        }))

        assert fields['printing_options'] == {
            'page_size': 'A4',
            'color': 'mixed',
            'sided': 'single',
            'copies': 3,
            'page_count': 12,
            'page_colors': {'color_pages': [1, 2], 'bw_pages': [3]},
            'service_options': ['binding'],
        }

    def test_to_paise_rounds_half_up(self):
        assert to_paise('10.005') == 1001
        assert to_paise(0.1) == 10
        assert to_paise('249.5') == 24950


class TestCreatePendingOrder:

    def test_creates_gateway_and_local_order(self, db, gateway):
        order, gateway_order = create_pending_order(db, gateway, _payload())

        assert gateway_order['id'] == 'order_fake000001'
        assert gateway.created_orders[0]['amount'] == 24950
        assert gateway.created_orders[0]['receipt'] == order.order_number

        stored = order_store.get_order_by_gateway_order_id(db, 'order_fake000001')
        assert stored.id == order.id
        assert stored.order_number.startswith('ORD-')
        assert stored.payment_status == 'pending'
        assert stored.order_status == 'pending'
        assert stored.amount_paise == 24950
        assert stored.currency == 'INR'
        assert stored.original_file_names == ['a.pdf', 'File 2']
        assert stored.delivery_option == {'type': 'delivery', 'address': '12 MG Road'}

    def test_gateway_failure_writes_nothing(self, db, gateway):
        gateway.fail_create = True

        with pytest.raises(GatewayError):
            create_pending_order(db, gateway, _payload())

        assert db.execute("SELECT COUNT(*) AS n FROM orders").fetchone()['n'] == 0

    def test_invalid_payload_never_reaches_gateway(self, db, gateway):
        with pytest.raises(CheckoutValidationError):
            create_pending_order(db, gateway, _payload(amount='-5'))

        assert gateway.created_orders == []


def test_order_numbers_are_unique():
    numbers = {order_store.generate_order_number() for _ in range(50)}
    assert len(numbers) == 50
