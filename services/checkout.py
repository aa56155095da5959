"""
Checkout initiation: validate the customer's order, open a gateway order for
the amount, and record the order as pending/pending.

Pricing is decided upstream; the amount arrives with the request and is only
range-checked here. It becomes the authoritative amount the gateway's
reported payment is later compared against.
"""
import logging
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from config import DEFAULT_CURRENCY, MAX_ORDER_AMOUNT, MIN_ORDER_AMOUNT
from constants import (
    COLOR_MODES,
    MAX_COPIES,
    ORDER_TYPE_FILE,
    ORDER_TYPES,
    PAGE_SIZES,
    SIDED_OPTIONS,
)
from models import is_page_colors, is_service_options, parse_positive_int
from services import orders as order_store
from utils.redaction import redact_email

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[6-9]\d{9}$")


class CheckoutValidationError(ValueError):
    def __init__(self, errors):
        super().__init__("; ".join(errors))
        self.errors = errors


def to_paise(amount) -> int:
    """Major units (rupees) to paise, half-up, without float rounding."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _normalize_phone(raw):
    digits = re.sub(r"\D", "", str(raw or ""))
    if len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    return digits


def _as_list(plural, singular):
    if isinstance(plural, list) and plural:
        return plural
    return [singular] if singular else []


def validate_checkout_payload(data):
    """
    Check and normalize a checkout request body.

    Returns a dict of clean fields; raises CheckoutValidationError listing
    every problem found.
    """
    errors = []
    customer = data.get("customer_info") or {}

    name = (customer.get("name") or "").strip()
    if len(name) < 2:
        errors.append("Customer name must be at least 2 characters")

    email = (customer.get("email") or "").strip().lower()
    if not EMAIL_RE.match(email):
        errors.append("A valid email address is required")

    phone = _normalize_phone(customer.get("phone"))
    if not PHONE_RE.match(phone):
        errors.append("A valid 10-digit phone number is required")

    order_type = data.get("order_type") or ORDER_TYPE_FILE
    if order_type not in ORDER_TYPES:
        errors.append(f"Order type must be one of: {', '.join(sorted(ORDER_TYPES))}")

    file_urls = _as_list(data.get("file_urls"), data.get("file_url"))
    file_names = _as_list(data.get("original_file_names"), data.get("original_file_name"))
    if order_type == ORDER_TYPE_FILE and not file_urls:
        errors.append("File orders need at least one uploaded file")

    options = data.get("printing_options") or {}
    if not isinstance(options, dict):
        errors.append("Printing options must be an object")
        options = {}
    page_size = options.get("page_size") or "A4"
    color = options.get("color") or "bw"
    sided = options.get("sided") or "single"
    if page_size not in PAGE_SIZES:
        errors.append(f"Page size must be one of: {', '.join(PAGE_SIZES)}")
    if color not in COLOR_MODES:
        errors.append(f"Color must be one of: {', '.join(COLOR_MODES)}")
    if sided not in SIDED_OPTIONS:
        errors.append(f"Sided must be one of: {', '.join(SIDED_OPTIONS)}")

    copies = parse_positive_int(options.get("copies", 1))
    if copies is None or copies > MAX_COPIES:
        errors.append(f"Copies must be between 1 and {MAX_COPIES}")

    clean_options = {"page_size": page_size, "color": color, "sided": sided, "copies": copies}
    page_count = options.get("page_count")
    if page_count is not None:
        clean_options["page_count"] = parse_positive_int(page_count)
        if clean_options["page_count"] is None:
            errors.append("Page count must be a positive whole number")
    page_colors = options.get("page_colors")
    if page_colors is not None:
        clean_options["page_colors"] = page_colors
        if not is_page_colors(page_colors):
            errors.append("Page colors must map page groups to lists of page numbers")
    service_options = options.get("service_options")
    if service_options is not None:
        clean_options["service_options"] = service_options
        if not is_service_options(service_options):
            errors.append("Service options must be a list of names")

    amount_paise = None
    try:
        amount = Decimal(str(data.get("amount")))
        if not (MIN_ORDER_AMOUNT <= amount <= MAX_ORDER_AMOUNT):
            errors.append(f"Amount must be between {MIN_ORDER_AMOUNT} and {MAX_ORDER_AMOUNT}")
        else:
            amount_paise = to_paise(amount)
    except (InvalidOperation, ValueError):
        errors.append("Amount must be a number")

    if errors:
        raise CheckoutValidationError(errors)

    return {
        "customer_name": name,
        "customer_email": email,
        "customer_phone": phone,
        "order_type": order_type,
        "file_urls": file_urls,
        "original_file_names": file_names,
        "file_type": data.get("file_type"),
        "printing_options": clean_options,
        "delivery_option": data.get("delivery_option"),
        "amount_paise": amount_paise,
    }


def create_pending_order(db, gateway, data, currency=None):
    """
    Validate, create the gateway order, insert the local order.

    Returns (order, gateway_order). GatewayError propagates: no local order
    is written when the gateway refuses.
    """
    fields = validate_checkout_payload(data)
    currency = currency or DEFAULT_CURRENCY
    order_number = order_store.generate_order_number()

    gateway_order = gateway.create_order(
        fields["amount_paise"],
        currency=currency,
        receipt=order_number,
        notes={"order_number": order_number, "order_type": fields["order_type"]},
    )

    order = order_store.insert_order(
        db,
        order_number=order_number,
        currency=currency,
        gateway_order_id=gateway_order["id"],
        **fields,
    )
    logger.info(
        f"[Checkout] Order {order.order_number} awaiting payment "
        f"({order.amount_display} {currency}, customer {redact_email(order.customer_email)})"
    )
    return order, gateway_order
