from decimal import Decimal

# Payment Status Constants
PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_COMPLETED = "completed"
PAYMENT_STATUS_FAILED = "failed"

# Order (fulfillment) Status Constants
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PROCESSING = "processing"
ORDER_STATUS_PRINTING = "printing"
ORDER_STATUS_DISPATCHED = "dispatched"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = frozenset({
    ORDER_STATUS_PENDING,
    ORDER_STATUS_PROCESSING,
    ORDER_STATUS_PRINTING,
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
})

# No transition leaves these
TERMINAL_ORDER_STATUSES = frozenset({
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
})

# Order Types
ORDER_TYPE_FILE = "file"
ORDER_TYPE_TEMPLATE = "template"
ORDER_TYPES = frozenset({ORDER_TYPE_FILE, ORDER_TYPE_TEMPLATE})

# Gateway payment attempt statuses (Razorpay)
GATEWAY_PAYMENT_CAPTURED = "captured"
GATEWAY_PAYMENT_FAILED = "failed"
GATEWAY_TERMINAL_FAILURE_STATUSES = frozenset({GATEWAY_PAYMENT_FAILED})

# Print Job Constants
PRINT_JOB_STATUS_PENDING = "pending"
PRINT_JOB_PRIORITY_NORMAL = "normal"
PRINT_JOB_MAX_RETRIES = 3
DEFAULT_PRINT_FILE_NAME = "document.pdf"
DEFAULT_PRINT_FILE_TYPE = "application/pdf"

# Estimator constants (minutes)
PER_PAGE_MINUTES = Decimal("0.5")
COLOR_PENALTY_MINUTES = Decimal("0.3")

# Printing option vocabularies
PAGE_SIZES = ("A4", "A3", "Letter")
COLOR_MODES = ("color", "bw", "mixed")
SIDED_OPTIONS = ("single", "double")
MAX_COPIES = 100

# Webhook ledger statuses
GATEWAY_EVENT_RECEIVED = "received"
GATEWAY_EVENT_PROCESSING = "processing"
GATEWAY_EVENT_PROCESSED = "processed"
GATEWAY_EVENT_FAILED = "failed"
