"""
Order and PrintJob records.

Rows come back from psycopg2 as DictRow (JSONB already decoded, timestamps as
datetime) and from other drivers as plain mappings with JSON text, so every
read goes through from_row() which decodes, normalizes and repairs the
file/name arrays before anything else sees the record.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from constants import (
    DEFAULT_PRINT_FILE_NAME,
    DEFAULT_PRINT_FILE_TYPE,
    ORDER_STATUS_PENDING,
    ORDER_TYPE_FILE,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_PENDING,
    TERMINAL_ORDER_STATUSES,
)
from utils.timestamps import format_timestamp

logger = logging.getLogger(__name__)


def _load_json(value, default):
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"[Models] Discarding undecodable JSON column value: {str(value)[:80]!r}")
        return default


def placeholder_file_name(position: int) -> str:
    """Display name for the file at 0-based position when none was recorded."""
    return f"File {position + 1}"


def normalize_file_fields(file_urls=None, file_url=None, file_names=None, file_name=None):
    """
    Return (file_urls, file_names) as equal-length lists.

    The plural arrays win when present; otherwise the legacy singular field
    becomes a one-element list. Names are padded with placeholders or the
    surplus is truncated. File references are never dropped.
    """
    urls = list(file_urls or [])
    if not urls and file_url:
        urls = [file_url]

    names = list(file_names or [])
    if not names and file_name:
        names = [file_name]

    if len(names) > len(urls):
        names = names[:len(urls)]
    elif len(names) < len(urls):
        names = names + [placeholder_file_name(i) for i in range(len(names), len(urls))]

    return urls, names


def parse_positive_int(value) -> Optional[int]:
    """int for a positive whole number (or its digit string), else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


def is_page_colors(value) -> bool:
    """{"color_pages": [3, 4], "bw_pages": [1, 2]}: lists of positive page numbers."""
    if not isinstance(value, dict):
        return False
    return all(
        isinstance(pages, list) and all(isinstance(p, int) and not isinstance(p, bool) and p > 0 for p in pages)
        for pages in value.values()
    )


def is_service_options(value) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


@dataclass
class PrintingOptions:
    page_size: str = "A4"
    color: str = "bw"
    sided: str = "single"
    copies: int = 1
    page_count: Optional[int] = None
    page_colors: Optional[Dict[str, List[int]]] = None
    service_options: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PrintingOptions":
        """
        Build from stored JSON. Rows written before checkout validated every
        field may hold junk; bad values are logged and dropped so the order
        can still be read and reconciled.
        """
        if not isinstance(data, dict):
            if data:
                logger.warning(f"[Models] Ignoring non-object printing options: {str(data)[:80]!r}")
            data = {}

        copies = data.get("copies")
        page_count = data.get("page_count")
        page_colors = data.get("page_colors")
        service_options = data.get("service_options")

        if copies is not None and parse_positive_int(copies) is None:
            logger.warning(f"[Models] Invalid copies {copies!r} in printing options, using 1")
        if page_count is not None and parse_positive_int(page_count) is None:
            logger.warning(f"[Models] Invalid page_count {page_count!r} in printing options, ignoring")
        if page_colors is not None and not is_page_colors(page_colors):
            logger.warning(f"[Models] Invalid page_colors {str(page_colors)[:80]!r} in printing options, ignoring")
            page_colors = None
        if service_options is not None and not is_service_options(service_options):
            logger.warning(f"[Models] Invalid service_options {str(service_options)[:80]!r} in printing options, ignoring")
            service_options = None

        return cls(
            page_size=data.get("page_size") or "A4",
            color=data.get("color") or "bw",
            sided=data.get("sided") or "single",
            copies=parse_positive_int(copies) or 1,
            page_count=parse_positive_int(page_count),
            page_colors=page_colors,
            service_options=service_options,
        )

    @property
    def is_color(self) -> bool:
        return self.color == "color"

    @property
    def color_page_count(self) -> int:
        """Pages printed in color; only meaningful for mixed mode."""
        if self.color != "mixed" or not isinstance(self.page_colors, dict):
            return 0
        color_pages = self.page_colors.get("color_pages")
        return len(color_pages) if isinstance(color_pages, list) else 0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "page_size": self.page_size,
            "color": self.color,
            "sided": self.sided,
            "copies": self.copies,
        }
        if self.page_count is not None:
            data["page_count"] = self.page_count
        if self.page_colors is not None:
            data["page_colors"] = self.page_colors
        if self.service_options is not None:
            data["service_options"] = self.service_options
        return data


@dataclass
class Order:
    id: int
    order_number: str
    customer_name: str
    customer_email: str
    amount_paise: int
    order_type: str = ORDER_TYPE_FILE
    customer_phone: Optional[str] = None
    currency: str = "INR"
    file_urls: List[str] = field(default_factory=list)
    original_file_names: List[str] = field(default_factory=list)
    file_type: Optional[str] = None
    printing_options: PrintingOptions = field(default_factory=PrintingOptions)
    delivery_option: Optional[Dict[str, Any]] = None
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    payment_status: str = PAYMENT_STATUS_PENDING
    order_status: str = ORDER_STATUS_PENDING
    created_at: Any = None
    updated_at: Any = None
    paid_at: Any = None

    @classmethod
    def from_row(cls, row) -> "Order":
        data = dict(row)
        file_urls, file_names = normalize_file_fields(
            file_urls=_load_json(data.get("file_urls"), []),
            file_url=data.get("file_url"),
            file_names=_load_json(data.get("original_file_names"), []),
            file_name=data.get("original_file_name"),
        )
        return cls(
            id=data["id"],
            order_number=data["order_number"],
            customer_name=data.get("customer_name") or "",
            customer_email=data.get("customer_email") or "",
            customer_phone=data.get("customer_phone"),
            amount_paise=int(data.get("amount_paise") or 0),
            currency=data.get("currency") or "INR",
            order_type=data.get("order_type") or ORDER_TYPE_FILE,
            file_urls=file_urls,
            original_file_names=file_names,
            file_type=data.get("file_type"),
            printing_options=PrintingOptions.from_dict(_load_json(data.get("printing_options"), {})),
            delivery_option=_load_json(data.get("delivery_option"), None),
            gateway_order_id=data.get("gateway_order_id"),
            gateway_payment_id=data.get("gateway_payment_id"),
            payment_status=data.get("payment_status") or PAYMENT_STATUS_PENDING,
            order_status=data.get("order_status") or ORDER_STATUS_PENDING,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            paid_at=data.get("paid_at"),
        )

    # Legacy singular accessors, derived from the arrays so they cannot drift.
    @property
    def file_url(self) -> Optional[str]:
        return self.file_urls[0] if self.file_urls else None

    @property
    def original_file_name(self) -> Optional[str]:
        return self.original_file_names[0] if self.original_file_names else None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PAYMENT_STATUS_COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_ORDER_STATUSES

    @property
    def amount_display(self) -> str:
        return f"{self.amount_paise // 100}.{self.amount_paise % 100:02d}"

    def to_dict(self) -> Dict[str, Any]:
        """Admin/API shape: both legacy singular and plural file fields."""
        return {
            "id": self.id,
            "order_number": self.order_number,
            "order_type": self.order_type,
            "customer": {
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
            },
            "amount": self.amount_display,
            "amount_paise": self.amount_paise,
            "currency": self.currency,
            "file_url": self.file_url,
            "file_urls": list(self.file_urls),
            "original_file_name": self.original_file_name,
            "original_file_names": list(self.original_file_names),
            "file_type": self.file_type,
            "printing_options": self.printing_options.to_dict(),
            "delivery_option": self.delivery_option,
            "gateway_order_id": self.gateway_order_id,
            "gateway_payment_id": self.gateway_payment_id,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "paid_at": format_timestamp(self.paid_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        """Customer-facing subset returned by the payment endpoints."""
        return {
            "order_number": self.order_number,
            "amount": self.amount_display,
            "currency": self.currency,
            "payment_status": self.payment_status,
            "order_status": self.order_status,
        }


@dataclass
class PrintJob:
    id: int
    order_id: int
    order_number: str
    customer_name: str
    customer_email: str
    file_url: Optional[str]
    file_urls: List[str]
    file_name: str = DEFAULT_PRINT_FILE_NAME
    file_type: str = DEFAULT_PRINT_FILE_TYPE
    printing_options: Dict[str, Any] = field(default_factory=dict)
    priority: str = "normal"
    estimated_duration: int = 0
    status: str = "pending"
    retry_count: int = 0
    max_retries: int = 3
    created_at: Any = None

    @classmethod
    def from_row(cls, row) -> "PrintJob":
        data = dict(row)
        file_urls = _load_json(data.get("file_urls"), [])
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            order_number=data["order_number"],
            customer_name=data.get("customer_name") or "",
            customer_email=data.get("customer_email") or "",
            file_url=data.get("file_url") or (file_urls[0] if file_urls else None),
            file_urls=file_urls,
            file_name=data.get("file_name") or DEFAULT_PRINT_FILE_NAME,
            file_type=data.get("file_type") or DEFAULT_PRINT_FILE_TYPE,
            printing_options=_load_json(data.get("printing_options"), {}),
            priority=data.get("priority") or "normal",
            estimated_duration=int(data.get("estimated_duration") or 0),
            status=data.get("status") or "pending",
            retry_count=int(data.get("retry_count") or 0),
            max_retries=int(data.get("max_retries") or 3),
            created_at=data.get("created_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "file_url": self.file_url,
            "file_urls": list(self.file_urls),
            "file_name": self.file_name,
            "file_type": self.file_type,
            "printing_options": self.printing_options,
            "priority": self.priority,
            "estimated_duration": self.estimated_duration,
            "status": self.status,
            "retry_count": self.retry_count,
            "max_retries": self.max_retries,
            "created_at": format_timestamp(self.created_at),
        }
