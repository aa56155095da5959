import os
import ssl
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from utils.redaction import redact_email

logger = logging.getLogger(__name__)

# SMTP timeout in seconds
SMTP_TIMEOUT = 10


def build_payment_notification(order):
    """
    Payload describing an order whose payment just completed.
    Everything the shop needs to start the job without opening the admin panel.
    """
    options = order.printing_options
    return {
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "order_type": order.order_type,
        "amount": order.amount_display,
        "currency": order.currency,
        "page_count": options.page_count or 1,
        "printing_options": options.to_dict(),
        "delivery_option": order.delivery_option,
        "payment_status": order.payment_status,
        "order_status": order.order_status,
        "file_name": order.original_file_name,
        "file_count": len(order.file_urls),
    }


def _format_body(payload):
    options = payload.get("printing_options") or {}
    delivery = payload.get("delivery_option") or {}
    return f"""
    Payment received for order {payload.get('order_number')}.

    Customer: {payload.get('customer_name')}
    Email: {payload.get('customer_email')}
    Phone: {payload.get('customer_phone') or 'N/A'}

    Order type: {payload.get('order_type')}
    Amount: {payload.get('amount')} {payload.get('currency')}
    File: {payload.get('file_name') or 'N/A'} ({payload.get('file_count', 0)} file(s))
    Pages: {payload.get('page_count')}
    Options: {options.get('page_size')}, {options.get('color')}, {options.get('sided')}-sided, {options.get('copies')} copies
    Delivery: {delivery.get('type', 'N/A')}

    Payment status: {payload.get('payment_status')}
    Order status: {payload.get('order_status')}
    """


def send_payment_notification(payload):
    """
    Email the shop (ADMIN_EMAIL) about a completed payment via SMTP synchronously.

    Returns:
        tuple: (success: bool, error_message: str | None, outcome_status: str)
               outcome_status in {'sent', 'failed', 'skipped'}
    """
    smtp_host = os.environ.get("SMTP_HOST")
    smtp_port = int(os.environ.get("SMTP_PORT", "587"))
    smtp_user = os.environ.get("SMTP_USER")
    smtp_pass = os.environ.get("SMTP_PASS", "").replace(" ", "")
    sender_email = os.environ.get("NOTIFY_EMAIL_FROM", "noreply@printshop.local")
    recipient = os.environ.get("ADMIN_EMAIL")
    use_tls = os.environ.get("SMTP_USE_TLS", "true").lower() in ("true", "1", "yes")

    if not smtp_host or not smtp_user:
        logger.warning("[Notifications] SMTP not configured. Skipping payment notification.")
        return (False, "SMTP not configured", "skipped")

    if not recipient:
        logger.warning("[Notifications] ADMIN_EMAIL not configured. Skipping payment notification.")
        return (False, "ADMIN_EMAIL not configured", "skipped")

    logger.info(f"[Notifications] Config: Host={smtp_host}, Port={smtp_port}, TLS={use_tls}")

    try:
        msg = MIMEMultipart()
        msg["From"] = sender_email
        msg["To"] = recipient
        msg["Subject"] = f"Payment received: {payload.get('order_number')}"
        msg.attach(MIMEText(_format_body(payload), "plain"))

        if smtp_port == 465:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(smtp_host, smtp_port, context=context, timeout=SMTP_TIMEOUT) as server:
                server.login(smtp_user, smtp_pass)
                server.send_message(msg)
        else:
            with smtplib.SMTP(smtp_host, smtp_port, timeout=SMTP_TIMEOUT) as server:
                if use_tls:
                    server.starttls()
                server.login(smtp_user, smtp_pass)
                server.send_message(msg)

        logger.info(
            f"[Notifications] Payment notification for {payload.get('order_number')} sent "
            f"(customer {redact_email(payload.get('customer_email'))})."
        )
        return (True, None, "sent")

    except (smtplib.SMTPException, OSError) as e:
        error_msg = str(e)
        logger.error(f"[Notifications] Failed to send email: {error_msg} (Type: {type(e).__name__})")
        return (False, error_msg, "failed")
