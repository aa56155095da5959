import os
import logging
from decimal import Decimal
from urllib.parse import urlparse

from utils.env import get_env_str, get_env_bool, get_env_int

logger = logging.getLogger(__name__)

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

# -----------------------------------------------------------------------------
# Dotenv loading (LOCAL ONLY)
# -----------------------------------------------------------------------------
# Rules:
# - Hosted environments are configured via real environment variables.
# - Tests must be deterministic and must NOT implicitly ingest a developer's repo-root .env.
# - Local dev may use .env for convenience.
_RUNNING_ON_RAILWAY = bool(os.getenv("RAILWAY_ENVIRONMENT") or os.getenv("RAILWAY_PROJECT_ID"))
_FLASK_ENV_EARLY = (os.getenv("FLASK_ENV") or "").strip().lower()

if (not _RUNNING_ON_RAILWAY) and (_FLASK_ENV_EARLY not in {"test", "testing"}):
    from dotenv import load_dotenv
    load_dotenv(dotenv_path=os.path.join(BASE_DIR, ".env"), override=False)

# -----------------------------------------------------------------------------
# Environment / Stage
# -----------------------------------------------------------------------------
def _normalize_stage(raw: str) -> str:
    raw = (raw or "").strip().lower()
    if raw in {"prod", "production"}:
        return "production"
    if raw in {"stage", "staging"}:
        return "staging"
    if raw in {"test", "testing"}:
        return "test"
    return "dev"


FLASK_ENV = (os.getenv("FLASK_ENV", "development") or "development").strip().lower()
APP_STAGE = _normalize_stage(os.getenv("APP_STAGE", "dev"))

IS_TEST = APP_STAGE == "test" or FLASK_ENV in {"test", "testing"}
IS_STAGING = APP_STAGE == "staging"
IS_PRODUCTION = APP_STAGE == "production"
IS_SECURE_ENV = IS_STAGING or IS_PRODUCTION

# -----------------------------------------------------------------------------
# Database (Postgres-only)
# -----------------------------------------------------------------------------
DATABASE_URL = get_env_str("DATABASE_URL")
if not DATABASE_URL:
    if IS_SECURE_ENV:
        raise RuntimeError(f"DATABASE_URL environment variable is required in {APP_STAGE} stage.")
    if not (IS_TEST or os.environ.get("ALLOW_MISSING_DB")):
        raise RuntimeError("DATABASE_URL environment variable is required (set ALLOW_MISSING_DB for tooling).")
    logger.warning("[Config] DATABASE_URL missing. Requests needing the database will fail.")
    DATABASE_URL = None

if DATABASE_URL and DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)
    os.environ["DATABASE_URL"] = DATABASE_URL

if DATABASE_URL and not DATABASE_URL.startswith("postgresql://"):
    # Never include credentials in errors/logs.
    try:
        p = urlparse(DATABASE_URL)
        got = f"{p.scheme}://{p.hostname}" if p.scheme else "INVALID_URL"
    except ValueError:
        got = "INVALID_URL"
    raise ValueError(
        f"CRITICAL: DATABASE_URL must be a PostgreSQL URL (postgresql://...). Got: {got}. Non-Postgres DBs are forbidden."
    )

# -----------------------------------------------------------------------------
# Secrets / Tokens
# -----------------------------------------------------------------------------
SECRET_KEY = get_env_str("SECRET_KEY")
if not SECRET_KEY:
    if IS_SECURE_ENV:
        raise ValueError(f"SECRET_KEY must be set in {APP_STAGE} environment.")
    SECRET_KEY = "dev-secret-key-change-this"
    logger.warning("[Config] WARNING: Using default SECRET_KEY for development. DO NOT use in real environments!")

# Bearer token for /admin/api/*. Unset means every admin call is refused.
ADMIN_API_TOKEN = get_env_str("ADMIN_API_TOKEN")
if not ADMIN_API_TOKEN and IS_SECURE_ENV:
    raise ValueError(f"ADMIN_API_TOKEN must be set in {APP_STAGE} environment.")

CRON_TOKEN = get_env_str("CRON_TOKEN")

# -----------------------------------------------------------------------------
# Razorpay
# -----------------------------------------------------------------------------
RAZORPAY_KEY_ID = get_env_str("RAZORPAY_KEY_ID", default="")
RAZORPAY_KEY_SECRET = get_env_str("RAZORPAY_KEY_SECRET", default="")
RAZORPAY_WEBHOOK_SECRET = get_env_str("RAZORPAY_WEBHOOK_SECRET", default="")
RAZORPAY_API_BASE = get_env_str("RAZORPAY_API_BASE", default="https://api.razorpay.com/v1").rstrip("/")

# Bounded timeout for every call to the gateway (seconds).
GATEWAY_TIMEOUT_SECONDS = get_env_int("GATEWAY_TIMEOUT_SECONDS", 10)

if IS_SECURE_ENV and not (RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET):
    raise ValueError(f"Missing RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET in {APP_STAGE} environment.")

if RAZORPAY_KEY_ID:
    if not IS_PRODUCTION and RAZORPAY_KEY_ID.startswith("rzp_live_"):
        raise ValueError(f"SAFETY RAIL: Live Razorpay key is forbidden in {APP_STAGE}.")
    if IS_PRODUCTION and RAZORPAY_KEY_ID.startswith("rzp_test_"):
        raise ValueError("SAFETY RAIL: Test Razorpay key is forbidden in production.")

if not RAZORPAY_WEBHOOK_SECRET and IS_SECURE_ENV:
    logger.warning("[Config] WARNING: RAZORPAY_WEBHOOK_SECRET not set. Webhook endpoint will reject all events.")

# -----------------------------------------------------------------------------
# Orders
# -----------------------------------------------------------------------------
DEFAULT_CURRENCY = get_env_str("DEFAULT_CURRENCY", default="INR")

# Checkout amount range in major units (rupees).
MIN_ORDER_AMOUNT = Decimal(get_env_str("MIN_ORDER_AMOUNT", default="1"))
MAX_ORDER_AMOUNT = Decimal(get_env_str("MAX_ORDER_AMOUNT", default="100000"))

# -----------------------------------------------------------------------------
# Reconciliation sweep
# -----------------------------------------------------------------------------
RECONCILE_MIN_AGE_MINUTES = get_env_int("RECONCILE_MIN_AGE_MINUTES", 5)
RECONCILE_BATCH_LIMIT = get_env_int("RECONCILE_BATCH_LIMIT", 100)
PAYMENT_FAILURE_GRACE_HOURS = get_env_int("PAYMENT_FAILURE_GRACE_HOURS", 24)

# Mail: SMTP_* / NOTIFY_EMAIL_FROM / ADMIN_EMAIL are read at send time by
# services.notifications so they can be rotated without a restart.

# -----------------------------------------------------------------------------
# Proxy / Request limits
# -----------------------------------------------------------------------------
TRUST_PROXY_HEADERS = get_env_bool("TRUST_PROXY_HEADERS", default=False)
PROXY_FIX_NUM_PROXIES = get_env_int("PROXY_FIX_NUM_PROXIES", 1)

MAX_CONTENT_LENGTH = 1 * 1024 * 1024
