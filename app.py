import logging

import click
from flask import Flask

from config import (
    ADMIN_API_TOKEN,
    CRON_TOKEN,
    GATEWAY_TIMEOUT_SECONDS,
    IS_PRODUCTION,
    MAX_CONTENT_LENGTH,
    PAYMENT_FAILURE_GRACE_HOURS,
    PROXY_FIX_NUM_PROXIES,
    RAZORPAY_API_BASE,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
    RECONCILE_BATCH_LIMIT,
    RECONCILE_MIN_AGE_MINUTES,
    SECRET_KEY,
    TRUST_PROXY_HEADERS,
)
from database import close_connection
from extensions import limiter

# Blueprints
from routes.admin import admin_bp
from routes.cron import cron_bp
from routes.payments import payments_bp
from routes.webhook import webhook_bp

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__)

    app.config.from_mapping(
        SECRET_KEY=SECRET_KEY,
        MAX_CONTENT_LENGTH=MAX_CONTENT_LENGTH,
        RAZORPAY_KEY_ID=RAZORPAY_KEY_ID,
        RAZORPAY_KEY_SECRET=RAZORPAY_KEY_SECRET,
        RAZORPAY_WEBHOOK_SECRET=RAZORPAY_WEBHOOK_SECRET,
        RAZORPAY_API_BASE=RAZORPAY_API_BASE,
        GATEWAY_TIMEOUT_SECONDS=GATEWAY_TIMEOUT_SECONDS,
        ADMIN_API_TOKEN=ADMIN_API_TOKEN,
        CRON_TOKEN=CRON_TOKEN,
        RECONCILE_MIN_AGE_MINUTES=RECONCILE_MIN_AGE_MINUTES,
        RECONCILE_BATCH_LIMIT=RECONCILE_BATCH_LIMIT,
        PAYMENT_FAILURE_GRACE_HOURS=PAYMENT_FAILURE_GRACE_HOURS,
    )

    # Test Config Overrides (gateway, notifier and DB factory injection)
    if test_config:
        app.config.update(test_config)

    # Setup Structured Logging
    from utils.logger import setup_logger
    setup_logger(app)

    # Health Check (Validates DB connectivity)
    @app.route("/healthz")
    def healthz():
        from database import get_db
        try:
            get_db().execute("SELECT 1").fetchone()
            return {"status": "ok", "db": "connected"}, 200
        except Exception as e:
            return {"status": "error", "db": type(e).__name__}, 503

    # Simple ping endpoint for Docker health checks
    @app.route("/ping")
    def ping():
        return {"status": "ok"}, 200

    # ProxyFix
    if IS_PRODUCTION and TRUST_PROXY_HEADERS:
        from werkzeug.middleware.proxy_fix import ProxyFix
        n = PROXY_FIX_NUM_PROXIES
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=n, x_proto=n, x_host=n, x_port=n)
        logger.info(f"[Security] ProxyFix enabled for {n} proxies")

    # Extensions
    limiter.init_app(app)

    from services.payment_gateway import init_payment_gateway
    from services.notifications import send_payment_notification
    init_payment_gateway(app)
    app.extensions['payment_notifier'] = app.config.get('PAYMENT_NOTIFIER') or send_payment_notification

    # Database Teardown
    app.teardown_appcontext(close_connection)

    # Blueprints
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(cron_bp)

    # CLI Commands
    @app.cli.command("reconcile-payments")
    @click.option("--dry-run", is_flag=True, help="Report what would change without writing.")
    @click.option("--minutes", type=int, default=None, help="Only orders older than N minutes.")
    def reconcile_payments_cmd(dry_run, minutes):
        """Poll the gateway for unpaid orders and re-drive missing print jobs."""
        from services.reconciliation import engine_for_request
        with app.test_request_context():
            summary = engine_for_request().sweep_pending_orders(
                min_age_minutes=minutes if minutes is not None else app.config["RECONCILE_MIN_AGE_MINUTES"],
                limit=app.config["RECONCILE_BATCH_LIMIT"],
                failure_grace_hours=app.config["PAYMENT_FAILURE_GRACE_HOURS"],
                dry_run=dry_run,
            )
        click.echo(f"Reconciliation summary: {summary}")

    return app


# WSGI Entry Point
app = create_app()

if __name__ == "__main__":
    app.run(host='0.0.0.0', debug=True)
