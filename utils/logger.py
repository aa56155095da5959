import logging
import json
import uuid
from flask import request, has_request_context, g
from datetime import datetime, timezone
import sys


class JSONFormatter(logging.Formatter):
    """
    Formatter to output logs in JSON format.
    Includes request_id if available in Flask context.
    """
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "lineno": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        if has_request_context():
            log_record["method"] = request.method
            log_record["path"] = request.path
            log_record["remote_ip"] = request.remote_addr
            if hasattr(g, "request_id"):
                log_record["request_id"] = g.request_id

        return json.dumps(log_record)


def setup_logger(app):
    """
    Configures JSON logging to stdout (for container logging) on the app
    logger and on the service loggers under services.*, routes.* and the
    database layer.
    """
    app.logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    app.logger.addHandler(handler)
    app.logger.setLevel(logging.INFO)

    logging.getLogger('werkzeug').handlers = [handler]

    # Module loggers still propagate to root so pytest's caplog sees them.
    for name in ("services", "routes", "database", "scripts"):
        module_logger = logging.getLogger(name)
        if not module_logger.handlers:
            module_logger.addHandler(handler)
        module_logger.setLevel(logging.INFO)

    gunicorn_logger = logging.getLogger('gunicorn.error')
    if gunicorn_logger.handlers:
        app.logger.handlers = gunicorn_logger.handlers
        app.logger.setLevel(gunicorn_logger.level)

    @app.before_request
    def add_request_id():
        g.request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))

    @app.after_request
    def echo_request_id(response):
        if hasattr(g, "request_id"):
            response.headers["X-Request-Id"] = g.request_id
        return response

    app.logger.info("Logger setup complete. JSON formatted logs enabled.")
