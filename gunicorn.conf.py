import os

# Preload so config safety rails fail the master, not each worker
preload_app = True

# Request-scoped handlers only; payment correctness does not depend on worker count
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))

# Bind
bind = f"0.0.0.0:{os.environ.get('PORT', '8080')}"

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"

# Longer than GATEWAY_TIMEOUT_SECONDS so a slow gateway poll still answers
timeout = 60
