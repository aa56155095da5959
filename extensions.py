from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize Limiter (Configured in app.py via init_app).
# No default limits: only the gateway-facing endpoints are throttled.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://"
)
