"""Rate limiting using slowapi."""
from slowapi import Limiter
from slowapi.util import get_remote_address

from expertiz.config import get_settings

settings = get_settings()

limiter = Limiter(key_func=get_remote_address)

# Limit strings for the mutating endpoints.
DEFAULT_LIMIT = f"{settings.rate_limit_per_minute}/minute"
AUTH_LIMIT = "10/minute"
UPLOAD_LIMIT = "30/minute"
