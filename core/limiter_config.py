from slowapi import Limiter
from slowapi.util import get_remote_address
from .config import settings
from .logging_config import get_logger

logger = get_logger(__name__)

# Fixed-window counters keyed by client address; slowapi scopes each
# decorated endpoint separately, so the effective key is IP + route.
storage_uri = settings.REDIS_URL

if not storage_uri:
    logger.warning("limiter_storage_in_memory", message="REDIS_URL is not set. Counters are per-process and reset on restart.")
    limiter = Limiter(key_func=get_remote_address, strategy="fixed-window")
else:
    logger.info("limiter_storage_redis", redis_url=storage_uri)
    limiter = Limiter(key_func=get_remote_address, strategy="fixed-window", storage_uri=storage_uri)
