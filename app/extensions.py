"""Application-wide extension instances."""

from flask_caching import Cache
from flask_compress import Compress
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

# In-memory cache for single-process deployments; Redis when REDIS_URL is set.
cache = Cache()

# Compression for responses (Brotli and Gzip)
compress = Compress()

limiter = Limiter(key_func=get_remote_address, default_limits=["2000 per day", "300 per hour"])

migrate = Migrate()

__all__ = ["cache", "compress", "limiter", "migrate"]
