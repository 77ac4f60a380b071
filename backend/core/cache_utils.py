"""
Caching utilities for expensive queries
Uses Redis for caching dashboard, supplier and report results
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = 300  # 5 minutes
SUPPLIER_CACHE_TTL = 900  # 15 minutes
SUPPLIER_DASHBOARD_CACHE_TTL = 120  # 2 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

# Key prefixes
DASHBOARD_PREFIX = "dashboard"
SUPPLIER_PREFIX = "supplier"
SUPPLIER_DASHBOARD_PREFIX = "supplier_dashboard"
REPORTS_PREFIX = "reports"


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    # Convert args and kwargs to a stable string representation
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=300, key_prefix=DASHBOARD_PREFIX)
        def get_dashboard_summary(filters):
            # expensive query here
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, func.__name__, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)

            cache.set(cache_key, result, cache_ttl)

            return result
        wrapper.uncached = func
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Uses Redis SCAN; backends without key scanning are cleared entirely
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except NotImplementedError:
        cache.clear()
        logger.debug(f"Cache backend has no pattern support, cleared cache for pattern: {pattern}")
        return

    try:
        keys = []
        cursor = 0
        while True:
            cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
            keys.extend(partial_keys)
            if cursor == 0:
                break

        if keys:
            redis_conn.delete(*keys)
            logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")


def invalidate_dashboard_cache():
    """Invalidate order dashboard cache"""
    invalidate_cache_pattern(DASHBOARD_PREFIX)
    logger.info("Invalidated dashboard cache")


def invalidate_supplier_cache():
    """Invalidate supplier lookups and supplier portal dashboards"""
    invalidate_cache_pattern(SUPPLIER_PREFIX)
    logger.info("Invalidated supplier cache")


def invalidate_reports_cache():
    """Invalidate cached reports"""
    invalidate_cache_pattern(REPORTS_PREFIX)
    logger.info("Invalidated reports cache")
