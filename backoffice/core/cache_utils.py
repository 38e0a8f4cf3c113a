"""
Caching utilities for expensive report queries.
Uses Redis (django-redis) when configured, Django's local memory cache otherwise.
"""
import hashlib
import logging
from functools import wraps

from django.conf import settings
from django.core.cache import cache

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
TOOL_STATUS_CACHE_TTL = 120  # 2 minutes
ANALYTICS_CACHE_TTL = 300  # 5 minutes
TASK_KPI_CACHE_TTL = 120  # 2 minutes

REPORTS_PREFIX = 'reports'


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=120, key_prefix="reports:tool_status")
        def get_expensive_data(filters):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)
            cache.set(cache_key, result, cache_ttl)
            return result
        return wrapper
    return decorator


def _uses_redis():
    return settings.CACHES['default']['BACKEND'].startswith('django_redis')


def invalidate_cache_pattern(pattern):
    """
    Drop every key under ``pattern`` (e.g. ``reports`` drops ``reports:*``).
    Returns the number of keys removed, or None when the whole local cache was cleared.
    """
    try:
        if not _uses_redis():
            cache.clear()
            logger.debug(f"Cleared local cache for pattern: {pattern}")
            return None

        # delete_pattern applies KEY_PREFIX and the key version itself
        deleted = cache.delete_pattern(f"{pattern}:*")
        if deleted:
            logger.info(f"Invalidated {deleted} cache keys under {pattern}")
        return deleted
    except Exception as e:
        logger.warning(f"Could not invalidate cache pattern {pattern}: {str(e)}")
        return 0


def invalidate_reports_cache():
    """Invalidate all report caches"""
    invalidate_cache_pattern(REPORTS_PREFIX)
