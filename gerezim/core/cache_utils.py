"""
Caching utilities for expensive report payloads
Uses Redis (django-redis) when configured, local memory otherwise
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
DASHBOARD_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

DASHBOARD_PREFIX = "dashboard"
REPORTS_PREFIX = "reports"
KNOWN_PREFIXES = (DASHBOARD_PREFIX, REPORTS_PREFIX)


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def _prefix_version_key(prefix):
    return f"{prefix}:version"


def _versioned_prefix(prefix):
    """Prefix plus its current generation; bumping the generation orphans old keys"""
    version = cache.get(_prefix_version_key(prefix))
    if version is None:
        version = 1
        cache.set(_prefix_version_key(prefix), version, None)
    return f"{prefix}:v{version}"


def invalidate_cache_pattern(prefix):
    """
    Invalidate every cache entry stored under prefix.
    Works on any cache backend by bumping the prefix generation.
    """
    try:
        cache.incr(_prefix_version_key(prefix))
    except ValueError:
        # Key missing: nothing cached under this prefix yet
        cache.set(_prefix_version_key(prefix), 2, None)
    logger.info(f"Invalidated cache entries for prefix: {prefix}")


def get_cached_dashboard(range_key, user_id=None):
    """Get cached dashboard payload. Returns tuple: (cached_data, cache_key)"""
    cache_key = make_cache_key(_versioned_prefix(DASHBOARD_PREFIX), range_key, user_id)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for dashboard: {cache_key}")
    return cached_data, cache_key


def cache_dashboard(cache_key, data, ttl=DASHBOARD_CACHE_TTL):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached dashboard: {cache_key}")


def get_cached_report(name, user_id=None):
    cache_key = make_cache_key(_versioned_prefix(REPORTS_PREFIX), name, user_id)
    return cache.get(cache_key), cache_key


def cache_report(cache_key, data, ttl=REPORTS_CACHE_TTL):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached report: {cache_key}")


def invalidate_dashboard_cache():
    """Invalidate dashboard and report payloads"""
    for prefix in KNOWN_PREFIXES:
        invalidate_cache_pattern(prefix)
