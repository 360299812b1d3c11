"""
Caching utilities for read-heavy tenant views.

Cached payloads are keyed by tenant, scope and request arguments. A per-tenant
generation counter is part of every key, so a mutation invalidates a scope by
bumping its counter instead of scanning keys.
"""
from django.core.cache import cache
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
PRODUCTS_LIST_CACHE_TTL = 120  # 2 minutes
STOCK_LIST_CACHE_TTL = 180  # 3 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

# Scopes touched by each kind of mutation
STOCK_SCOPES = ('stock', 'reports')
CATALOG_SCOPES = ('products', 'stock', 'reports')


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def _generation_key(tenant_id, scope):
    return f"gen:{tenant_id}:{scope}"


def get_generation(tenant_id, scope):
    generation = cache.get(_generation_key(tenant_id, scope))
    if generation is None:
        generation = 1
        cache.add(_generation_key(tenant_id, scope), generation, None)
    return generation


def get_tenant_cached(tenant_id, scope, producer, ttl=STOCK_LIST_CACHE_TTL, **params):
    """
    Return the cached payload for (tenant, scope, params) or build it.

    Usage:
        data = get_tenant_cached(tenant.id, 'stock', lambda: build(...), location=loc_id)
    """
    generation = get_generation(tenant_id, scope)
    cache_key = make_cache_key(f"{scope}:{tenant_id}:{generation}", **params)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for {scope}: {cache_key}")
        return cached_data

    logger.debug(f"Cache MISS for {scope}: {cache_key}")
    data = producer()
    cache.set(cache_key, data, ttl)
    return data


def invalidate_tenant_cache(tenant_id, *scopes):
    """Invalidate cached payloads for the given scopes of one tenant"""
    for scope in scopes:
        key = _generation_key(tenant_id, scope)
        try:
            cache.incr(key)
        except ValueError:
            # Counter missing or evicted: start a fresh generation
            cache.set(key, 2, None)
    if scopes:
        logger.debug(f"Invalidated cache scopes {', '.join(scopes)} for tenant {tenant_id}")


def invalidate_stock_cache(tenant_id):
    """Stock balances, depleted stock and reports"""
    invalidate_tenant_cache(tenant_id, *STOCK_SCOPES)


def invalidate_catalog_cache(tenant_id):
    invalidate_tenant_cache(tenant_id, *CATALOG_SCOPES)
