"""
Redis cache service and the session-scoped tenant config store.

Redis is optional: when it is disabled or unreachable every call degrades to
a miss, and SessionConfigStore keeps entries in a locked in-process dict.
"""

import logging
import json
import threading
import time
from typing import Any, Optional, Dict, Tuple
from datetime import datetime, date

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

from academy_admin.services.tenant_resolver import TenantConfig

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based caching service.

    Keys pattern: {prefix}:{namespace}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = ""
        self._default_ttl: int = 60

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'academy')
        self._default_ttl = app.config.get('CACHE_DEFAULT_TTL', 60)
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[CACHE] Cache is DISABLED via config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Cache DISABLED.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        if not self._enabled or not self.client:
            return False
        try:
            self.client.ping()
            return True
        except (ConnectionError, RedisError):
            return False

    def _build_key(self, namespace: str, key: str) -> str:
        return f"{self._prefix}:{namespace}:{key}"

    def _serialize(self, value: Any) -> str:
        def default_handler(obj: Any) -> Any:
            if isinstance(obj, (datetime, date)):
                return obj.isoformat()
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
        return json.dumps(value, default=default_handler)

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Get value from cache."""
        if not self.is_available():
            return None
        try:
            value = self.client.get(self._build_key(namespace, key))
            if value is None:
                return None
            return json.loads(value)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CACHE] Get error: {e}")
            return None

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache with TTL."""
        if not self.is_available():
            return False
        try:
            self.client.setex(self._build_key(namespace, key), ttl or self._default_ttl, self._serialize(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set error: {e}")
            return False

    def delete(self, namespace: str, key: str) -> bool:
        """Delete specific key from cache."""
        if not self.is_available():
            return False
        try:
            self.client.delete(self._build_key(namespace, key))
            return True
        except RedisError as e:
            logger.warning(f"[CACHE] Delete error: {e}")
            return False


class SessionConfigStore:
    """
    Tenant config cached per session bootstrap.

    A bootstrap (login, impersonation start or exit) writes a fresh entry;
    ordinary navigation only reads it.
    """

    NAMESPACE = 'tenant_config'
    NO_TENANT_KEY = '__no_tenant__'

    def __init__(self, cache: Optional[CacheService] = None, ttl: int = 86400):
        self.cache = cache
        self.ttl = ttl
        self._lock = threading.Lock()
        self._local: Dict[str, Tuple[dict, float]] = {}

    def lookup(self, bootstrap_id: str) -> Tuple[bool, Optional[TenantConfig]]:
        """
        Cached config for a bootstrap as ``(hit, config)``.

        A hit with ``config`` None means the bootstrap resolved no tenant.
        """
        if not bootstrap_id:
            return False, None
        data = None
        if self.cache is not None and self.cache.is_available():
            data = self.cache.get(self.NAMESPACE, bootstrap_id)
        if data is None:
            with self._lock:
                entry = self._local.get(bootstrap_id)
                if entry:
                    cached, cached_at = entry
                    if time.time() - cached_at < self.ttl:
                        data = cached
                    else:
                        del self._local[bootstrap_id]
        if data is None:
            return False, None
        if data.get(self.NO_TENANT_KEY):
            return True, None
        return True, TenantConfig.from_dict(data)

    def get(self, bootstrap_id: str) -> Optional[TenantConfig]:
        return self.lookup(bootstrap_id)[1]

    def put(self, bootstrap_id: str, config) -> None:
        if not bootstrap_id:
            return
        data = config.to_dict() if config is not None else {self.NO_TENANT_KEY: True}
        if self.cache is not None and self.cache.set(self.NAMESPACE, bootstrap_id, data, self.ttl):
            return
        with self._lock:
            self._local[bootstrap_id] = (data, time.time())

    def discard(self, bootstrap_id: str) -> None:
        if not bootstrap_id:
            return
        if self.cache is not None:
            self.cache.delete(self.NAMESPACE, bootstrap_id)
        with self._lock:
            self._local.pop(bootstrap_id, None)


_cache_service: Optional[CacheService] = None
_config_store: Optional[SessionConfigStore] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service and session config store singletons."""
    global _cache_service, _config_store
    _cache_service = CacheService(app)
    _config_store = SessionConfigStore(_cache_service, app.config.get('TENANT_CONFIG_TTL', 86400))
    app.extensions['cache'] = _cache_service
    app.extensions['tenant_config_store'] = _config_store


def get_cache() -> CacheService:
    """Get cache service instance."""
    if _cache_service is None:
        raise RuntimeError("Cache not initialized.")
    return _cache_service


def get_config_store() -> SessionConfigStore:
    """Get session config store instance."""
    if _config_store is None:
        raise RuntimeError("Cache not initialized.")
    return _config_store
