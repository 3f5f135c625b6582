"""
Tenant resolution.

Turns a request origin (subdomain) into the TenantConfig the rest of the
access-control plane works from: tenant identity, current subscription
summary, entitled features and plan limits.

A backend without multi-tenant support is not an error: it resolves to the
SINGLE_TENANT_MODE sentinel, under which every gate is permissive. Any other
failure resolves to None and must block.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Optional

from academy_admin.exceptions import ErrorKind, Result

logger = logging.getLogger(__name__)

_IGNORED_LABELS = {'www', 'app', 'admin'}


@dataclass(frozen=True)
class SubscriptionSummary:
    plan_code: str
    renews_at: date
    grace_days: int = 0
    status: str = 'active'
    starts_at: Optional[date] = None

    def to_dict(self):
        return {
            'plan_code': self.plan_code,
            'starts_at': self.starts_at.isoformat() if self.starts_at else None,
            'renews_at': self.renews_at.isoformat(),
            'grace_days': self.grace_days,
            'status': self.status,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            plan_code=data['plan_code'],
            starts_at=date.fromisoformat(data['starts_at']) if data.get('starts_at') else None,
            renews_at=date.fromisoformat(data['renews_at']),
            grace_days=int(data.get('grace_days') or 0),
            status=data.get('status', 'active'),
        )


@dataclass(frozen=True)
class TenantConfig:
    """Resolved tenant configuration, cached for the session lifetime."""
    tenant_id: Optional[str] = None
    name: Optional[str] = None
    subdomain: Optional[str] = None
    status: Optional[str] = None
    subscription: Optional[SubscriptionSummary] = None
    features: FrozenSet[str] = frozenset()
    limits: Dict[str, Optional[int]] = field(default_factory=dict, hash=False, compare=False)
    single_tenant: bool = False

    def to_dict(self):
        return {
            'tenant_id': self.tenant_id,
            'name': self.name,
            'subdomain': self.subdomain,
            'status': self.status,
            'subscription': self.subscription.to_dict() if self.subscription else None,
            'features': sorted(self.features),
            'limits': dict(self.limits),
            'single_tenant': self.single_tenant,
        }

    @classmethod
    def from_dict(cls, data):
        if data.get('single_tenant'):
            return SINGLE_TENANT_MODE
        subscription = data.get('subscription')
        return cls(
            tenant_id=data.get('tenant_id'),
            name=data.get('name'),
            subdomain=data.get('subdomain'),
            status=data.get('status'),
            subscription=SubscriptionSummary.from_dict(subscription) if subscription else None,
            features=frozenset(data.get('features') or ()),
            limits=dict(data.get('limits') or {}),
        )


# Permissive sentinel for deployments whose backend has no tenants.
SINGLE_TENANT_MODE = TenantConfig(single_tenant=True)


def is_single_tenant(config) -> bool:
    return config is not None and getattr(config, 'single_tenant', False)


def entitled_features(plan_feature_keys, module_overrides=None) -> FrozenSet[str]:
    """
    Plan features with per-tenant overrides applied.

    An override of True adds the key, False removes it.
    """
    keys = set(plan_feature_keys)
    for key, enabled in (module_overrides or {}).items():
        if enabled:
            keys.add(key)
        else:
            keys.discard(key)
    return frozenset(keys)


def origin_from_host(host: Optional[str], brand_domain: str) -> Optional[str]:
    """
    Extract the tenant routing key from a request host.

    ``academy1.example.com`` -> ``academy1`` when brand_domain is example.com.
    Returns None for the bare brand domain, foreign hosts and reserved labels.
    """
    if not host or not brand_domain:
        return None
    host = host.split(':', 1)[0].strip().lower().rstrip('.')
    suffix = '.' + brand_domain.lower()
    if not host.endswith(suffix):
        return None
    label = host[:-len(suffix)].split('.')[0]
    if not label or label in _IGNORED_LABELS:
        return None
    return label


_ORIGIN_RE = re.compile(r'^[a-z0-9-]{1,63}$')


def is_valid_origin(origin_key) -> bool:
    return isinstance(origin_key, str) and bool(_ORIGIN_RE.match(origin_key))


class TenantResolver:
    """Resolve origins to TenantConfig through a tenant backend."""

    def __init__(self, backend):
        self.backend = backend

    def resolve_result(self, origin_key) -> Result:
        return self.backend.resolve_tenant_by_origin(origin_key)

    def resolve(self, origin_key):
        """Return TenantConfig, SINGLE_TENANT_MODE or None (block)."""
        return self._interpret(self.resolve_result(origin_key), origin_key)

    def resolve_for_tenant_id(self, tenant_id):
        """Same contract as resolve(), keyed by tenant id (impersonation, profile fallback)."""
        return self._interpret(self.backend.resolve_tenant_by_id(tenant_id), tenant_id)

    def _interpret(self, result: Result, key):
        if result.ok:
            return result.value
        if result.error is ErrorKind.CAPABILITY_UNSUPPORTED:
            logger.info("Backend has no multi-tenant support; running in single-tenant mode")
            return SINGLE_TENANT_MODE
        if result.error is ErrorKind.BACKEND_ERROR:
            logger.error(f"Tenant resolution failed for {key!r}: {result.detail}")
        else:
            logger.warning(f"Tenant not resolved for {key!r}: {result.error.value}")
        return None
