"""
Unit tests for the session tenant config store (in-process fallback).
"""

import pytest
from datetime import date

from academy_admin.services.cache_service import SessionConfigStore
from academy_admin.services.entitlements import has_feature
from academy_admin.services.tenant_resolver import SINGLE_TENANT_MODE, SubscriptionSummary, TenantConfig


@pytest.fixture
def store():
    return SessionConfigStore(cache=None, ttl=60)


def tenant_config():
    return TenantConfig(
        tenant_id='tenant-1', name='Academy One', subdomain='one', status='active',
        subscription=SubscriptionSummary('single', date(2030, 1, 1), 7),
        features=frozenset({'students'}), limits={'max_students': 50},
    )


class TestSessionConfigStore:

    def test_miss(self, store):
        assert store.lookup('unknown') == (False, None)
        assert store.lookup(None) == (False, None)

    def test_config_round_trip(self, store):
        store.put('boot-1', tenant_config())

        hit, config = store.lookup('boot-1')

        assert hit is True
        assert config.tenant_id == 'tenant-1'
        assert has_feature(store.get('boot-1'), 'students')

    def test_unresolved_tenant_is_cached_as_hit(self, store):
        store.put('boot-1', None)

        assert store.lookup('boot-1') == (True, None)
        assert store.get('boot-1') is None

    def test_single_tenant_sentinel(self, store):
        store.put('boot-1', SINGLE_TENANT_MODE)

        assert store.get('boot-1') is SINGLE_TENANT_MODE

    def test_discard(self, store):
        store.put('boot-1', None)

        store.discard('boot-1')

        assert store.lookup('boot-1') == (False, None)

    def test_expired_entry_is_a_miss(self):
        store = SessionConfigStore(cache=None, ttl=0)
        store.put('boot-1', tenant_config())

        assert store.lookup('boot-1') == (False, None)
