"""
Unit tests for the audit emitter and change detection.
"""

import pytest
import requests
from datetime import datetime

from academy_admin.context import AccessContext, ActorIdentity, ImpersonationSnapshot
from academy_admin.models import AuditAction, AuditEntityType
from academy_admin.services import audit_service
from academy_admin.services.audit_service import (
    AuditEmitter, AuditEvent, get_changed_fields, impersonation_event,
)

CHROME_UA = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)


class RecordingBackend:
    def __init__(self):
        self.entries = []

    def append_audit_log(self, entry):
        self.entries.append(entry)
        return f'entry-{len(self.entries)}'


class FailingBackend:
    def append_audit_log(self, entry):
        raise RuntimeError('backend down')


def login_event():
    return AuditEvent(
        action=AuditAction.LOGIN,
        entity_type=AuditEntityType.AUTH,
        summary_key='audit.auth.login',
        summary_params={'email': 'staff@academy.test'},
    )


def staff_context(**kwargs):
    defaults = dict(
        actor=ActorIdentity('staff-1', 'tenant_admin', 'staff@academy.test', 'tenant-1', 'branch-1'),
        user_agent=CHROME_UA,
        client_ip='203.0.113.9',
    )
    defaults.update(kwargs)
    return AccessContext(**defaults)


class TestRecord:
    """Tests for AuditEmitter.record."""

    def test_builds_full_entry(self):
        backend = RecordingBackend()
        entry_id = AuditEmitter(backend).record('tenant_admin', login_event(), staff_context())

        assert entry_id == 'entry-1'
        entry = backend.entries[0]
        assert entry['actor_id'] == 'staff-1'
        assert entry['actor_role'] == 'tenant_admin'
        assert entry['tenant_id'] == 'tenant-1'
        assert entry['branch_id'] == 'branch-1'
        assert entry['action'] == 'login'
        assert entry['entity_type'] == 'auth'
        assert entry['ip_masked'] == '203.0.*.*'
        assert entry['browser_name'] == 'Chrome'
        assert entry['os_name'] == 'Windows 10/11'
        assert entry['is_mobile'] is False

    def test_backend_failure_never_raises(self):
        assert AuditEmitter(FailingBackend()).record('tenant_admin', login_event(), staff_context()) is None

    def test_fingerprint_failure_still_records(self, monkeypatch):
        def broken(user_agent):
            raise ValueError('bad user agent')
        monkeypatch.setattr(audit_service, 'parse_user_agent', broken)
        backend = RecordingBackend()

        assert AuditEmitter(backend).record('tenant_admin', login_event(), staff_context()) == 'entry-1'
        assert backend.entries[0]['device_name'] == 'Unknown Device'

    def test_ip_lookup_failure_leaves_address_empty(self, monkeypatch):
        def unreachable(*args, **kwargs):
            raise requests.ConnectionError('no network')
        monkeypatch.setattr(requests, 'get', unreachable)
        backend = RecordingBackend()
        emitter = AuditEmitter(backend, ip_lookup_url='https://ip.example.test', ip_lookup_timeout=0.1)

        assert emitter.record('tenant_admin', login_event(), staff_context(client_ip=None)) == 'entry-1'
        assert backend.entries[0]['ip_address'] is None
        assert backend.entries[0]['ip_masked'] is None

    def test_unknown_action_is_rejected_without_raising(self):
        backend = RecordingBackend()
        event = AuditEvent(action='teleport', entity_type=AuditEntityType.AUTH)

        assert AuditEmitter(backend).record('tenant_admin', event, staff_context()) is None
        assert backend.entries == []

    def test_without_context(self):
        backend = RecordingBackend()
        AuditEmitter(backend).record('unauthenticated', login_event())

        entry = backend.entries[0]
        assert entry['actor_id'] is None
        assert entry['tenant_id'] is None
        assert entry['browser_name'] == 'Unknown Browser'

    def test_impersonation_keeps_real_actor(self):
        backend = RecordingBackend()
        ctx = AccessContext(
            actor=ActorIdentity('owner-1', 'platform_owner'),
            impersonation=ImpersonationSnapshot('imp-1', 'tenant-42', datetime(2030, 1, 1)),
        )
        AuditEmitter(backend).record('platform_owner', login_event(), ctx)

        entry = backend.entries[0]
        assert entry['actor_id'] == 'owner-1'
        assert entry['actor_role'] == 'platform_owner'
        assert entry['tenant_id'] == 'tenant-42'


class TestChangedFields:
    """Tests for get_changed_fields."""

    def test_detects_changes(self):
        before = {'name': 'A', 'grace_days': 7, 'same': [1, 2]}
        after = {'name': 'B', 'grace_days': 7, 'same': [1, 2]}
        assert get_changed_fields(before, after) == ['name']

    def test_missing_key_differs_from_none(self):
        assert get_changed_fields({'a': None}, {}) == ['a']

    def test_nested_values_compare_by_content(self):
        assert get_changed_fields({'m': {'x': 1, 'y': 2}}, {'m': {'y': 2, 'x': 1}}) == []

    def test_none_side_returns_empty(self):
        assert get_changed_fields(None, {'a': 1}) == []
        assert get_changed_fields({'a': 1}, None) == []

    @pytest.mark.parametrize('a,b', [
        ({'a': 1, 'b': 2}, {'b': 3, 'c': 4}),
        ({}, {'x': None}),
        ({'k': [1]}, {'k': [1], 'z': 'z'}),
    ])
    def test_symmetric(self, a, b):
        assert set(get_changed_fields(a, b)) == set(get_changed_fields(b, a))


class TestImpersonationEvent:

    def test_start_and_end(self):
        started = impersonation_event('tenant-42', 'imp-1', started=True)
        ended = impersonation_event('tenant-42', 'imp-1', started=False)

        assert started.action is AuditAction.CREATE
        assert started.summary_key == 'audit.impersonation.started'
        assert ended.action is AuditAction.UPDATE
        assert ended.summary_key == 'audit.impersonation.ended'
        assert ended.metadata == {'impersonation_session_id': 'imp-1', 'tenant_id': 'tenant-42'}
