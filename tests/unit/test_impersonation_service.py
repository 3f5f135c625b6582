"""
Tests for the impersonation broker against the test database.
"""

import pytest
from datetime import datetime, timedelta

from academy_admin.context import AccessContext, ActorIdentity
from academy_admin.exceptions import ImpersonationError, TenantNotFoundError
from academy_admin.models import ImpersonationSession, PlatformAuditLog
from academy_admin.services.impersonation_service import ImpersonationBroker


class Recorder:
    """Stand-in for audit_service.record that keeps what it was given."""

    def __init__(self):
        self.calls = []

    def __call__(self, actor_role, event, context=None):
        self.calls.append((actor_role, event, context.effective_tenant_id, context.actor.actor_id))
        return 'entry-id'


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def owner_ctx(owner):
    return AccessContext(actor=ActorIdentity(owner.id, 'platform_owner', owner.email), client_ip='192.0.2.10')


def open_sessions(session, owner_id, tenant_id):
    return session.query(ImpersonationSession).filter_by(
        admin_actor_id=owner_id, tenant_id=tenant_id, revoked=False,
    ).all()


class TestStart:

    def test_start_creates_session_and_routes_context(self, session, tenant, owner_ctx, recorder):
        broker = ImpersonationBroker(session, 30, record=recorder)

        imp = broker.start(owner_ctx, tenant.id)

        assert owner_ctx.is_impersonating
        assert owner_ctx.effective_tenant_id == tenant.id
        assert imp.expires_at - imp.created_at == timedelta(minutes=30)
        audit = session.query(PlatformAuditLog).filter_by(tenant_id=tenant.id, action='impersonate_tenant').all()
        assert len(audit) == 1

    def test_start_is_idempotent(self, session, tenant, owner_ctx, recorder):
        broker = ImpersonationBroker(session, 30, record=recorder)

        first = broker.start(owner_ctx, tenant.id)
        second = broker.start(owner_ctx, tenant.id)

        assert first.id == second.id
        assert len(open_sessions(session, owner_ctx.actor.actor_id, tenant.id)) == 1
        assert len(recorder.calls) == 1

    def test_audit_attributed_to_owner_in_tenant_scope(self, session, tenant, owner_ctx, recorder):
        ImpersonationBroker(session, 30, record=recorder).start(owner_ctx, tenant.id)

        role, event, tenant_id, actor_id = recorder.calls[0]
        assert role == 'platform_owner'
        assert event.summary_key == 'audit.impersonation.started'
        assert tenant_id == tenant.id
        assert actor_id == owner_ctx.actor.actor_id

    def test_non_owner_is_rejected(self, session, tenant, tenant_user, recorder):
        ctx = AccessContext(actor=ActorIdentity(tenant_user.id, 'tenant_admin', tenant_id=tenant.id))

        with pytest.raises(ImpersonationError):
            ImpersonationBroker(session, 30, record=recorder).start(ctx, tenant.id)
        assert ctx.impersonation is None

    def test_unknown_tenant(self, session, owner_ctx, recorder):
        with pytest.raises(TenantNotFoundError):
            ImpersonationBroker(session, 30, record=recorder).start(owner_ctx, 'no-such-tenant')

    def test_expired_session_is_not_reused(self, session, tenant, owner_ctx, recorder):
        now = [datetime(2030, 1, 1, 12, 0)]
        broker = ImpersonationBroker(session, 30, record=recorder, clock=lambda: now[0])

        first = broker.start(owner_ctx, tenant.id)
        now[0] += timedelta(minutes=31)

        assert broker.get_active(owner_ctx.actor.actor_id, tenant_id=tenant.id) is None
        second = broker.start(owner_ctx, tenant.id)
        assert second.id != first.id

    def test_expired_pin_does_not_fall_back_to_other_tenant(self, session, make_tenant, owner_ctx, recorder):
        now = [datetime(2030, 1, 1, 12, 0)]
        other_tenant = make_tenant()
        pinned_tenant = make_tenant()
        ImpersonationBroker(session, 60, record=recorder, clock=lambda: now[0]).start(owner_ctx, other_tenant.id)
        pinned = ImpersonationBroker(session, 30, record=recorder, clock=lambda: now[0]).start(
            owner_ctx, pinned_tenant.id,
        )
        now[0] += timedelta(minutes=31)
        broker = ImpersonationBroker(session, 30, record=recorder, clock=lambda: now[0])

        assert broker.get_active(owner_ctx.actor.actor_id, session_id=pinned.id) is None
        assert broker.get_active(owner_ctx.actor.actor_id).tenant_id == other_tenant.id


class TestExit:

    def test_start_then_exit_leaves_nothing_active(self, session, tenant, owner_ctx, recorder):
        broker = ImpersonationBroker(session, 30, record=recorder)
        broker.start(owner_ctx, tenant.id)

        broker.exit(owner_ctx)

        assert owner_ctx.impersonation is None
        assert not owner_ctx.is_impersonating
        assert open_sessions(session, owner_ctx.actor.actor_id, tenant.id) == []
        assert broker.get_active(owner_ctx.actor.actor_id) is None
        role, event, tenant_id, _ = recorder.calls[-1]
        assert event.summary_key == 'audit.impersonation.ended'
        assert tenant_id == tenant.id

    def test_exit_without_impersonation_is_noop(self, session, owner_ctx, recorder):
        ImpersonationBroker(session, 30, record=recorder).exit(owner_ctx)
        assert recorder.calls == []

    def test_sessions_for_other_tenants_survive(self, session, make_tenant, owner_ctx, recorder):
        first_tenant = make_tenant()
        second_tenant = make_tenant()
        broker = ImpersonationBroker(session, 30, record=recorder)
        broker.start(owner_ctx, first_tenant.id)
        other = broker.start(owner_ctx, second_tenant.id)

        broker.exit(owner_ctx)

        assert open_sessions(session, owner_ctx.actor.actor_id, second_tenant.id) == []
        remaining = open_sessions(session, owner_ctx.actor.actor_id, first_tenant.id)
        assert len(remaining) == 1
        assert other.tenant_id == second_tenant.id
