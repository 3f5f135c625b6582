"""
Unit tests for the per-request access context.
"""

import pytest
from datetime import datetime

from academy_admin.context import AccessContext, ActorIdentity, ImpersonationSnapshot
from academy_admin.exceptions import UnauthorizedError
from academy_admin.services.alert_poller import FixedIntervalPoller


class TestAccessContext:

    def test_close_stops_registered_pollers(self):
        ctx = AccessContext()
        poller = ctx.register_poller(FixedIntervalPoller(60, lambda: None).start())
        assert poller.is_running

        ctx.close()

        assert not poller.is_running

    def test_close_twice_is_harmless(self):
        ctx = AccessContext()
        ctx.register_poller(FixedIntervalPoller(60, lambda: None).start())

        ctx.close()
        ctx.close()

    def test_effective_tenant_for_staff(self):
        ctx = AccessContext(actor=ActorIdentity('staff-1', 'tenant_admin', tenant_id='tenant-1'))

        assert ctx.effective_tenant_id == 'tenant-1'
        assert not ctx.is_platform_owner

    def test_owner_has_no_tenant_until_impersonating(self):
        ctx = AccessContext(actor=ActorIdentity('owner-1', 'platform_owner'))
        assert ctx.effective_tenant_id is None
        with pytest.raises(UnauthorizedError):
            ctx.require_tenant_id()

        ctx.impersonation = ImpersonationSnapshot('imp-1', 'tenant-42', datetime(2030, 1, 1))

        assert ctx.is_impersonating
        assert ctx.require_tenant_id() == 'tenant-42'

    def test_staff_cannot_impersonate(self):
        ctx = AccessContext(
            actor=ActorIdentity('staff-1', 'tenant_admin', tenant_id='tenant-1'),
            impersonation=ImpersonationSnapshot('imp-1', 'tenant-42', datetime(2030, 1, 1)),
        )
        assert not ctx.is_impersonating
        assert ctx.effective_tenant_id == 'tenant-1'
