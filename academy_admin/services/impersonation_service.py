"""
Impersonation service for platform-owner support access.

Lets a platform owner temporarily operate inside a tenant's context. The
actor never changes: audit rows written while impersonating carry the
platform owner's id and role, only the tenant scope moves.

Sessions are time-boxed, never deleted, and ended by revocation or expiry.
Starting is idempotent so a caller whose follow-up step failed can simply
retry without issuing a second session.
"""
import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from academy_admin.context import ImpersonationSnapshot
from academy_admin.database import new_id, utcnow
from academy_admin.exceptions import ImpersonationError, TenantNotFoundError
from academy_admin.models import ImpersonationSession, PlatformAuditAction, PlatformAuditLog, Tenant
from academy_admin.services import audit_service

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MINUTES = 30


def snapshot(impersonation_session: ImpersonationSession) -> ImpersonationSnapshot:
    return ImpersonationSnapshot(
        session_id=impersonation_session.id,
        tenant_id=impersonation_session.tenant_id,
        expires_at=impersonation_session.expires_at,
    )


class ImpersonationBroker:
    """Issue, look up and revoke impersonation sessions."""

    def __init__(self, db_session, window_minutes: int = DEFAULT_WINDOW_MINUTES, record=None, clock=utcnow):
        self.db_session = db_session
        self.window = timedelta(minutes=window_minutes)
        self._record = record or audit_service.record
        self._clock = clock

    def start(self, ctx, tenant_id: str) -> ImpersonationSession:
        """
        Start (or resume) impersonating a tenant.

        Returns the active session for this actor and tenant if one exists,
        otherwise creates one expiring after the configured window. On
        return ``ctx`` routes tenant-scoped work through ``tenant_id``.

        Raises:
            ImpersonationError: actor is not a platform owner, or the write failed
            TenantNotFoundError: tenant does not exist
        """
        if not ctx.is_platform_owner:
            raise ImpersonationError("Only platform owners can impersonate tenants")

        tenant = self.db_session.query(Tenant).filter_by(id=tenant_id).first()
        if not tenant:
            raise TenantNotFoundError(f"Tenant {tenant_id} not found")

        actor_id = ctx.actor.actor_id
        now = self._clock()
        existing = self.get_active(actor_id, now, tenant_id=tenant_id)
        if existing is not None:
            logger.info(f"Resuming impersonation session {existing.id} of {actor_id} on tenant {tenant_id}")
            ctx.impersonation = snapshot(existing)
            return existing

        impersonation_session = ImpersonationSession(
            id=new_id(),
            admin_actor_id=actor_id,
            tenant_id=tenant_id,
            created_at=now,
            expires_at=now + self.window,
            revoked=False,
        )
        self.db_session.add(impersonation_session)
        self.db_session.add(PlatformAuditLog.log_action(
            actor_id=actor_id,
            action=PlatformAuditAction.IMPERSONATE_TENANT,
            tenant_id=tenant_id,
            details={
                'tenant_name': tenant.name,
                'session_id': impersonation_session.id,
                'expires_at': impersonation_session.expires_at.isoformat(),
            },
            ip_address=ctx.client_ip,
        ))
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to start impersonation of tenant {tenant_id}: {e}")
            raise ImpersonationError("Could not start support session", {'tenant_id': tenant_id}) from e

        ctx.impersonation = snapshot(impersonation_session)
        self._record(
            ctx.actor.role,
            audit_service.impersonation_event(tenant_id, impersonation_session.id, started=True),
            ctx,
        )
        logger.info(f"Impersonation started: {actor_id} -> tenant {tenant_id} until {impersonation_session.expires_at}")
        return impersonation_session

    def exit(self, ctx) -> None:
        """
        Revoke every unrevoked session of the actor for the impersonated tenant.

        No-op when ``ctx`` is not impersonating.
        """
        if not ctx.is_impersonating:
            return

        actor_id = ctx.actor.actor_id
        tenant_id = ctx.impersonation.tenant_id
        session_id = ctx.impersonation.session_id
        now = self._clock()

        open_sessions = self.db_session.query(ImpersonationSession).filter(
            ImpersonationSession.admin_actor_id == actor_id,
            ImpersonationSession.tenant_id == tenant_id,
            ImpersonationSession.revoked.is_(False),
        ).all()
        for impersonation_session in open_sessions:
            impersonation_session.revoked = True
            impersonation_session.revoked_at = now

        self.db_session.add(PlatformAuditLog.log_action(
            actor_id=actor_id,
            action=PlatformAuditAction.EXIT_IMPERSONATION,
            tenant_id=tenant_id,
            details={'session_id': session_id, 'revoked': len(open_sessions)},
            ip_address=ctx.client_ip,
        ))
        try:
            self.db_session.commit()
        except SQLAlchemyError as e:
            self.db_session.rollback()
            logger.error(f"Failed to end impersonation of tenant {tenant_id}: {e}")
            raise ImpersonationError("Could not end support session", {'session_id': session_id}) from e

        # Recorded while ctx still points at the tenant that was touched
        self._record(ctx.actor.role, audit_service.impersonation_event(tenant_id, session_id, started=False), ctx)
        ctx.impersonation = None
        logger.info(f"Impersonation ended: {actor_id} left tenant {tenant_id}")

    def get_active(
        self,
        actor_id: str,
        now=None,
        session_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> Optional[ImpersonationSession]:
        """
        Active session for an actor.

        With ``session_id`` only that session counts: an expired or revoked
        pin returns None rather than another tenant's session. Without it,
        the most recently created active session is returned.
        """
        now = now or self._clock()
        query = self.db_session.query(ImpersonationSession).filter(
            ImpersonationSession.admin_actor_id == actor_id,
            ImpersonationSession.revoked.is_(False),
            ImpersonationSession.expires_at > now,
        )
        if tenant_id:
            query = query.filter(ImpersonationSession.tenant_id == tenant_id)
        if session_id:
            return query.filter(ImpersonationSession.id == session_id).first()
        return query.order_by(ImpersonationSession.created_at.desc()).first()
