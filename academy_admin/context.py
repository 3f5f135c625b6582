"""
Explicit per-request access context.

Everything the access-control services need to know about "who is asking,
for which tenant" travels in an AccessContext instead of ambient globals.
The Flask layer builds one per request and stores it on ``g.access``.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from academy_admin.exceptions import UnauthorizedError
from academy_admin.models.profile import PLATFORM_ROLES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorIdentity:
    """The authenticated actor. Never replaced during impersonation."""
    actor_id: str
    role: str
    email: Optional[str] = None
    tenant_id: Optional[str] = None
    branch_id: Optional[str] = None

    def to_dict(self):
        return {
            'actor_id': self.actor_id,
            'role': self.role,
            'email': self.email,
            'tenant_id': self.tenant_id,
            'branch_id': self.branch_id,
        }


@dataclass(frozen=True)
class ImpersonationSnapshot:
    """Active impersonation session as seen by the current request."""
    session_id: str
    tenant_id: str
    expires_at: datetime

    def to_dict(self):
        return {
            'session_id': self.session_id,
            'tenant_id': self.tenant_id,
            'expires_at': self.expires_at.isoformat(),
        }


@dataclass
class AccessContext:
    actor: Optional[ActorIdentity] = None
    tenant_config: object = None
    impersonation: Optional[ImpersonationSnapshot] = None
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    bootstrap_id: Optional[str] = None
    _pollers: List = field(default_factory=list, repr=False)

    @property
    def is_authenticated(self) -> bool:
        return self.actor is not None

    @property
    def is_platform_owner(self) -> bool:
        return self.actor is not None and self.actor.role in PLATFORM_ROLES

    @property
    def is_impersonating(self) -> bool:
        return self.is_platform_owner and self.impersonation is not None

    @property
    def effective_tenant_id(self) -> Optional[str]:
        """Tenant that tenant-scoped reads and writes must resolve against."""
        if self.is_impersonating:
            return self.impersonation.tenant_id
        if self.is_platform_owner:
            return None
        if self.tenant_config is not None and getattr(self.tenant_config, 'tenant_id', None):
            return self.tenant_config.tenant_id
        return self.actor.tenant_id if self.actor else None

    def require_tenant_id(self) -> str:
        """Effective tenant id, or UnauthorizedError when there is none."""
        tenant_id = self.effective_tenant_id
        if not tenant_id:
            raise UnauthorizedError("No tenant selected for this operation")
        return tenant_id

    def register_poller(self, poller):
        """Tie a background poller's lifetime to this context."""
        self._pollers.append(poller)
        return poller

    def close(self):
        """Stop every poller registered on this context."""
        pollers, self._pollers = self._pollers, []
        for poller in pollers:
            try:
                poller.stop()
            except RuntimeError as e:
                logger.warning(f"Failed to stop poller {poller!r}: {e}")
