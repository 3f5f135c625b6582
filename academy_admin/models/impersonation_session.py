"""ImpersonationSession model - time-boxed support access to a tenant."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from academy_admin.database import Base, new_id, utcnow


class ImpersonationSession(Base):
    """
    Grant letting a platform owner operate inside a tenant's context.

    Rows are never deleted: a session ends by being revoked or by lapsing
    past expires_at.
    """

    __tablename__ = 'impersonation_sessions'

    id = Column(String(36), primary_key=True, default=new_id)
    admin_actor_id = Column(String(36), ForeignKey('profiles.id'), nullable=False, index=True)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False)
    revoked = Column(Boolean, nullable=False, default=False)
    revoked_at = Column(DateTime, nullable=True)

    # Relationships
    admin_actor = relationship('Profile', foreign_keys=[admin_actor_id])
    tenant = relationship('Tenant', foreign_keys=[tenant_id])

    def __repr__(self):
        return (
            f"<ImpersonationSession(id={self.id}, admin={self.admin_actor_id}, "
            f"tenant={self.tenant_id}, revoked={self.revoked})>"
        )

    def is_active(self, now=None):
        """Not revoked and expires_at still in the future."""
        now = now or utcnow()
        return not self.revoked and now < self.expires_at
