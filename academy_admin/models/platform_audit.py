"""
Platform audit log model for tracking platform-owner operations.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from academy_admin.database import Base, new_id, utcnow


class PlatformAuditLog(Base):
    """
    Audit trail for operations performed across tenants.

    Tracks tenant provisioning, status changes, subscription edits,
    impersonation and plan feature toggles.
    """
    __tablename__ = 'platform_audit'

    id = Column(String(36), primary_key=True, default=new_id)

    # Who performed the action
    actor_id = Column(String(36), ForeignKey('profiles.id'), nullable=False, index=True)

    # What action was performed
    action = Column(String(100), nullable=False)

    # Target tenant (if applicable)
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=True, index=True)

    details = Column(JSON, nullable=True)
    ip_address = Column(String(45), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    # Relationships
    actor = relationship('Profile', foreign_keys=[actor_id])
    tenant = relationship('Tenant', foreign_keys=[tenant_id])

    def __repr__(self):
        return f'<PlatformAuditLog id={self.id} action={self.action} actor_id={self.actor_id}>'

    @staticmethod
    def log_action(actor_id, action, tenant_id=None, details=None, ip_address=None):
        """
        Build a platform audit row.

        Args:
            actor_id: Profile id of the platform owner performing the action
            action: One of PlatformAuditAction
            tenant_id: Optional tenant the action targets
            details: Optional dict with additional context
            ip_address: Optional client address

        Returns:
            PlatformAuditLog instance (not committed)
        """
        return PlatformAuditLog(
            actor_id=actor_id,
            action=action,
            tenant_id=tenant_id,
            details=details,
            ip_address=ip_address
        )

    def to_dict(self):
        return {
            'id': self.id,
            'actor_id': self.actor_id,
            'action': self.action,
            'tenant_id': self.tenant_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class PlatformAuditAction:
    """Constants for platform audit actions."""
    CREATE_TENANT = 'create_tenant'
    UPDATE_TENANT_STATUS = 'update_tenant_status'
    UPDATE_SUBSCRIPTION = 'update_subscription'
    IMPERSONATE_TENANT = 'impersonate_tenant'
    EXIT_IMPERSONATION = 'exit_impersonation'
    TOGGLE_PLAN_FEATURE = 'toggle_plan_feature'
