"""
Audit log model for security-relevant events.

Rows are append-only: the mapper refuses to flush an UPDATE or DELETE
against an existing entry.
"""
import enum
from sqlalchemy import Column, String, Boolean, DateTime, JSON, event
from academy_admin.database import Base, new_id, utcnow


class AuditAction(enum.Enum):
    """Enumeration of auditable actions."""
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    PROMOTE = 'promote'
    CONFIRM = 'confirm'
    RESET = 'reset'
    LOGIN = 'login'
    LOGOUT = 'logout'
    FAILED_LOGIN = 'failed_login'


class AuditEntityType(enum.Enum):
    """Enumeration of audited entity kinds."""
    STUDENT = 'student'
    ATTENDANCE = 'attendance'
    EXAM = 'exam'
    EXPENSE = 'expense'
    SETTINGS = 'settings'
    AUTH = 'auth'
    BRANCH = 'branch'
    PACKAGE = 'package'
    INVOICE = 'invoice'
    STOCK = 'stock'


class AuditLogEntry(Base):
    """
    Audit log entry.

    actor_id/actor_role always name the real actor, also while a platform
    owner is impersonating; tenant_id is the tenant whose data was touched.
    """
    __tablename__ = 'audit_logs'

    id = Column(String(36), primary_key=True, default=new_id)

    # Who
    actor_id = Column(String(36), nullable=True, index=True)
    actor_role = Column(String(50), nullable=False)
    tenant_id = Column(String(36), nullable=True, index=True)
    branch_id = Column(String(36), nullable=True)

    # What
    action = Column(String(20), nullable=False, index=True)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(64), nullable=True)
    summary_key = Column(String(200), nullable=True)
    summary_params = Column(JSON, nullable=True)
    before_data = Column(JSON, nullable=True)
    after_data = Column(JSON, nullable=True)
    event_metadata = Column('metadata', JSON, nullable=True)

    # Client fingerprint
    ip_address = Column(String(45), nullable=True)
    ip_masked = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    device_name = Column(String(50), nullable=True)
    os_name = Column(String(50), nullable=True)
    browser_name = Column(String(50), nullable=True)
    is_mobile = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<AuditLogEntry {self.action} {self.entity_type} by {self.actor_role}:{self.actor_id}>"

    def to_dict(self):
        return {
            'id': self.id,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role,
            'tenant_id': self.tenant_id,
            'branch_id': self.branch_id,
            'action': self.action,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'summary_key': self.summary_key,
            'summary_params': self.summary_params,
            'before_data': self.before_data,
            'after_data': self.after_data,
            'metadata': self.event_metadata,
            'ip_masked': self.ip_masked,
            'device_name': self.device_name,
            'os_name': self.os_name,
            'browser_name': self.browser_name,
            'is_mobile': self.is_mobile,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@event.listens_for(AuditLogEntry, 'before_update')
def _reject_update(mapper, connection, target):
    raise ValueError(f"Audit log entries are write-once (id={target.id})")


@event.listens_for(AuditLogEntry, 'before_delete')
def _reject_delete(mapper, connection, target):
    raise ValueError(f"Audit log entries cannot be deleted (id={target.id})")
