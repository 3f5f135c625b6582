"""Tenant model - represents each academy using the platform."""
import enum
from sqlalchemy import Column, String, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from academy_admin.database import Base, new_id, utcnow


class TenantStatus(enum.Enum):
    """Lifecycle states of a tenant."""
    ACTIVE = 'active'
    TRIAL = 'trial'
    SUSPENDED = 'suspended'


class Tenant(Base):
    """Tenant model - one customer academy, the unit of data isolation."""

    __tablename__ = 'tenants'

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(200), nullable=False)  # Display name
    subdomain = Column(String(63), nullable=False, unique=True)  # Routing key
    status = Column(String(20), nullable=False, default=TenantStatus.ACTIVE.value)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    subscriptions = relationship(
        'Subscription',
        back_populates='tenant',
        order_by='Subscription.created_at.desc()',
    )

    __table_args__ = (
        CheckConstraint("status IN ('active', 'trial', 'suspended')", name='check_tenant_status'),
    )

    def __repr__(self):
        return f"<Tenant(id={self.id}, subdomain='{self.subdomain}', name='{self.name}')>"

    @property
    def is_suspended(self):
        """Check if tenant access is suspended."""
        return self.status == TenantStatus.SUSPENDED.value

    @property
    def current_subscription(self):
        """Most recently created subscription row, or None."""
        return self.subscriptions[0] if self.subscriptions else None
