"""
Subscription model for tenant plan terms.
"""
import enum
from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, CheckConstraint, JSON
from sqlalchemy.orm import relationship
from academy_admin.database import Base, new_id, utcnow


class SubscriptionStatus(enum.Enum):
    """Stored subscription states."""
    ACTIVE = 'active'
    EXPIRED = 'expired'


class Subscription(Base):
    """
    Tenant subscription term with renewal date and grace window.

    Relationship: Many-to-One with Tenant. Only the most recently created
    row for a tenant is considered current; rows are never merged across plans.
    """
    __tablename__ = 'subscriptions'

    id = Column(String(36), primary_key=True, default=new_id)
    tenant_id = Column(String(36), ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, index=True)

    # Plan and Status
    plan_code = Column(String(50), ForeignKey('plans.code'), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)

    # Term
    starts_at = Column(Date, nullable=False)
    renews_at = Column(Date, nullable=False)
    grace_days = Column(Integer, nullable=False, default=7)

    # Per-tenant feature overrides: {feature_key: bool}
    module_overrides = Column(JSON, nullable=False, default=dict)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relationships
    tenant = relationship('Tenant', back_populates='subscriptions')
    plan = relationship('Plan', back_populates='subscriptions')

    # Table constraints
    __table_args__ = (
        CheckConstraint("status IN ('active', 'expired')", name='check_subscription_status'),
        CheckConstraint("grace_days >= 0", name='check_grace_days_non_negative'),
    )

    def __repr__(self):
        return f'<Subscription tenant_id={self.tenant_id} plan={self.plan_code} status={self.status}>'

    @property
    def is_expired(self):
        """Check if the subscription was explicitly marked expired."""
        return self.status == SubscriptionStatus.EXPIRED.value
