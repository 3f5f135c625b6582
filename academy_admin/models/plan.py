"""
Plan, Feature and PlanFeature models for plan-based entitlements.

Plans are tiers with numeric limits; features are platform-wide capability
keys; PlanFeature rows switch a feature on or off for a plan. A missing
PlanFeature row means the feature is disabled for that plan.
"""
from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from academy_admin.database import Base, new_id, utcnow


class Plan(Base):
    """
    Subscription tier definition.

    Relationship: One-to-Many with PlanFeature, One-to-Many with Subscription
    """
    __tablename__ = 'plans'

    id = Column(String(36), primary_key=True, default=new_id)

    # Plan Information
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(100), nullable=False)

    # Limits
    max_students = Column(Integer, nullable=True)
    max_branches = Column(Integer, nullable=True)
    max_staff = Column(Integer, nullable=True)

    # Display price
    price_monthly = Column(Numeric(10, 2), nullable=False, default=0)

    # Status
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    features = relationship('PlanFeature', back_populates='plan', cascade='all, delete-orphan')
    subscriptions = relationship('Subscription', back_populates='plan')

    def __repr__(self):
        return f'<Plan id={self.id} code={self.code}>'

    @property
    def limits(self):
        """Numeric limits keyed by name; None means unlimited."""
        return {
            'max_students': self.max_students,
            'max_branches': self.max_branches,
            'max_staff': self.max_staff,
        }

    @property
    def enabled_feature_keys(self):
        """Keys of features switched on for this plan."""
        return {pf.feature_key for pf in self.features if pf.enabled}


class Feature(Base):
    """Named platform capability, e.g. 'students' or 'multi_branch'."""
    __tablename__ = 'features'

    key = Column(String(100), primary_key=True)
    label = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False, default='general')
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Feature key={self.key}>'


class PlanFeature(Base):
    """
    Junction of Plan x Feature with an enabled flag.

    Relationship: Many-to-One with Plan
    """
    __tablename__ = 'plan_features'

    id = Column(String(36), primary_key=True, default=new_id)
    plan_id = Column(String(36), ForeignKey('plans.id', ondelete='CASCADE'), nullable=False)
    feature_key = Column(String(100), ForeignKey('features.key', ondelete='CASCADE'), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    # Relationships
    plan = relationship('Plan', back_populates='features')

    __table_args__ = (
        UniqueConstraint('plan_id', 'feature_key', name='uq_plan_feature'),
    )

    def __repr__(self):
        return f'<PlanFeature plan_id={self.plan_id} key={self.feature_key} enabled={self.enabled}>'
