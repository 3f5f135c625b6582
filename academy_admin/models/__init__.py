"""Models package - exports all SQLAlchemy models."""
# Tenancy
from academy_admin.models.tenant import Tenant, TenantStatus
from academy_admin.models.subscription import Subscription, SubscriptionStatus
from academy_admin.models.plan import Plan, Feature, PlanFeature

# Actors and support access
from academy_admin.models.profile import Profile, PLATFORM_ROLES
from academy_admin.models.impersonation_session import ImpersonationSession
from academy_admin.models.platform_settings import PlatformSettings

# Audit
from academy_admin.models.audit_log import AuditLogEntry, AuditAction, AuditEntityType
from academy_admin.models.platform_audit import PlatformAuditLog, PlatformAuditAction

__all__ = [
    'Tenant', 'TenantStatus', 'Subscription', 'SubscriptionStatus',
    'Plan', 'Feature', 'PlanFeature',
    'Profile', 'PLATFORM_ROLES', 'ImpersonationSession', 'PlatformSettings',
    'AuditLogEntry', 'AuditAction', 'AuditEntityType',
    'PlatformAuditLog', 'PlatformAuditAction',
]
