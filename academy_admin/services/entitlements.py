"""
Feature entitlement checks.

Entitlements are read from the TenantConfig resolved at session bootstrap;
they are not recomputed per check. Toggling a plan feature therefore only
reaches a session after its config is re-resolved.
"""
import logging
from typing import Optional

from academy_admin.exceptions import NotFoundError, UnauthorizedError
from academy_admin.models import Feature, Plan, PlanFeature, PlatformAuditAction, PlatformAuditLog
from academy_admin.services.tenant_resolver import is_single_tenant

logger = logging.getLogger(__name__)


# Default catalog per plan, used by the seed command.
PLAN_FEATURES = {
    'single': ['students', 'attendance', 'exams', 'inactive_alerts', 'whatsapp_templates', 'settings'],
    'multi': ['students', 'attendance', 'exams', 'inactive_alerts', 'whatsapp_templates', 'settings',
              'multi_branch', 'expenses', 'expense_analytics', 'email_digests'],
    'enterprise': ['students', 'attendance', 'exams', 'inactive_alerts', 'whatsapp_templates', 'settings',
                   'multi_branch', 'expenses', 'expense_analytics', 'email_digests', 'security_suite'],
}


def has_feature(tenant_config, feature_key: str) -> bool:
    """
    Check whether the tenant is entitled to a feature.

    Always True in single-tenant mode; False when no config was resolved.
    """
    if tenant_config is None:
        return False
    if is_single_tenant(tenant_config):
        return True
    return feature_key in tenant_config.features


def get_limit(tenant_config, limit_key: str, default: Optional[int] = None) -> Optional[int]:
    """Plan limit for the tenant; None means unlimited."""
    if tenant_config is None or is_single_tenant(tenant_config):
        return default
    return tenant_config.limits.get(limit_key, default)


def check_limit(tenant_config, limit_key: str, current_count: int) -> tuple:
    """
    Check whether one more item fits under a plan limit.

    Returns:
        tuple: (allowed: bool, limit: int or None)
    """
    limit = get_limit(tenant_config, limit_key)
    if limit is None:
        return True, None
    return current_count < limit, limit


def toggle_plan_feature(db_session, ctx, plan_id: str, feature_key: str) -> PlanFeature:
    """
    Flip a feature for a plan; a missing row is created enabled.

    Platform owners only. Sessions that already resolved their config keep
    the old entitlements until their next bootstrap.
    """
    if not ctx.is_platform_owner:
        raise UnauthorizedError("Only platform owners can change plan features")

    plan = db_session.query(Plan).filter_by(id=plan_id).first()
    if not plan:
        raise NotFoundError(f"Plan {plan_id} not found")
    if not db_session.query(Feature).filter_by(key=feature_key).first():
        raise NotFoundError(f"Feature '{feature_key}' not found")

    plan_feature = db_session.query(PlanFeature).filter_by(plan_id=plan_id, feature_key=feature_key).first()
    if plan_feature is None:
        plan_feature = PlanFeature(plan_id=plan_id, feature_key=feature_key, enabled=True)
        db_session.add(plan_feature)
    else:
        plan_feature.enabled = not plan_feature.enabled

    db_session.add(PlatformAuditLog.log_action(
        actor_id=ctx.actor.actor_id,
        action=PlatformAuditAction.TOGGLE_PLAN_FEATURE,
        details={'plan_code': plan.code, 'feature_key': feature_key, 'enabled': plan_feature.enabled},
        ip_address=ctx.client_ip,
    ))
    db_session.commit()

    logger.info(f"Plan {plan.code}: feature {feature_key} -> {plan_feature.enabled}")
    return plan_feature
