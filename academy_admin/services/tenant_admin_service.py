"""
Platform-owner tenant administration.

Provisioning, status changes and subscription edits. Every operation is
restricted to platform owners, validates its input before writing anything,
and leaves a row in the platform audit trail.
"""
import logging
import re
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

from academy_admin.database import new_id
from academy_admin.exceptions import BusinessLogicError, TenantNotFoundError, UnauthorizedError, ValidationError
from academy_admin.models import (
    Plan, PlatformAuditAction, PlatformAuditLog, Profile, Subscription, Tenant, TenantStatus,
)
from academy_admin.services.audit_service import get_changed_fields
from academy_admin.services.subscription_service import as_date, renewal_status

logger = logging.getLogger(__name__)

SUBDOMAIN_RE = re.compile(r'^[a-z0-9-]+$')
SUBDOMAIN_MIN_LENGTH = 3
SUBDOMAIN_MAX_LENGTH = 63
DEFAULT_GRACE_DAYS = 7
DEFAULT_TERM_DAYS = 30
TENANT_ADMIN_ROLE = 'tenant_admin'

_TENANT_STATUSES = {s.value for s in TenantStatus}
_SUBSCRIPTION_STATUSES = {'active', 'expired'}


def _require_platform_owner(ctx):
    if not ctx.is_platform_owner:
        raise UnauthorizedError("Only platform owners can manage tenants")


def _audit(db_session, ctx, action, tenant_id, details):
    db_session.add(PlatformAuditLog.log_action(
        actor_id=ctx.actor.actor_id,
        action=action,
        tenant_id=tenant_id,
        details=details,
        ip_address=ctx.client_ip,
    ))


def validate_subdomain(db_session, subdomain: str) -> list:
    """Return error messages for a subdomain; empty when it is usable."""
    errors = []
    if not subdomain:
        return ['Subdomain is required']
    if not SUBDOMAIN_RE.match(subdomain):
        errors.append('Subdomain must contain only lowercase letters, numbers, and hyphens')
    if not SUBDOMAIN_MIN_LENGTH <= len(subdomain) <= SUBDOMAIN_MAX_LENGTH:
        errors.append(f'Subdomain must be {SUBDOMAIN_MIN_LENGTH}-{SUBDOMAIN_MAX_LENGTH} characters')
    if not errors and db_session.query(Tenant).filter_by(subdomain=subdomain).first():
        errors.append('Subdomain is already taken')
    return errors


def current_subscription(db_session, tenant_id: str) -> Optional[Subscription]:
    return (
        db_session.query(Subscription)
        .filter_by(tenant_id=tenant_id)
        .order_by(Subscription.created_at.desc())
        .first()
    )


def get_tenant_or_404(db_session, tenant_id: str) -> Tenant:
    tenant = db_session.query(Tenant).filter_by(id=tenant_id).first()
    if not tenant:
        raise TenantNotFoundError(f"Tenant {tenant_id} not found", {'tenant_id': tenant_id})
    return tenant


def provision_tenant(
    db_session,
    ctx,
    name: str,
    subdomain: str,
    plan_code: str,
    status: str = 'active',
    starts_at: Optional[date] = None,
    renews_at: Optional[date] = None,
    grace_days: int = DEFAULT_GRACE_DAYS,
    admin_email: Optional[str] = None,
    admin_password: Optional[str] = None,
    admin_full_name: Optional[str] = None,
    identity_client=None,
    today: Optional[date] = None,
) -> Tenant:
    """
    Create a tenant with its initial subscription and, optionally, its admin.

    Raises:
        ValidationError: input rejected; nothing was written
        IdentityServiceError: the identity provider refused the admin account
    """
    _require_platform_owner(ctx)
    today = as_date(today or date.today())
    subdomain = (subdomain or '').strip().lower()

    errors = {}
    if not (name or '').strip():
        errors['name'] = ['Name is required']
    subdomain_errors = validate_subdomain(db_session, subdomain)
    if subdomain_errors:
        errors['subdomain'] = subdomain_errors
    if not db_session.query(Plan).filter_by(code=plan_code).first():
        errors['plan_code'] = [f"Unknown plan '{plan_code}'"]
    if status not in _TENANT_STATUSES:
        errors['status'] = [f"Invalid status '{status}'"]
    if grace_days is None or grace_days < 0:
        errors['grace_days'] = ['Grace days must be zero or more']
    if admin_email and db_session.query(Profile).filter_by(email=admin_email).first():
        errors['admin_email'] = ['An account with this email already exists']
    if errors:
        raise ValidationError("Invalid tenant data", errors)

    starts_at = as_date(starts_at) or today
    renews_at = as_date(renews_at) or today + timedelta(days=DEFAULT_TERM_DAYS)

    tenant = Tenant(id=new_id(), name=name.strip(), subdomain=subdomain, status=status)
    db_session.add(tenant)
    db_session.add(Subscription(
        tenant_id=tenant.id,
        plan_code=plan_code,
        starts_at=starts_at,
        renews_at=renews_at,
        grace_days=grace_days,
        status='active',
        module_overrides={},
    ))

    try:
        if admin_email:
            profile_id = None
            if identity_client is not None:
                profile_id = identity_client.create_user(
                    admin_email, admin_password, full_name=admin_full_name,
                    role=TENANT_ADMIN_ROLE, tenant_id=tenant.id,
                )
            profile = Profile(
                id=profile_id or new_id(),
                email=admin_email,
                full_name=admin_full_name,
                role=TENANT_ADMIN_ROLE,
                tenant_id=tenant.id,
            )
            if admin_password:
                profile.set_password(admin_password)
            db_session.add(profile)

        _audit(db_session, ctx, PlatformAuditAction.CREATE_TENANT, tenant.id, {
            'tenant_name': tenant.name,
            'subdomain': subdomain,
            'plan': plan_code,
        })
        db_session.commit()
    except IntegrityError as e:
        db_session.rollback()
        raise ValidationError("Invalid tenant data", {'subdomain': ['Subdomain is already taken']}) from e
    except Exception:
        db_session.rollback()
        raise

    logger.info(f"Provisioned tenant {tenant.subdomain} ({tenant.id}) on plan {plan_code}")
    return tenant


def update_tenant_status(db_session, ctx, tenant_id: str, status: str) -> Tenant:
    _require_platform_owner(ctx)
    if status not in _TENANT_STATUSES:
        raise ValidationError("Invalid status", {'status': [f"Invalid status '{status}'"]})

    tenant = get_tenant_or_404(db_session, tenant_id)
    previous = tenant.status
    tenant.status = status
    _audit(db_session, ctx, PlatformAuditAction.UPDATE_TENANT_STATUS, tenant.id, {'from': previous, 'to': status})
    db_session.commit()

    logger.info(f"Tenant {tenant.subdomain} status {previous} -> {status}")
    return tenant


def subscription_snapshot(subscription):
    if subscription is None:
        return {}
    return {
        'plan_code': subscription.plan_code,
        'renews_at': subscription.renews_at.isoformat() if subscription.renews_at else None,
        'grace_days': subscription.grace_days,
        'status': subscription.status,
        'module_overrides': subscription.module_overrides or {},
    }


def update_subscription(
    db_session,
    ctx,
    tenant_id: str,
    plan_code: Optional[str] = None,
    renews_at: Optional[date] = None,
    grace_days: Optional[int] = None,
    status: Optional[str] = None,
    module_overrides: Optional[dict] = None,
    today: Optional[date] = None,
) -> Subscription:
    """
    Change the tenant's current subscription in place.

    A tenant without one gets a new subscription starting today. Only the
    fields passed are changed.
    """
    _require_platform_owner(ctx)
    tenant = get_tenant_or_404(db_session, tenant_id)

    errors = {}
    if plan_code is not None and not db_session.query(Plan).filter_by(code=plan_code).first():
        errors['plan_code'] = [f"Unknown plan '{plan_code}'"]
    if grace_days is not None and grace_days < 0:
        errors['grace_days'] = ['Grace days must be zero or more']
    if status is not None and status not in _SUBSCRIPTION_STATUSES:
        errors['status'] = [f"Invalid status '{status}'"]
    if module_overrides is not None and not all(isinstance(v, bool) for v in module_overrides.values()):
        errors['module_overrides'] = ['Overrides must map feature keys to true/false']

    subscription = current_subscription(db_session, tenant.id)
    if subscription is None:
        if plan_code is None or renews_at is None:
            errors.setdefault('plan_code', []).append('A new subscription needs a plan and a renewal date')
    if errors:
        raise ValidationError("Invalid subscription data", errors)

    before = subscription_snapshot(subscription)
    if subscription is None:
        subscription = Subscription(
            tenant_id=tenant.id,
            starts_at=as_date(today or date.today()),
            grace_days=DEFAULT_GRACE_DAYS,
            status='active',
            module_overrides={},
        )
        db_session.add(subscription)

    if plan_code is not None:
        subscription.plan_code = plan_code
    if renews_at is not None:
        subscription.renews_at = as_date(renews_at)
    if grace_days is not None:
        subscription.grace_days = grace_days
    if status is not None:
        subscription.status = status
    if module_overrides is not None:
        subscription.module_overrides = dict(module_overrides)

    after = subscription_snapshot(subscription)
    _audit(db_session, ctx, PlatformAuditAction.UPDATE_SUBSCRIPTION, tenant.id, {
        'changed': get_changed_fields(before, after) if before else sorted(after),
        'before': before,
        'after': after,
    })
    db_session.commit()

    logger.info(f"Subscription of tenant {tenant.subdomain} updated")
    return subscription


def extend_renewal(db_session, ctx, tenant_id: str, days: int) -> Subscription:
    """Push renews_at forward by ``days`` and reactivate the subscription."""
    if days is None or days <= 0:
        raise ValidationError("Invalid extension", {'days': ['Must be a positive number of days']})
    subscription = current_subscription(db_session, tenant_id)
    if subscription is None:
        get_tenant_or_404(db_session, tenant_id)
        raise BusinessLogicError("Tenant has no subscription to extend", payload={'tenant_id': tenant_id})
    return update_subscription(
        db_session, ctx, tenant_id,
        renews_at=as_date(subscription.renews_at) + timedelta(days=days),
        status='active',
    )


def list_tenants(db_session, today: Optional[date] = None) -> list:
    """Tenants with their current subscription and renewal badge, by name."""
    today = as_date(today or date.today())
    rows = []
    for tenant in db_session.query(Tenant).order_by(Tenant.name).all():
        subscription = current_subscription(db_session, tenant.id)
        status = renewal_status(subscription, today)
        rows.append({
            'id': tenant.id,
            'name': tenant.name,
            'subdomain': tenant.subdomain,
            'status': tenant.status,
            'subscription': subscription_snapshot(subscription) or None,
            'renewal_status': status.to_dict() if status else None,
            'created_at': tenant.created_at.isoformat() if tenant.created_at else None,
        })
    return rows
