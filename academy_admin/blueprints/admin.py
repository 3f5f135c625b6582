"""
Admin Blueprint - platform-owner backoffice API.

Routes:
- /admin/tenants - Tenant list / provisioning
- /admin/tenants/<id> - Tenant detail
- /admin/tenants/<id>/status - Activate, trial or suspend
- /admin/tenants/<id>/subscription - Plan, renewal and grace edits
- /admin/tenants/<id>/impersonate - Enter support mode
- /admin/impersonation/exit - Leave support mode
- /admin/plans - Plans and their features
- /admin/plans/<id>/features/<key>/toggle - Flip a plan feature
- /admin/platform-audit - Platform audit trail
- /admin/audit-logs - Security audit log
"""

from flask import Blueprint, request, session, jsonify, Response, current_app, g
from typing import Tuple, Union
import logging

from academy_admin.blueprints.metrics import impersonation_sessions_started_total
from academy_admin.database import get_session
from academy_admin.decorators.permissions import platform_owner_required
from academy_admin.exceptions import ValidationError
from academy_admin.forms.admin_forms import SubscriptionUpdateForm, TenantCreateForm, TenantStatusForm
from academy_admin.middleware import IMPERSONATION_KEY, bootstrap_session, get_broker
from academy_admin.models import Feature, ImpersonationSession, Plan, PlatformAuditLog
from academy_admin.services import tenant_admin_service
from academy_admin.services.audit_service import list_audit_logs
from academy_admin.services.entitlements import toggle_plan_feature
from academy_admin.services.identity_service import get_identity_client

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _validated(form):
    if not form.validate():
        raise ValidationError('Invalid input', form.errors)
    return form


def _page_args() -> Tuple[int, int]:
    limit = min(request.args.get('limit', 100, type=int), 500)
    offset = max(request.args.get('offset', 0, type=int), 0)
    return limit, offset


@admin_bp.route('/tenants')
@platform_owner_required
def list_tenants() -> Response:
    return jsonify({'tenants': tenant_admin_service.list_tenants(get_session())})


@admin_bp.route('/tenants', methods=['POST'])
@platform_owner_required
def create_tenant() -> Tuple[Response, int]:
    """Provision a tenant, its first subscription and optionally its admin account."""
    form = _validated(TenantCreateForm())
    identity_client = None
    if form.admin_email.data and current_app.config.get('IDENTITY_SERVICE_URL'):
        identity_client = get_identity_client(current_app.config)

    tenant = tenant_admin_service.provision_tenant(
        get_session(),
        g.access,
        name=form.name.data,
        subdomain=form.subdomain.data,
        plan_code=form.plan_code.data,
        status=form.status.data,
        starts_at=form.starts_at.data,
        renews_at=form.renews_at.data,
        grace_days=form.grace_days.data if form.grace_days.data is not None else 7,
        admin_email=form.admin_email.data or None,
        admin_password=form.admin_password.data or None,
        admin_full_name=form.admin_full_name.data or None,
        identity_client=identity_client,
    )
    return jsonify({'status': 'ok', 'tenant_id': tenant.id, 'subdomain': tenant.subdomain}), 201


@admin_bp.route('/tenants/<tenant_id>')
@platform_owner_required
def tenant_detail(tenant_id: str) -> Response:
    db_session = get_session()
    tenant = tenant_admin_service.get_tenant_or_404(db_session, tenant_id)
    subscription = tenant_admin_service.current_subscription(db_session, tenant.id)
    sessions = (
        db_session.query(ImpersonationSession)
        .filter_by(tenant_id=tenant.id)
        .order_by(ImpersonationSession.created_at.desc())
        .limit(20)
        .all()
    )
    return jsonify({
        'tenant': {
            'id': tenant.id,
            'name': tenant.name,
            'subdomain': tenant.subdomain,
            'status': tenant.status,
        },
        'subscription': tenant_admin_service.subscription_snapshot(subscription) or None,
        'impersonation_sessions': [
            {
                'id': s.id,
                'admin_actor_id': s.admin_actor_id,
                'created_at': s.created_at.isoformat(),
                'expires_at': s.expires_at.isoformat(),
                'revoked': s.revoked,
                'active': s.is_active(),
            }
            for s in sessions
        ],
    })


@admin_bp.route('/tenants/<tenant_id>/status', methods=['POST'])
@platform_owner_required
def update_tenant_status(tenant_id: str) -> Response:
    form = _validated(TenantStatusForm())
    tenant = tenant_admin_service.update_tenant_status(get_session(), g.access, tenant_id, form.status.data)
    return jsonify({'status': 'ok', 'tenant_id': tenant.id, 'tenant_status': tenant.status})


@admin_bp.route('/tenants/<tenant_id>/subscription', methods=['POST'])
@platform_owner_required
def update_subscription(tenant_id: str) -> Response:
    """Edit the current subscription, or extend it by ``extend_days``."""
    form = _validated(SubscriptionUpdateForm())
    db_session = get_session()
    if form.extend_days.data:
        subscription = tenant_admin_service.extend_renewal(db_session, g.access, tenant_id, form.extend_days.data)
    else:
        subscription = tenant_admin_service.update_subscription(
            db_session,
            g.access,
            tenant_id,
            plan_code=form.plan_code.data or None,
            renews_at=form.renews_at.data,
            grace_days=form.grace_days.data,
            status=form.status.data or None,
        )
    return jsonify({'status': 'ok', 'subscription': tenant_admin_service.subscription_snapshot(subscription)})


@admin_bp.route('/tenants/<tenant_id>/impersonate', methods=['POST'])
@platform_owner_required
def impersonate_tenant(tenant_id: str) -> Union[Response, Tuple[Response, int]]:
    """
    Enter support mode for a tenant.

    Safe to retry: an active session for the same tenant is reused. If the
    session exists but the tenant context cannot be loaded, the answer is an
    error carrying the session id and the caller retries.
    """
    ctx = g.access
    impersonation = get_broker().start(ctx, tenant_id)
    session[IMPERSONATION_KEY] = impersonation.id
    impersonation_sessions_started_total.inc()

    config = bootstrap_session(ctx)
    if config is None:
        logger.error(f"Impersonation session {impersonation.id} created but tenant {tenant_id} did not resolve")
        return jsonify({
            'status': 'error',
            'message': 'Support session started but the academy could not be loaded. Retry.',
            'session_id': impersonation.id,
            'retryable': True,
        }), 503

    return jsonify({
        'status': 'ok',
        'impersonation': ctx.impersonation.to_dict(),
        'tenant': config.to_dict(),
    })


@admin_bp.route('/impersonation/exit', methods=['POST'])
@platform_owner_required
def exit_impersonation() -> Response:
    ctx = g.access
    get_broker().exit(ctx)
    session.pop(IMPERSONATION_KEY, None)
    bootstrap_session(ctx)
    return jsonify({'status': 'ok', 'impersonating': False})


@admin_bp.route('/plans')
@platform_owner_required
def list_plans() -> Response:
    db_session = get_session()
    features = db_session.query(Feature).order_by(Feature.category, Feature.key).all()
    plans = db_session.query(Plan).order_by(Plan.price_monthly).all()
    return jsonify({
        'features': [{'key': f.key, 'label': f.label, 'category': f.category} for f in features],
        'plans': [
            {
                'id': plan.id,
                'code': plan.code,
                'name': plan.name,
                'limits': plan.limits,
                'price_monthly': str(plan.price_monthly),
                'is_active': plan.is_active,
                'features': sorted(plan.enabled_feature_keys),
            }
            for plan in plans
        ],
    })


@admin_bp.route('/plans/<plan_id>/features/<feature_key>/toggle', methods=['POST'])
@platform_owner_required
def toggle_feature(plan_id: str, feature_key: str) -> Response:
    plan_feature = toggle_plan_feature(get_session(), g.access, plan_id, feature_key)
    return jsonify({'status': 'ok', 'feature_key': feature_key, 'enabled': plan_feature.enabled})


@admin_bp.route('/platform-audit')
@platform_owner_required
def platform_audit() -> Response:
    limit, offset = _page_args()
    query = get_session().query(PlatformAuditLog)
    if request.args.get('tenant_id'):
        query = query.filter(PlatformAuditLog.tenant_id == request.args['tenant_id'])
    if request.args.get('action'):
        query = query.filter(PlatformAuditLog.action == request.args['action'])
    rows = query.order_by(PlatformAuditLog.created_at.desc()).offset(offset).limit(limit).all()
    return jsonify({'entries': [row.to_dict() for row in rows]})


@admin_bp.route('/audit-logs')
@platform_owner_required
def audit_logs() -> Response:
    limit, offset = _page_args()
    rows = list_audit_logs(
        get_session(),
        tenant_id=request.args.get('tenant_id'),
        actor_id=request.args.get('actor_id'),
        action=request.args.get('action'),
        entity_type=request.args.get('entity_type'),
        limit=limit,
        offset=offset,
    )
    return jsonify({'entries': [row.to_dict() for row in rows]})
