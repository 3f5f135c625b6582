"""Main blueprint: health check, session state, entitlement checks and branch capacity."""
from flask import Blueprint, g, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from academy_admin.database import get_session
from academy_admin.decorators.permissions import require_feature, require_login
from academy_admin.middleware import get_access_gate
from academy_admin.models import Profile
from academy_admin.services.entitlements import check_limit, has_feature

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        row = get_session().execute(text("SELECT 1 as health_check")).fetchone()
        if row and row[0] == 1:
            return jsonify({'status': 'healthy', 'database': 'connected'}), 200
        return jsonify({'status': 'unhealthy', 'database': 'error', 'message': 'Unexpected query result'}), 500
    except SQLAlchemyError as e:
        return jsonify({'status': 'unhealthy', 'database': 'disconnected', 'message': str(e)}), 500


@main_bp.route('/session')
@require_login
def session_info():
    """
    Everything a UI shell needs to render or block: actor, tenant config,
    impersonation state and the access decision.
    """
    ctx = g.access
    config = ctx.tenant_config
    return jsonify({
        'actor': ctx.actor.to_dict(),
        'tenant': config.to_dict() if config is not None else None,
        'effective_tenant_id': ctx.effective_tenant_id,
        'impersonation': ctx.impersonation.to_dict() if ctx.impersonation else None,
        'access': get_access_gate().decide(ctx).to_dict(),
    })


@main_bp.route('/features/<feature_key>')
@require_login
def feature_check(feature_key: str):
    """Whether the session's tenant is entitled to a feature."""
    return jsonify({
        'feature_key': feature_key,
        'enabled': has_feature(g.access.tenant_config, feature_key),
    })


@main_bp.route('/dashboard')
@require_login
def dashboard():
    """Landing page for tenant actors; only reachable past the access gate."""
    ctx = g.access
    config = ctx.tenant_config
    decision = g.get('access_decision')
    return jsonify({
        'status': 'ok',
        'tenant_name': config.name if config is not None else None,
        'renewal_status': decision.renewal_status.to_dict() if decision and decision.renewal_status else None,
    })


@main_bp.route('/branches/capacity')
@require_feature('multi_branch')
def branch_capacity():
    """Branches in use against the plan's max_branches."""
    ctx = g.access
    query = get_session().query(Profile.branch_id).filter(Profile.branch_id.isnot(None))
    if ctx.effective_tenant_id:
        query = query.filter(Profile.tenant_id == ctx.effective_tenant_id)
    in_use = query.distinct().count()
    allowed, limit = check_limit(ctx.tenant_config, 'max_branches', in_use)
    return jsonify({
        'branches_in_use': in_use,
        'max_branches': limit,
        'can_add_branch': allowed,
    })
