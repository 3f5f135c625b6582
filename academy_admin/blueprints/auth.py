"""
Authentication blueprint.
Handles login and logout; both are recorded in the audit log.
"""

from flask import Blueprint, jsonify, session, g, Response
from typing import Tuple, Union
import logging

from academy_admin.context import ActorIdentity
from academy_admin.database import get_session, utcnow
from academy_admin.decorators.permissions import require_login
from academy_admin.exceptions import ValidationError
from academy_admin.forms.auth_forms import LoginForm
from academy_admin.middleware import ACTOR_KEY, BOOTSTRAP_KEY, bootstrap_session, get_access_gate, get_broker
from academy_admin.models import AuditAction, AuditEntityType, Profile
from academy_admin.services import audit_service
from academy_admin.services.audit_service import AuditEvent
from academy_admin.services.cache_service import get_config_store

logger = logging.getLogger(__name__)

UNAUTHENTICATED_ROLE = 'unauthenticated'

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
def login() -> Union[Response, Tuple[Response, int]]:
    """Verify email + password and bootstrap the session."""
    form = LoginForm()
    if not form.validate():
        raise ValidationError('Email and password are required', form.errors)

    email = form.email.data.strip().lower()
    db_session = get_session()
    profile = db_session.query(Profile).filter_by(email=email).first()
    ctx = g.access

    if not profile or not profile.active or not profile.check_password(form.password.data):
        audit_service.record(UNAUTHENTICATED_ROLE, AuditEvent(
            action=AuditAction.FAILED_LOGIN,
            entity_type=AuditEntityType.AUTH,
            summary_key='audit.auth.failed_login',
            summary_params={'email': email},
            metadata={'email': email},
        ), ctx)
        logger.info(f"Failed login for {email}")
        return jsonify({'status': 'error', 'message': 'Invalid email or password'}), 401

    # Authentication successful
    session.clear()
    session[ACTOR_KEY] = profile.id
    session.permanent = True

    profile.last_login = utcnow()
    db_session.commit()

    ctx.actor = ActorIdentity(
        actor_id=profile.id,
        role=profile.role,
        email=profile.email,
        tenant_id=profile.tenant_id,
        branch_id=profile.branch_id,
    )
    ctx.impersonation = None
    config = bootstrap_session(ctx)

    audit_service.record(profile.role, AuditEvent(
        action=AuditAction.LOGIN,
        entity_type=AuditEntityType.AUTH,
        entity_id=profile.id,
        summary_key='audit.auth.login',
        summary_params={'email': profile.email},
    ), ctx)

    return jsonify({
        'status': 'ok',
        'actor': ctx.actor.to_dict(),
        'tenant': config.to_dict() if config is not None else None,
        'access': get_access_gate().decide(ctx).to_dict(),
    })


@auth_bp.route('/logout', methods=['POST'])
@require_login
def logout() -> Response:
    """Record the logout, end support mode if active and clear the session."""
    ctx = g.access
    if ctx.is_impersonating:
        get_broker().exit(ctx)

    audit_service.record(ctx.actor.role, AuditEvent(
        action=AuditAction.LOGOUT,
        entity_type=AuditEntityType.AUTH,
        entity_id=ctx.actor.actor_id,
        summary_key='audit.auth.logout',
        summary_params={'email': ctx.actor.email},
    ), ctx)

    get_config_store().discard(session.get(BOOTSTRAP_KEY))
    session.clear()
    return jsonify({'status': 'ok'})
