"""Middleware for actor, tenant and access-gate context."""
from flask import session, g, request, current_app
from sqlalchemy.exc import SQLAlchemyError

from academy_admin.context import AccessContext, ActorIdentity
from academy_admin.database import get_session, new_id
from academy_admin.exceptions import AccessDeniedError
from academy_admin.models import Profile
from academy_admin.services.access_gate import AccessGate
from academy_admin.services.backend import get_backend
from academy_admin.services.cache_service import get_config_store
from academy_admin.services.client_fingerprint import client_ip_from_headers
from academy_admin.services.impersonation_service import ImpersonationBroker, snapshot
from academy_admin.services.tenant_resolver import SINGLE_TENANT_MODE, TenantResolver, origin_from_host

# Session keys
ACTOR_KEY = 'actor_id'
BOOTSTRAP_KEY = 'bootstrap_id'
IMPERSONATION_KEY = 'impersonation_session_id'

# Endpoints the access gate never blocks
GATE_EXEMPT_BLUEPRINTS = {'auth', 'admin', 'metrics'}
GATE_EXEMPT_ENDPOINTS = {'main.health', 'main.session_info', 'static'}


def get_broker() -> ImpersonationBroker:
    return ImpersonationBroker(get_session(), current_app.config.get('IMPERSONATION_WINDOW_MINUTES', 30))


def get_access_gate() -> AccessGate:
    return AccessGate(
        support_loader=get_backend().load_support_settings,
        default_support_email=current_app.config.get('SUPPORT_EMAIL', 'support@example.com'),
    )


def resolve_tenant_config(ctx):
    """
    Resolve the tenant config for a freshly bootstrapped session.

    Impersonating owners resolve the impersonated tenant; other owners have
    no tenant. Tenant actors resolve the request subdomain, falling back to
    their profile's tenant. A subdomain of another tenant resolves to None.
    """
    backend = get_backend()
    resolver = TenantResolver(backend)

    if ctx.is_impersonating:
        return resolver.resolve_for_tenant_id(ctx.impersonation.tenant_id)
    if ctx.is_platform_owner:
        return None if backend.supports_multi_tenancy else SINGLE_TENANT_MODE

    origin = origin_from_host(request.host, current_app.config.get('BRAND_DOMAIN'))
    if origin is None:
        return resolver.resolve_for_tenant_id(ctx.actor.tenant_id)

    config = resolver.resolve(origin)
    if config is not None and not config.single_tenant and ctx.actor.tenant_id \
            and config.tenant_id != ctx.actor.tenant_id:
        current_app.logger.warning(
            f"Actor {ctx.actor.actor_id} of tenant {ctx.actor.tenant_id} requested tenant {config.tenant_id}"
        )
        return None
    return config


def bootstrap_session(ctx):
    """
    Start a new session bootstrap: resolve the tenant config once and cache it.

    Called on login, impersonation start and exit, and on a cache miss.
    """
    store = get_config_store()
    store.discard(session.get(BOOTSTRAP_KEY))

    bootstrap_id = new_id()
    session[BOOTSTRAP_KEY] = bootstrap_id
    ctx.bootstrap_id = bootstrap_id
    ctx.tenant_config = resolve_tenant_config(ctx)
    store.put(bootstrap_id, ctx.tenant_config)
    return ctx.tenant_config


def _load_impersonation(ctx):
    """
    Attach the pinned impersonation session; True if the pin ended since the last request.

    An ended pin drops back to the platform-owner view, never to another open session.
    """
    pinned = session.get(IMPERSONATION_KEY)
    if not pinned:
        return False
    active = get_broker().get_active(ctx.actor.actor_id, session_id=pinned)
    if active is None:
        session.pop(IMPERSONATION_KEY, None)
        return True
    ctx.impersonation = snapshot(active)
    return False


def load_access_context():
    """
    Build the AccessContext for this request and store it on g.access.

    Tenant config comes from the session cache; it is only re-resolved when
    the cache misses or the impersonation state moved underneath it.
    """
    ctx = AccessContext(
        user_agent=request.headers.get('User-Agent'),
        client_ip=client_ip_from_headers(request.headers) or request.remote_addr,
    )
    g.access = ctx

    actor_id = session.get(ACTOR_KEY)
    if not actor_id:
        return

    try:
        profile = get_session().query(Profile).filter_by(id=actor_id, active=True).first()
        if profile is None:
            session.clear()
            return

        ctx.actor = ActorIdentity(
            actor_id=profile.id,
            role=profile.role,
            email=profile.email,
            tenant_id=profile.tenant_id,
            branch_id=profile.branch_id,
        )

        impersonation_changed = ctx.is_platform_owner and _load_impersonation(ctx)

        ctx.bootstrap_id = session.get(BOOTSTRAP_KEY)
        hit, config = (False, None) if impersonation_changed else get_config_store().lookup(ctx.bootstrap_id)
        if hit:
            ctx.tenant_config = config
        else:
            bootstrap_session(ctx)
    except SQLAlchemyError as e:
        current_app.logger.error(f"Error in load_access_context: {e}")
        get_session().rollback()


def enforce_access_gate():
    """
    Block tenant pages when the access gate says so.

    Anonymous requests pass through; login is enforced by require_login.
    """
    if request.endpoint is None or request.endpoint in GATE_EXEMPT_ENDPOINTS:
        return
    if request.blueprint in GATE_EXEMPT_BLUEPRINTS:
        return

    ctx = g.get('access')
    if ctx is None or not ctx.is_authenticated:
        return

    decision = get_access_gate().decide(ctx)
    g.access_decision = decision
    if not decision.allowed:
        raise AccessDeniedError(decision)


def close_access_context(exception=None):
    """Stop pollers tied to the request context."""
    ctx = g.pop('access', None)
    if ctx is not None:
        ctx.close()
