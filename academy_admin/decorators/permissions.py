"""
Authorization decorators.

Must be used on views running after load_access_context, which puts the
AccessContext on g.access.
"""
from functools import wraps
from flask import g, jsonify

from academy_admin.exceptions import FeatureNotEnabledError, UnauthorizedError
from academy_admin.services.entitlements import has_feature


def require_login(f):
    """
    Decorator: Require an authenticated actor.

    Answers 401 JSON for anonymous requests.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        ctx = g.get('access')
        if ctx is None or not ctx.is_authenticated:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function


def platform_owner_required(f):
    """
    Decorator: Require a platform owner (platform_owner or platform_admin).

    Implies require_login.
    """
    @wraps(f)
    @require_login
    def decorated_function(*args, **kwargs):
        if not g.access.is_platform_owner:
            raise UnauthorizedError("Platform owner access required")
        return f(*args, **kwargs)
    return decorated_function


def require_feature(feature_key):
    """
    Decorator: Require the session's tenant to be entitled to a feature.

    Checks the tenant config loaded at bootstrap, so plan changes apply after
    the next login or impersonation switch.

    Usage:
        @bp.route('/branches')
        @require_feature('multi_branch')
        def branches():
            ...
    """
    def decorator(f):
        @wraps(f)
        @require_login
        def decorated_function(*args, **kwargs):
            if not has_feature(g.access.tenant_config, feature_key):
                raise FeatureNotEnabledError(feature_key)
            return f(*args, **kwargs)
        return decorated_function
    return decorator
