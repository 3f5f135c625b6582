"""
SQL tenant backend.

The persistence collaborator the access-control plane talks to. Lookups
return Result values with a closed ErrorKind instead of raising, so callers
never sniff exception text to tell "no multi-tenancy" from "not found".
"""
import logging
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from academy_admin import database
from academy_admin.exceptions import ErrorKind, Result
from academy_admin.models import (
    AuditLogEntry, Plan, PlatformSettings, Profile, Subscription, Tenant,
)
from academy_admin.services.tenant_resolver import (
    SubscriptionSummary, TenantConfig, entitled_features, is_valid_origin,
)

logger = logging.getLogger(__name__)


class SqlTenantBackend:
    """Tenant backend over the application's SQLAlchemy database."""

    def __init__(self, multi_tenant_mode: str = 'auto', session_getter=None):
        self.multi_tenant_mode = (multi_tenant_mode or 'auto').lower()
        self._session_getter = session_getter or database.get_session
        self._multi_tenancy: Optional[bool] = None

    @property
    def session(self):
        return self._session_getter()

    @property
    def supports_multi_tenancy(self) -> bool:
        """Decided once per backend instance."""
        if self._multi_tenancy is None:
            if self.multi_tenant_mode == 'on':
                self._multi_tenancy = True
            elif self.multi_tenant_mode == 'off':
                self._multi_tenancy = False
            else:
                self._multi_tenancy = self._detect_tenants_table()
            logger.info(f"Multi-tenancy {'enabled' if self._multi_tenancy else 'unsupported'} "
                        f"(mode={self.multi_tenant_mode})")
        return self._multi_tenancy

    def _detect_tenants_table(self) -> bool:
        engine = database.get_engine()
        if engine is None:
            return False
        try:
            return inspect(engine).has_table(Tenant.__tablename__)
        except SQLAlchemyError as e:
            logger.error(f"Could not inspect backend schema: {e}")
            return False

    # ------------------------------------------------------------------
    # Tenant lookups
    # ------------------------------------------------------------------

    def resolve_tenant_by_origin(self, origin: str) -> Result:
        if not self.supports_multi_tenancy:
            return Result.failure(ErrorKind.CAPABILITY_UNSUPPORTED)
        if not is_valid_origin(origin):
            return Result.failure(ErrorKind.INVALID_ORIGIN, repr(origin))
        try:
            tenant = self.session.query(Tenant).filter_by(subdomain=origin).first()
            if tenant is None:
                return Result.failure(ErrorKind.NOT_FOUND, origin)
            return Result.success(self._load_config(tenant))
        except SQLAlchemyError as e:
            self.session.rollback()
            return Result.failure(ErrorKind.BACKEND_ERROR, str(e))

    def resolve_tenant_by_id(self, tenant_id: str) -> Result:
        if not self.supports_multi_tenancy:
            return Result.failure(ErrorKind.CAPABILITY_UNSUPPORTED)
        if not tenant_id:
            return Result.failure(ErrorKind.INVALID_ORIGIN, 'empty tenant id')
        try:
            tenant = self.session.query(Tenant).filter_by(id=tenant_id).first()
            if tenant is None:
                return Result.failure(ErrorKind.NOT_FOUND, tenant_id)
            return Result.success(self._load_config(tenant))
        except SQLAlchemyError as e:
            self.session.rollback()
            return Result.failure(ErrorKind.BACKEND_ERROR, str(e))

    def _load_config(self, tenant) -> TenantConfig:
        """Snapshot tenant, current subscription and plan entitlements."""
        subscription = (
            self.session.query(Subscription)
            .filter_by(tenant_id=tenant.id)
            .order_by(Subscription.created_at.desc())
            .first()
        )
        summary = None
        features = frozenset()
        limits = {}
        if subscription is not None:
            summary = SubscriptionSummary(
                plan_code=subscription.plan_code,
                starts_at=subscription.starts_at,
                renews_at=subscription.renews_at,
                grace_days=subscription.grace_days or 0,
                status=subscription.status,
            )
            plan = self.session.query(Plan).filter_by(code=subscription.plan_code).first()
            plan_keys = plan.enabled_feature_keys if plan else ()
            features = entitled_features(plan_keys, subscription.module_overrides)
            limits = plan.limits if plan else {}

        return TenantConfig(
            tenant_id=tenant.id,
            name=tenant.name,
            subdomain=tenant.subdomain,
            status=tenant.status,
            subscription=summary,
            features=features,
            limits=limits,
        )

    # ------------------------------------------------------------------
    # Actors
    # ------------------------------------------------------------------

    def get_actor_platform_role(self, actor_id: str) -> Result:
        """Platform role of an actor, or CAPABILITY_UNSUPPORTED without a SaaS layer."""
        if not self.supports_multi_tenancy:
            return Result.failure(ErrorKind.CAPABILITY_UNSUPPORTED)
        try:
            profile = self.session.query(Profile).filter_by(id=actor_id, active=True).first()
        except SQLAlchemyError as e:
            self.session.rollback()
            return Result.failure(ErrorKind.BACKEND_ERROR, str(e))
        if profile is None:
            return Result.failure(ErrorKind.NOT_FOUND, actor_id)
        return Result.success(profile.role)

    # ------------------------------------------------------------------
    # Audit and settings
    # ------------------------------------------------------------------

    def append_audit_log(self, entry: dict) -> str:
        """
        Append one audit row in an independent session and return its id.

        Raises SQLAlchemyError on failure; the audit emitter is the boundary
        that swallows it.
        """
        session = database.new_session()
        try:
            row = AuditLogEntry(id=database.new_id(), **entry)
            entry_id = row.id
            session.add(row)
            session.commit()
            return entry_id
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def load_support_settings(self) -> Optional[PlatformSettings]:
        return self.session.query(PlatformSettings).first()


_backend: Optional[SqlTenantBackend] = None


def init_backend(app) -> SqlTenantBackend:
    """Initialize the backend singleton from app config."""
    global _backend
    _backend = SqlTenantBackend(app.config.get('MULTI_TENANT_MODE', 'auto'))
    app.extensions['tenant_backend'] = _backend
    return _backend


def get_backend() -> SqlTenantBackend:
    """Get backend instance."""
    if _backend is None:
        raise RuntimeError("Tenant backend not initialized.")
    return _backend
