"""
Access gate.

Combines the resolved tenant config, the actor and the subscription verdict
into one render/block decision for the current session. Blocked decisions
carry what a block screen needs: tenant and plan details and the support
contacts to reach.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from academy_admin.blueprints.metrics import access_decisions_total
from academy_admin.services.subscription_service import (
    RenewalStatus, Verdict, as_date, evaluate, renewal_status,
)
from academy_admin.services.tenant_resolver import is_single_tenant

logger = logging.getLogger(__name__)

DEFAULT_SUPPORT_EMAIL = 'support@example.com'


class DecisionKind(enum.Enum):
    RENDER = 'render'
    BLOCK_NOT_FOUND = 'block_not_found'
    BLOCK_SUSPENDED = 'block_suspended'
    BLOCK_NO_SUBSCRIPTION = 'block_no_subscription'
    BLOCK_EXPIRED = 'block_expired'


_KIND_BY_VERDICT = {
    Verdict.ALLOWED: DecisionKind.RENDER,
    Verdict.BLOCKED_NO_TENANT: DecisionKind.BLOCK_NOT_FOUND,
    Verdict.BLOCKED_SUSPENDED: DecisionKind.BLOCK_SUSPENDED,
    Verdict.BLOCKED_NO_SUBSCRIPTION: DecisionKind.BLOCK_NO_SUBSCRIPTION,
    Verdict.BLOCKED_EXPIRED: DecisionKind.BLOCK_EXPIRED,
}

_MESSAGES = {
    DecisionKind.RENDER: '',
    DecisionKind.BLOCK_NOT_FOUND: (
        "The academy you're trying to access could not be found. Please check the URL and try again."
    ),
    DecisionKind.BLOCK_SUSPENDED: (
        "Your academy account has been suspended. Please contact support to resolve this issue."
    ),
    DecisionKind.BLOCK_NO_SUBSCRIPTION: (
        "Your academy does not have an active subscription. "
        "Please contact support to activate your subscription."
    ),
    DecisionKind.BLOCK_EXPIRED: (
        "Your subscription has expired. Please renew your subscription to continue using the system."
    ),
}


@dataclass(frozen=True)
class SupportContact:
    email: str = DEFAULT_SUPPORT_EMAIL
    phone: str = ''
    whatsapp: str = ''

    def to_dict(self):
        return {'email': self.email, 'phone': self.phone, 'whatsapp': self.whatsapp}


@dataclass(frozen=True)
class AccessDecision:
    kind: DecisionKind
    verdict: Optional[Verdict] = None
    tenant_name: Optional[str] = None
    plan: Optional[str] = None
    renews_at: Optional[date] = None
    grace_period_end: Optional[date] = None
    days_overdue: int = 0
    renewal_status: Optional[RenewalStatus] = None
    support: Optional[SupportContact] = None
    bypass: Optional[str] = None  # 'single_tenant' or 'platform_owner'

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.RENDER

    @property
    def message(self) -> str:
        return _MESSAGES[self.kind]

    def to_dict(self):
        return {
            'kind': self.kind.value,
            'verdict': self.verdict.value if self.verdict else None,
            'message': self.message,
            'tenant_name': self.tenant_name,
            'plan': self.plan,
            'renews_at': self.renews_at.isoformat() if self.renews_at else None,
            'grace_period_end': self.grace_period_end.isoformat() if self.grace_period_end else None,
            'days_overdue': self.days_overdue,
            'renewal_status': self.renewal_status.to_dict() if self.renewal_status else None,
            'support': self.support.to_dict() if self.support else None,
            'bypass': self.bypass,
        }


class AccessGate:
    """Decide whether the session may render tenant pages."""

    def __init__(self, support_loader: Optional[Callable] = None, default_support_email: str = DEFAULT_SUPPORT_EMAIL):
        self._support_loader = support_loader
        self.default_support_email = default_support_email

    def decide(self, ctx, today=None) -> AccessDecision:
        """
        Decision order: single-tenant mode renders; a platform owner who is
        not impersonating renders; everyone else gets the verdict of their
        own (or the impersonated) tenant.
        """
        config = ctx.tenant_config
        if is_single_tenant(config):
            decision = AccessDecision(DecisionKind.RENDER, bypass='single_tenant')
        elif ctx.is_platform_owner and not ctx.is_impersonating:
            decision = AccessDecision(DecisionKind.RENDER, bypass='platform_owner')
        else:
            decision = self._from_verdict(config, as_date(today or date.today()))

        access_decisions_total.labels(kind=decision.kind.value).inc()
        return decision

    def _from_verdict(self, config, today) -> AccessDecision:
        subscription = config.subscription if config is not None else None
        evaluation = evaluate(config, subscription, today)
        kind = _KIND_BY_VERDICT[evaluation.verdict]
        return AccessDecision(
            kind=kind,
            verdict=evaluation.verdict,
            tenant_name=config.name if config is not None else None,
            plan=subscription.plan_code if subscription else None,
            renews_at=as_date(subscription.renews_at) if subscription else None,
            grace_period_end=evaluation.grace_period_end,
            days_overdue=evaluation.days_overdue,
            renewal_status=renewal_status(subscription, today),
            support=None if kind is DecisionKind.RENDER else self.support_contact(),
        )

    def support_contact(self) -> SupportContact:
        """Support contacts from platform settings; defaults if they cannot be read."""
        default = SupportContact(email=self.default_support_email)
        if self._support_loader is None:
            return default
        try:
            settings = self._support_loader()
        except Exception as e:
            logger.warning(f"Could not load support settings: {e}")
            return default
        if settings is None:
            return default
        return SupportContact(
            email=settings.support_email or self.default_support_email,
            phone=settings.support_phone or '',
            whatsapp=settings.support_whatsapp or '',
        )
