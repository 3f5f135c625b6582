"""
Subscription evaluation.

Pure date arithmetic over a tenant and its current subscription: the access
verdict used by the access gate, and the renewal status shown as a badge.
Nothing here touches the database; callers pass ORM rows or the cached
TenantConfig / SubscriptionSummary, which expose the same attributes.
"""
import enum
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

EXPIRING_SOON_DAYS = 7


class Verdict(enum.Enum):
    ALLOWED = 'allowed'
    BLOCKED_NO_TENANT = 'blocked_no_tenant'
    BLOCKED_SUSPENDED = 'blocked_suspended'
    BLOCKED_NO_SUBSCRIPTION = 'blocked_no_subscription'
    BLOCKED_EXPIRED = 'blocked_expired'


@dataclass(frozen=True)
class Evaluation:
    verdict: Verdict
    days_overdue: int = 0
    grace_period_end: Optional[date] = None

    @property
    def allowed(self) -> bool:
        return self.verdict is Verdict.ALLOWED


@dataclass(frozen=True)
class RenewalStatus:
    """Badge state: active, expiring (within a week), grace or expired."""
    kind: str
    days: int

    def to_dict(self):
        return {'kind': self.kind, 'days': self.days}


def as_date(value) -> Optional[date]:
    """Normalise a date, datetime or ISO string to a calendar date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def grace_period_end(subscription) -> date:
    """renews_at plus grace_days, in calendar days."""
    return as_date(subscription.renews_at) + timedelta(days=subscription.grace_days or 0)


def evaluate(tenant, subscription, today) -> Evaluation:
    """
    Compute the access verdict. First match wins:

    1. no tenant -> BLOCKED_NO_TENANT
    2. tenant suspended -> BLOCKED_SUSPENDED, whatever the subscription says
    3. no subscription -> BLOCKED_NO_SUBSCRIPTION
    4. status expired, or grace period ended before today -> BLOCKED_EXPIRED
    5. otherwise ALLOWED, including while inside the grace window
    """
    if tenant is None:
        return Evaluation(Verdict.BLOCKED_NO_TENANT)
    if tenant.status == 'suspended':
        return Evaluation(Verdict.BLOCKED_SUSPENDED)
    if subscription is None:
        return Evaluation(Verdict.BLOCKED_NO_SUBSCRIPTION)

    today = as_date(today)
    grace_end = grace_period_end(subscription)
    if subscription.status == 'expired' or grace_end < today:
        days_overdue = max((today - grace_end).days, 0)
        return Evaluation(Verdict.BLOCKED_EXPIRED, days_overdue, grace_end)
    return Evaluation(Verdict.ALLOWED, 0, grace_end)


def days_until_renewal(subscription, today) -> int:
    """Calendar days from today to renews_at; negative once it has passed."""
    if subscription is None:
        return 0
    return (as_date(subscription.renews_at) - as_date(today)).days


def renewal_status(subscription, today) -> Optional[RenewalStatus]:
    if subscription is None:
        return None
    today = as_date(today)
    grace_end = grace_period_end(subscription)

    if subscription.status == 'expired' or grace_end < today:
        return RenewalStatus('expired', max((today - grace_end).days, 0))

    days_left = days_until_renewal(subscription, today)
    if days_left < 0:
        # Days of grace remaining, 0 on the last allowed day
        return RenewalStatus('grace', (grace_end - today).days)
    if days_left <= EXPIRING_SOON_DAYS:
        return RenewalStatus('expiring', days_left)
    return RenewalStatus('active', days_left)
