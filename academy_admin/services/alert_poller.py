"""
Fixed-interval background polling.

Used for periodic subscription alert scans. A poller belongs to whatever
started it: register it on the AccessContext (or stop it explicitly) so no
timer keeps running against a torn-down context.
"""
import logging
import threading
from datetime import date
from typing import Callable, Dict, List

from academy_admin.models import Subscription, Tenant
from academy_admin.services.subscription_service import renewal_status

logger = logging.getLogger(__name__)


class FixedIntervalPoller:
    """Call ``fn`` every ``interval_seconds`` on a daemon thread until stopped."""

    def __init__(self, interval_seconds: float, fn: Callable[[], None], name: str = 'poller'):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.interval_seconds = interval_seconds
        self.fn = fn
        self.name = name
        self._stop_event = threading.Event()
        self._thread = None

    def __repr__(self):
        return f"<FixedIntervalPoller {self.name} every {self.interval_seconds}s running={self.is_running}>"

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, run_immediately: bool = False):
        if self.is_running:
            return self
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, args=(run_immediately,), name=self.name, daemon=True,
        )
        self._thread.start()
        return self

    def stop(self, timeout: float = 5) -> None:
        """Signal the loop and wait for it. Safe to call more than once."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self, run_immediately):
        if run_immediately:
            self._tick()
        while not self._stop_event.wait(self.interval_seconds):
            self._tick()

    def _tick(self):
        try:
            self.fn()
        except Exception as e:
            logger.exception(f"[{self.name}] poll failed: {e}")


def scan_subscription_alerts(db_session, today: date) -> Dict[str, List[dict]]:
    """
    Group tenants whose current subscription is expiring, in grace or expired.

    Returns:
        dict: {'expiring': [...], 'grace': [...], 'expired': [...]}
    """
    alerts = {'expiring': [], 'grace': [], 'expired': []}
    for tenant in db_session.query(Tenant).order_by(Tenant.name).all():
        subscription = (
            db_session.query(Subscription)
            .filter_by(tenant_id=tenant.id)
            .order_by(Subscription.created_at.desc())
            .first()
        )
        status = renewal_status(subscription, today)
        if status is None or status.kind not in alerts:
            continue
        alerts[status.kind].append({
            'tenant_id': tenant.id,
            'tenant_name': tenant.name,
            'renews_at': subscription.renews_at.isoformat(),
            'days': status.days,
        })
    return alerts
