"""
Tests for fixed-interval polling and the subscription alert scan.
"""

import pytest
import threading
import time
from datetime import date, timedelta

from academy_admin.services.alert_poller import FixedIntervalPoller, scan_subscription_alerts


def wait_for(event, timeout=2):
    assert event.wait(timeout), 'poller did not run in time'


class TestFixedIntervalPoller:

    def test_runs_until_stopped(self):
        calls = []
        ran_twice = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) >= 2:
                ran_twice.set()

        poller = FixedIntervalPoller(0.01, tick, name='test-poller').start()
        wait_for(ran_twice)
        poller.stop()
        count = len(calls)
        time.sleep(0.05)

        assert not poller.is_running
        assert len(calls) == count

    def test_errors_do_not_stop_the_loop(self):
        calls = []
        recovered = threading.Event()

        def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError('first scan fails')
            recovered.set()

        poller = FixedIntervalPoller(0.01, tick).start()
        try:
            wait_for(recovered)
        finally:
            poller.stop()

    def test_run_immediately(self):
        ran = threading.Event()
        poller = FixedIntervalPoller(60, ran.set).start(run_immediately=True)
        try:
            wait_for(ran)
        finally:
            poller.stop()

    def test_stop_is_idempotent(self):
        poller = FixedIntervalPoller(60, lambda: None).start()
        poller.stop()
        poller.stop()
        assert not poller.is_running

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            FixedIntervalPoller(0, lambda: None)


class TestScanSubscriptionAlerts:
    """Tenants are grouped by renewal badge; active and unsubscribed tenants are left out."""

    def alerted(self, alerts, tenant):
        return {
            kind: row['days']
            for kind, rows in alerts.items()
            for row in rows
            if row['tenant_id'] == tenant.id
        }

    def test_groups_by_renewal_state(self, session, make_tenant):
        expiring = make_tenant(renews_in=3)
        in_grace = make_tenant(renews_in=-2, grace_days=7)
        expired = make_tenant(renews_in=-20, grace_days=7)
        healthy = make_tenant(renews_in=30)

        alerts = scan_subscription_alerts(session, date.today())

        assert set(alerts) == {'expiring', 'grace', 'expired'}
        assert self.alerted(alerts, expiring) == {'expiring': 3}
        assert self.alerted(alerts, in_grace) == {'grace': 5}
        assert self.alerted(alerts, expired) == {'expired': 13}
        assert self.alerted(alerts, healthy) == {}

    def test_tenant_without_subscription_is_skipped(self, session, make_tenant):
        tenant = make_tenant(with_subscription=False)

        alerts = scan_subscription_alerts(session, date.today())

        assert self.alerted(alerts, tenant) == {}

    def test_row_payload(self, session, make_tenant):
        tenant = make_tenant(renews_in=1)

        row = next(r for r in scan_subscription_alerts(session, date.today())['expiring'] if r['tenant_id'] == tenant.id)

        assert row['tenant_name'] == tenant.name
        assert row['renews_at'] == (date.today() + timedelta(days=1)).isoformat()
