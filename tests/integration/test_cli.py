"""
Integration tests for the Flask CLI commands.
"""

import pytest
import uuid

from academy_admin.models import Profile


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestWatchSubscriptions:

    def test_once_reports_each_alert_kind(self, runner, make_tenant):
        expiring = make_tenant(renews_in=2)
        expired = make_tenant(renews_in=-30, grace_days=7)
        healthy = make_tenant(renews_in=90)

        result = runner.invoke(args=['watch-subscriptions', '--once'])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert any(line.startswith('expiring') and expiring.name in line for line in lines)
        assert any(line.startswith('expired') and expired.name in line for line in lines)
        assert healthy.name not in result.output


class TestCreatePlatformOwner:

    def test_creates_owner(self, runner, session):
        email = f'owner-{uuid.uuid4().hex[:8]}@academy.test'

        result = runner.invoke(args=['create-platform-owner', '--email', email, '--password', 'secret123'])

        assert result.exit_code == 0
        owner = session.query(Profile).filter_by(email=email).one()
        assert owner.role == 'platform_owner'
        assert owner.check_password('secret123')

    def test_rejects_short_password(self, runner):
        result = runner.invoke(args=['create-platform-owner', '--email', 'x@academy.test', '--password', '123'])

        assert result.exit_code != 0
        assert 'at least 6 characters' in result.output


class TestSeedPlans:

    def test_is_idempotent(self, runner, plans):
        result = runner.invoke(args=['seed-plans'])

        assert result.exit_code == 0
        assert 'Plans: 0' in result.output
