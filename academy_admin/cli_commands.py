"""
Flask CLI commands for platform administration.

Commands:
- flask init-db: Create missing tables
- flask seed-plans: Create the default plans and feature catalog
- flask create-platform-owner: Create a platform owner account
- flask watch-subscriptions: Log expiring / grace / expired tenants periodically
"""

import re
import time
from datetime import date
from decimal import Decimal

import click
from sqlalchemy.exc import SQLAlchemyError

from academy_admin.context import AccessContext
from academy_admin.database import Base, get_engine, get_session, new_session
from academy_admin.forms.admin_forms import EMAIL_PATTERN
from academy_admin.models import Feature, Plan, PlanFeature, Profile
from academy_admin.services.alert_poller import FixedIntervalPoller, scan_subscription_alerts
from academy_admin.services.entitlements import PLAN_FEATURES

DEFAULT_PLANS = {
    'single': {'name': 'Single academy', 'max_students': 150, 'max_branches': 1, 'max_staff': 5,
               'price_monthly': Decimal('19.00')},
    'multi': {'name': 'Multi branch', 'max_students': 600, 'max_branches': 5, 'max_staff': 25,
              'price_monthly': Decimal('49.00')},
    'enterprise': {'name': 'Enterprise', 'max_students': None, 'max_branches': None, 'max_staff': None,
                   'price_monthly': Decimal('129.00')},
}


def seed_plans(db_session):
    """Insert missing plans, features and plan-feature links. Returns counts of created rows."""
    created = {'plans': 0, 'features': 0, 'plan_features': 0}

    feature_keys = sorted({key for keys in PLAN_FEATURES.values() for key in keys})
    for key in feature_keys:
        if db_session.query(Feature).filter_by(key=key).first() is None:
            db_session.add(Feature(key=key, label=key.replace('_', ' ').capitalize()))
            created['features'] += 1
    db_session.flush()

    for code, attrs in DEFAULT_PLANS.items():
        plan = db_session.query(Plan).filter_by(code=code).first()
        if plan is None:
            plan = Plan(code=code, **attrs)
            db_session.add(plan)
            db_session.flush()
            created['plans'] += 1
        for key in PLAN_FEATURES[code]:
            exists = db_session.query(PlanFeature).filter_by(plan_id=plan.id, feature_key=key).first()
            if exists is None:
                db_session.add(PlanFeature(plan_id=plan.id, feature_key=key, enabled=True))
                created['plan_features'] += 1

    db_session.commit()
    return created


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(get_engine())
        click.echo(click.style('Tables created.', fg='green'))

    @app.cli.command('seed-plans')
    def seed_plans_command():
        """Create the default plans and feature catalog."""
        db_session = get_session()
        try:
            created = seed_plans(db_session)
        except SQLAlchemyError as e:
            db_session.rollback()
            raise click.ClickException(f'Seeding failed: {e}')
        click.echo(click.style(
            f"Plans: {created['plans']}, features: {created['features']}, "
            f"links: {created['plan_features']} created.",
            fg='green',
        ))

    @app.cli.command('create-platform-owner')
    @click.option('--email', prompt=True, help='Owner email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Owner password')
    @click.option('--full-name', default=None, help='Display name')
    def create_platform_owner(email, password, full_name):
        """Create a platform owner for the backoffice API."""
        email = email.strip().lower()
        if not re.match(EMAIL_PATTERN, email):
            raise click.BadParameter('Invalid email. Use user@example.com', param_hint='--email')
        if len(password) < 6:
            raise click.BadParameter('Password must be at least 6 characters', param_hint='--password')

        db_session = get_session()
        if db_session.query(Profile).filter_by(email=email).first():
            raise click.ClickException(f'An account with email {email} already exists')

        try:
            owner = Profile(email=email, full_name=full_name, role='platform_owner')
            owner.set_password(password)
            db_session.add(owner)
            db_session.commit()
        except SQLAlchemyError as e:
            db_session.rollback()
            raise click.ClickException(f'Could not create platform owner: {e}')

        click.echo(click.style('Platform owner created.', fg='green', bold=True))
        click.echo(f'   Email: {email}')
        click.echo(f'   ID: {owner.id}')

    @app.cli.command('watch-subscriptions')
    @click.option('--interval', type=int, default=None, help='Seconds between scans')
    @click.option('--once', is_flag=True, help='Scan a single time and exit')
    def watch_subscriptions(interval, once):
        """Report tenants whose subscription is expiring, in grace or expired."""
        interval = interval or app.config.get('SUBSCRIPTION_ALERT_INTERVAL', 300)

        def scan():
            db_session = new_session()
            try:
                alerts = scan_subscription_alerts(db_session, date.today())
            finally:
                db_session.close()
            for kind, rows in alerts.items():
                for row in rows:
                    app.logger.warning(f"[subscriptions] {kind}: {row['tenant_name']} ({row['days']} days)")
                    click.echo(f"{kind:9} {row['tenant_name']} renews {row['renews_at']} ({row['days']} days)")

        if once:
            scan()
            return

        watcher = AccessContext(user_agent='flask watch-subscriptions')
        poller = watcher.register_poller(
            FixedIntervalPoller(interval, scan, name='subscription-alerts').start(run_immediately=True)
        )
        click.echo(f'Watching subscriptions every {interval}s. Ctrl+C to stop.')
        try:
            while poller.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            watcher.close()
