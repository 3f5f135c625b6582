import pytest
from datetime import date, timedelta
import os
import uuid

# Test configuration must be in the environment before config.py is imported
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['BACKEND_API_KEY'] = 'test-backend-key'
os.environ['CACHE_ENABLED'] = 'false'
os.environ['IP_LOOKUP_ENABLED'] = 'false'
os.environ['IDENTITY_SERVICE_URL'] = ''

from academy_admin import create_app
from academy_admin.cli_commands import seed_plans
from academy_admin.database import Base, get_engine, get_session
from academy_admin.models import Plan, Profile, Subscription, Tenant


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing."""
    app = create_app('config.Config', overrides={
        'TESTING': True,
        'WTF_CSRF_ENABLED': False,
        'MULTI_TENANT_MODE': 'on',
        'BRAND_DOMAIN': 'example.com',
        'SUPPORT_EMAIL': 'help@example.com',
    })
    Base.metadata.create_all(get_engine())
    return app


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


def _persist(session, *objs):
    """Commit, load and detach rows so they stay readable after request teardown."""
    session.add_all(objs)
    session.commit()
    for obj in objs:
        session.refresh(obj)
        session.expunge(obj)
    return objs[0] if len(objs) == 1 else objs


@pytest.fixture(scope='session')
def plans(app):
    """Default plan catalog; maps plan code to plan id."""
    db_session = get_session()
    seed_plans(db_session)
    catalog = {plan.code: plan.id for plan in db_session.query(Plan).all()}
    db_session.close()
    return catalog


@pytest.fixture(scope='function')
def make_tenant(session, plans):
    """
    Factory for tenants with an optional current subscription.

    renews_in is relative to today: negative values put renews_at in the past.
    """
    def factory(status='active', renews_in=30, grace_days=7, subscription_status='active',
                plan_code='single', with_subscription=True, module_overrides=None):
        suffix = uuid.uuid4().hex[:8]
        tenant = Tenant(name=f'Academy {suffix}', subdomain=f'acad-{suffix}', status=status)
        tenant = _persist(session, tenant)
        if with_subscription:
            _persist(session, Subscription(
                tenant_id=tenant.id,
                plan_code=plan_code,
                starts_at=date.today() - timedelta(days=60),
                renews_at=date.today() + timedelta(days=renews_in),
                grace_days=grace_days,
                status=subscription_status,
                module_overrides=module_overrides or {},
            ))
        return tenant
    return factory


@pytest.fixture(scope='function')
def make_profile(session):
    """Factory for login-capable profiles. Password is always 'password123'."""
    def factory(role='tenant_admin', tenant=None, active=True, branch_id=None):
        suffix = uuid.uuid4().hex[:8]
        profile = Profile(
            email=f'{role.replace("_", "-")}-{suffix}@academy.test',
            full_name=f'User {suffix}',
            role=role,
            tenant_id=tenant.id if tenant is not None else None,
            active=active,
            branch_id=branch_id,
        )
        profile.set_password('password123')
        return _persist(session, profile)
    return factory


@pytest.fixture(scope='function')
def tenant(make_tenant):
    """Active tenant on the single plan, renewing in 30 days."""
    return make_tenant()


@pytest.fixture(scope='function')
def tenant_user(make_profile, tenant):
    return make_profile(role='tenant_admin', tenant=tenant)


@pytest.fixture(scope='function')
def owner(make_profile):
    """Platform owner without a tenant."""
    return make_profile(role='platform_owner')


@pytest.fixture(scope='function')
def login():
    """POST /login for a profile created by make_profile."""
    def do_login(client, profile, password='password123', **kwargs):
        return client.post('/login', json={'email': profile.email, 'password': password}, **kwargs)
    return do_login


@pytest.fixture(scope='function')
def owner_client(client, owner, login):
    """Test client logged in as a platform owner."""
    response = login(client, owner)
    assert response.status_code == 200
    return client
