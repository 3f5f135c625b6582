"""Database configuration and initialization."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None
_session_factory = None


def new_id() -> str:
    """Generate a primary key value."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the storage convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _engine_options(database_uri, echo):
    options = {'echo': echo, 'pool_pre_ping': True}
    if database_uri.startswith('sqlite'):
        # One shared connection so an in-memory database survives across sessions
        options.update(
            poolclass=StaticPool,
            connect_args={'check_same_thread': False},
        )
    else:
        options.update(pool_size=10, max_overflow=20)
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session, _session_factory

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db_session = scoped_session(_session_factory)

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def get_session():
    """Get database session."""
    return db_session


def new_session():
    """
    Open an independent session outside the request-scoped one.

    Used for writes that must commit or fail on their own, such as
    audit appends that may not ride on the caller's transaction.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized.")
    return _session_factory()


def get_engine():
    """Get the active engine."""
    return engine
