"""Database configuration and initialization."""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(app) -> dict:
    """Build engine kwargs for the configured backend."""
    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    options = {
        'echo': app.config.get('SQLALCHEMY_ECHO', False),
        'pool_pre_ping': True,  # Enable connection health checks
        'future': True,
    }
    if database_uri.startswith('postgresql'):
        options['pool_size'] = 10
        options['max_overflow'] = 20
        timeout_ms = app.config.get('DB_STATEMENT_TIMEOUT_MS', 0)
        if timeout_ms:
            options['connect_args'] = {'options': f'-c statement_timeout={int(timeout_ms)}'}
    elif database_uri.startswith('sqlite'):
        options['connect_args'] = {'check_same_thread': False}
    return options


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    engine = create_engine(app.config['SQLALCHEMY_DATABASE_URI'], **_engine_options(app))

    db_session = scoped_session(
        sessionmaker(autoflush=False, bind=engine, expire_on_commit=False, future=True)
    )

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import storefront.models  # noqa: F401  (registers mappers)
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop every table (tests only)."""
    import storefront.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session


@contextmanager
def session_scope():
    """
    Standalone unit of work for code running outside a request
    (background threads, CLI). Commits on success, rolls back on error.
    """
    session = db_session.session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
