"""Database configuration and initialization."""
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = None


def _engine_options(app, database_uri):
    """Build create_engine() keyword arguments for the configured backend."""
    url = make_url(database_uri)
    options = {
        'echo': app.config.get('SQLALCHEMY_ECHO', False),
        'pool_pre_ping': True,  # Enable connection health checks
    }

    if url.get_backend_name() == 'sqlite':
        # In-memory SQLite must share one connection across the scoped sessions
        options['connect_args'] = {'check_same_thread': False}
        if url.database in (None, '', ':memory:'):
            options['poolclass'] = StaticPool
        return options

    options.update(
        pool_size=app.config.get('DB_POOL_SIZE', 10),
        max_overflow=app.config.get('DB_MAX_OVERFLOW', 20),
        pool_timeout=app.config.get('DB_POOL_TIMEOUT', 30),
    )

    statement_timeout = app.config.get('DB_STATEMENT_TIMEOUT_MS')
    if statement_timeout and url.get_backend_name() == 'postgresql':
        options['connect_args'] = {'options': f'-c statement_timeout={statement_timeout}'}

    return options


def _install_sqlite_begin(sqlite_engine):
    """
    Let SQLAlchemy emit BEGIN itself on SQLite (pysqlite defers it otherwise).

    A connection procured with execution option sqlite_begin='IMMEDIATE'
    takes the database write lock when its transaction starts.
    """
    @event.listens_for(sqlite_engine, 'connect')
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, 'begin')
    def _emit_begin(conn):
        mode = conn.get_execution_options().get('sqlite_begin')
        conn.exec_driver_sql(f'BEGIN {mode}' if mode else 'BEGIN')


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(database_uri, **_engine_options(app, database_uri))
    if engine.dialect.name == 'sqlite':
        _install_sqlite_begin(engine)

    db_session = scoped_session(
        sessionmaker(autocommit=False, autoflush=False, bind=engine)
    )

    Base.query = db_session.query_property()

    if app.config.get('DB_CREATE_ALL'):
        create_all()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table registered on Base (idempotent)."""
    # Models must be imported so their tables are registered on Base.metadata
    import app.models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_session():
    """Get database session."""
    return db_session
