from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from core.config import settings

Base = declarative_base()


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """
    SQLite ignores FOREIGN KEY clauses unless asked per connection.
    Without this, ON DELETE CASCADE and the unknown-user insert failure
    would silently pass in local/test databases.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,   # checks stale connections
    connect_args=connect_args,
)
enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def check_db_connection() -> None:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

