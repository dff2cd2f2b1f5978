import os

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")

DEFAULT_DATABASE_URL = "sqlite:///./cafe_loyalty.db"


def normalize_database_url(raw: str | None) -> str:
    """Validate the configured URL, falling back to the local SQLite file."""
    if not raw or not raw.strip():
        return DEFAULT_DATABASE_URL
    # make_url keeps sqlite's empty-host form (sqlite:///path) intact
    return make_url(raw.strip()).render_as_string(hide_password=False)


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL"))


def configure_sqlite(engine):
    """Let pysqlite hand transaction control to SQLAlchemy so SAVEPOINTs work."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


connect_args = {}
if DATABASE_URL.startswith("postgres"):
    connect_args = {"options": "-c timezone=utc"}
elif DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, connect_args=connect_args)
if DATABASE_URL.startswith("sqlite"):
    configure_sqlite(engine)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
