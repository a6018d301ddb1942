"""
marketplace/database.py - SQLAlchemy engine, session factory and declarative Base.

Every model module registers its tables on `Base`. Routers get a session through
`get_db`; the checkout pipeline gets the factory itself (`get_session_factory`)
because the idempotency ledger and the order transaction commit independently.
"""
from typing import Iterator

from fastapi import Depends
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from marketplace.config import settings

Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(url, echo=echo, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        _serialize_sqlite_writers(engine)
    return engine


def _serialize_sqlite_writers(engine: Engine) -> None:
    """
    SQLite has no row locks; taking the write lock at BEGIN makes every
    transaction serializable instead of failing on lock upgrade.
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite kendi BEGIN'ini göndermesin, transaction'ı biz açıyoruz
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)
SessionLocal = build_session_factory(engine)


def init_db(bind: Engine = None) -> None:
    """Create all tables (models must be imported so they register on Base)."""
    from marketplace.model import cart, idempotency, order, product  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_db(session_factory: sessionmaker = Depends(get_session_factory)) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
