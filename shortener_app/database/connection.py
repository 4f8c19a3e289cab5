"""
SQLAlchemy engine and session setup for the durable URL store.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, connect_timeout: int = 5) -> Engine:
    """
    Create an engine for the given URL.

    SQLite needs check_same_thread=False because FastAPI may touch the
    connection from the threadpool. Other drivers get a connect timeout
    so an unreachable server fails fast at startup.
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {"connect_timeout": connect_timeout}

    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
