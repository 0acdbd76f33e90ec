from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from crm.config import settings


def _build_database_url(raw_url: str) -> str:
    if raw_url.startswith("postgresql://"):
        return raw_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return raw_url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if url in {"sqlite://", "sqlite:///:memory:", "sqlite+pysqlite:///:memory:"}:
            # A single shared connection keeps the in-memory database alive.
            options["poolclass"] = StaticPool
        return options
    return {"pool_pre_ping": True}


def build_engine(raw_url: str):
    url = _build_database_url(raw_url)
    if not url:
        raise RuntimeError("DATABASE_URL is not configured")
    return create_engine(url, **_engine_options(url))


def build_session_factory(bind) -> sessionmaker:
    return sessionmaker(
        bind=bind, autoflush=False, autocommit=False, expire_on_commit=False
    )


DATABASE_URL = _build_database_url(settings.database_url)
engine = build_engine(DATABASE_URL)
SessionLocal = build_session_factory(engine)
Base = declarative_base()


def init_db(bind=None) -> None:
    from crm.models import meeting as _meeting  # noqa: F401
    from crm.models import otp as _otp  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def session_scope(factory: sessionmaker | None = None):
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
