from contextlib import contextmanager
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker


def build_engine(database_url: str, **kwargs) -> Engine:
    # Ensure sqlite file parent directory exists to avoid 'unable to open database file'
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        db_path = database_url.split("sqlite:///")[-1]
        Path(db_path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, future=True, **kwargs)


def make_session_factory(engine: Engine):
    """Return a ``get_session`` context manager bound to ``engine``."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)

    @contextmanager
    def get_session():
        session = SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return get_session


def get_session_factory_for(database_url: str):
    """Build an engine for ``database_url``, create missing tables and return its session factory."""
    from ..models.base import Base
    from ..models import storage_entry  # noqa: F401  registers the table

    engine = build_engine(database_url)
    Base.metadata.create_all(engine)
    return make_session_factory(engine)
