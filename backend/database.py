"""Database setup via SQLAlchemy."""
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from backend.config import DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    # Make sure the directory for a file-backed SQLite DB exists (data/ is gitignored)
    path = url.split("sqlite:///", 1)[-1]
    if path and path != url and not path.startswith(":memory:"):
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    return {"connect_args": {"check_same_thread": False}}


engine = create_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    """FastAPI dependency for DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create all tables."""
    import backend.models_db  # noqa: F401  registers the mappers

    Base.metadata.create_all(bind=engine)
