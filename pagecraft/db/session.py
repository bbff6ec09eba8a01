# pagecraft/db/session.py
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from pagecraft.core.settings import settings

ENGINE_URL = settings.SQLALCHEMY_DATABASE_URL

_engine_kwargs = {"pool_pre_ping": True}
if ENGINE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs["pool_recycle"] = 1800  # keep connections fresh on Heroku

engine = create_engine(ENGINE_URL, **_engine_kwargs)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transactional(db: Session) -> Iterator[Session]:
    """Commit on success; rollback and re-raise on any exception."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
