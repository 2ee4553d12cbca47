from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session
from .settings import settings

def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)

engine = make_engine(settings.database_url)

def init_db(bind: Engine | None = None):
    # registers the tables on SQLModel.metadata
    from . import models  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)

def get_session(bind: Engine | None = None):
    # keep attributes readable after commit, rows are handed back to callers
    return Session(bind or engine, expire_on_commit=False)
