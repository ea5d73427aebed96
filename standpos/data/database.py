# standpos/data/database.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from standpos.utils.settings import DATABASE_URL, REMOTE_TIMEOUT_SECONDS


def build_engine(url: str = DATABASE_URL, timeout: float = REMOTE_TIMEOUT_SECONDS):
    """
    Engine for the remote store. Every call gets an explicit timeout:
    pool checkout always, statement_timeout on PostgreSQL.
    """
    kwargs = {"pool_pre_ping": True}

    if url.startswith("postgresql"):
        kwargs["pool_timeout"] = timeout
        kwargs["connect_args"] = {
            "connect_timeout": int(max(timeout, 1)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    elif url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}

    return create_engine(url, **kwargs)


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
