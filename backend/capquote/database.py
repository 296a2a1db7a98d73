from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from capquote.core.config import settings
import os
from contextlib import contextmanager

if os.getenv("PYTEST_RUN") == "1":
    SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
else:
    SQLALCHEMY_DATABASE_URL = settings.SQLALCHEMY_DATABASE_URL

is_sqlite = SQLALCHEMY_DATABASE_URL.startswith("sqlite")

# SQLite uses a per-process connection; only the pre-ping applies elsewhere
connect_args = {"check_same_thread": False, "timeout": 15} if is_sqlite else {}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session(session_factory=None):
    """Provide a short-lived session with guaranteed close.

    Used by the price table source, which runs outside request scope.
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
    finally:
        db.close()
