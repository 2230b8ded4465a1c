"""
PostgreSQL Connection Utility

PostgreSQL is owned by the users/companies/jobs CRUD service.
The screening pipeline only reads from it:
- jobs + companies + job_required_skills -> scoring criteria
- users -> account email of portal applicants

Sessions here never commit.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Lookups are short single queries; a small pool is enough.
# pool_pre_ping: drop connections the CRUD service's DB restarted under us
engine = create_engine(
    settings.postgres_url,
    pool_size=3,
    max_overflow=5,
    pool_pre_ping=True,
    echo=settings.debug  # Log SQL queries in debug mode
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Read-only session; whatever happened inside is rolled back.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT title FROM jobs"))
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def execute_raw_sql(sql: str, params: dict = None) -> list:
    """Run a SELECT and return its rows as dicts."""
    with get_db_session() as db:
        result = db.execute(text(sql), params or {})
        return [dict(row) for row in result.mappings().all()]


def fetch_one(sql: str, params: dict = None) -> Optional[dict]:
    """First row as a dict, or None."""
    rows = execute_raw_sql(sql, params)
    return rows[0] if rows else None


def test_postgres_connection() -> bool:
    """
    Test if PostgreSQL is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        return fetch_one("SELECT 1 AS ok") == {"ok": 1}
    except Exception as e:
        logger.warning("PostgreSQL connection failed: %s", e)
        return False
