"""Database initialization module.

Creates any missing tables on app startup. Existing tables are left untouched;
schema changes go through Alembic migrations.
"""

import logging

from app.core.db import _get_engine
from app.models import Base

logger = logging.getLogger(__name__)


def init_database_schema() -> None:
    engine = _get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ensured (%d tables)", len(Base.metadata.tables))
