from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from campus_scheduler.core.config import get_settings

settings = get_settings()

# Every mutating operation is a single transaction at this isolation level.
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    isolation_level=settings.database_isolation_level,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
