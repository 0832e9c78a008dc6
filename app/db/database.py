"""
Database connection and initialization utilities.
"""

import os
import logging
from pathlib import Path
from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load environment variables
project_root = Path(__file__).parent.parent.parent
load_dotenv(project_root / ".env")

# Database configuration
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{project_root / 'leaveflow.db'}"  # Default to SQLite
)


def make_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine; SQLite connections are shared with worker threads."""
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if "sqlite" in url else {},
        echo=os.getenv("DB_ECHO", "false").lower() == "true"  # Set DB_ECHO=true for SQL logging
    )


# Create engine
engine = make_engine()

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine):
    """Initialize database - create all tables."""
    from app.db.models import Base
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database initialized at: {bind.url}")


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session.
    Use in FastAPI dependencies.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
