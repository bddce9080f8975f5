# advanced_reports/core/database.py
"""Database configuration for report definitions and the reported-on warehouse."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from advanced_reports.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# ===== CONFIG DATABASE =====
# Stores report definitions, generated reports, generation and request logs
DATABASE_URL = settings.database_url

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# ===== DATA WAREHOUSE DATABASE =====
# Stores the records that reports are generated from
DATA_WAREHOUSE_URL = settings.data_warehouse_url

dw_engine = create_engine(
    DATA_WAREHOUSE_URL,
    connect_args={"check_same_thread": False} if DATA_WAREHOUSE_URL.startswith("sqlite") else {},
)
DWSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=dw_engine)
DWBase = declarative_base()


# ===== SESSION GENERATORS =====


def get_db():
    """Get config database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_dw_db():
    """Get data warehouse database session."""
    db = DWSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ===== TABLE CREATION =====


def create_all_tables():
    """Create tables in both databases."""
    # Import models to ensure they're registered with Base classes
    from advanced_reports.reporting.models import AdvancedReport, ReportGenerationLog  # noqa: F401
    from advanced_reports.logging.models import Log  # noqa: F401
    from advanced_reports.datawarehouse.models import Customer, Invoice  # noqa: F401

    Base.metadata.create_all(bind=engine)
    DWBase.metadata.create_all(bind=dw_engine)
    logger.info("Config and data warehouse tables created")


def init_db():
    """Create tables on startup."""
    create_all_tables()
