# advanced_reports/core/dependencies.py
"""Shared FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from advanced_reports.core.config import ReportSettings, get_settings
from advanced_reports.core.database import get_db, get_dw_db

# Core database dependencies
SessionDep = Annotated[Session, Depends(get_db)]
DWSessionDep = Annotated[Session, Depends(get_dw_db)]
SettingsDep = Annotated[ReportSettings, Depends(get_settings)]
