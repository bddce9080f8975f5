# advanced_reports/core/config.py
"""Environment driven settings for the report engine."""

import os
import getpass
import platform
import socket
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

load_dotenv()

APPLICATION_ID = os.environ.get("APPLICATION_ID", "Unknown")
USERNAME = os.environ.get("USER") or os.environ.get("USERNAME") or getpass.getuser() or "unknown_user"
HOSTNAME = socket.gethostname() or platform.node() or "unknown_host"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class ReportSettings(BaseModel):
    """Settings consumed by the report assembler and the generation service."""

    database_url: str = "sqlite:///./advanced_reports.db"
    data_warehouse_url: str = "sqlite:///./advanced_reports_data.db"
    storage_dir: str = "./generated-reports"
    generate_pdf: bool = False
    formats: List[str] = ["html", "csv"]
    # requested format -> format it is rendered in before conversion
    conversion_formats: dict = {"pdf": "html"}

    model_config = ConfigDict(extra="forbid")

    @field_validator("formats")
    @classmethod
    def validate_formats(cls, v: List[str]) -> List[str]:
        cleaned = [fmt.strip().lower() for fmt in v if fmt and fmt.strip()]
        if not cleaned:
            raise ValueError("At least one report format must be enabled")
        return cleaned

    def enabled_formats(self) -> List[str]:
        """Formats generated by a 'generate all' run, in generation order."""
        formats = list(self.formats)
        if self.generate_pdf and "pdf" not in formats:
            formats.append("pdf")
        return formats


@lru_cache
def get_settings() -> ReportSettings:
    """Build settings from the environment once per process."""
    formats = os.getenv("REPORT_FORMATS", "html,csv").split(",")
    return ReportSettings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./advanced_reports.db"),
        data_warehouse_url=os.getenv("DATA_WAREHOUSE_URL", "sqlite:///./advanced_reports_data.db"),
        storage_dir=os.getenv("REPORT_STORAGE_DIR", "./generated-reports"),
        generate_pdf=_env_flag("REPORT_GENERATE_PDF"),
        formats=formats,
    )
