"""Filesystem storage for generated report files."""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from advanced_reports.reporting.exceptions import ReportPersistenceError

logger = logging.getLogger(__name__)

_SPACES = re.compile(r" +")
_UNSAFE = re.compile(r"[^A-Za-z0-9.+_-]")


def report_file_name(title: Optional[str], format: str) -> str:
    """Stored file name for a report: ``"Sales by  Region!"`` -> ``"Sales-by-Region.csv"``."""
    name = _SPACES.sub("-", (title or "").strip())
    name = _UNSAFE.sub("", name)
    return f"{name}.{format}"


class ArtifactStore:
    """Writes report content below a root directory."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def find_or_make(self, path: Union[str, Path]) -> Path:
        """Return the folder at ``path`` (relative to the root), creating it if needed."""
        folder = self.root / path
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportPersistenceError(f"Failed creating report folder {folder}: {str(e)}", str(folder)) from e
        return folder

    def report_folder(self, template_id: Optional[int], report_id: Optional[int]) -> Path:
        return self.find_or_make(Path("advanced-reports") / str(template_id or 0) / str(report_id or 0))

    def persist(self, content: Union[str, bytes], suggested_name: str, folder: Optional[Path] = None) -> str:
        """Write content and return its location. Failing to write is fatal."""
        folder = folder if folder is not None else self.find_or_make(".")
        location = Path(folder) / suggested_name
        # empty files are not stored
        if not content:
            content = " "
        try:
            if isinstance(content, bytes):
                location.write_bytes(content)
            else:
                location.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ReportPersistenceError(f"Failed creating report in {location}: {str(e)}", str(location)) from e
        logger.info("Stored report file %s", location)
        return str(location)
