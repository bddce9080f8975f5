"""Exceptions raised by the report engine."""


class ReportError(Exception):
    """Base class for report engine failures."""
    pass


class ReportTypeError(ReportError):
    """A report type is unknown or does not implement its required methods."""
    pass


class DataSourceError(ReportError):
    """The data source failed to execute a compiled report query."""
    pass


class RendererError(ReportError):
    """A renderer or converter failed to produce content."""
    pass


class ReportPersistenceError(ReportError):
    """A rendered report could not be written to the artifact store."""

    def __init__(self, message: str, location: str = None):
        super().__init__(message)
        self.location = location
