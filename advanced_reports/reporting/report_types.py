"""Report types: the record sets reports can be built on.

A report type declares which fields are reportable and how to reach the underlying
records. Concrete types must implement ``report_name``, ``reportable_fields`` and
``data_objects``; ``register_report_type`` refuses classes that don't.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from sqlalchemy import select
from sqlalchemy.orm import Session

from advanced_reports.datasource.base import DataSource
from advanced_reports.datasource.sqlalchemy_source import SqlAlchemyDataSource
from advanced_reports.datawarehouse.models import Customer, Invoice
from advanced_reports.reporting.condition_filters import ValueTransform, default_condition_filters
from advanced_reports.reporting.exceptions import ReportTypeError
from advanced_reports.reporting.postprocess import sum_row_values

logger = logging.getLogger(__name__)

REQUIRED_METHODS = ("report_name", "reportable_fields", "data_objects")


class ReportType(ABC):
    """Base class for report types."""

    # registry key stored on report definitions
    name: Optional[str] = None

    @abstractmethod
    def report_name(self) -> str:
        """Human readable name of the report type."""

    @abstractmethod
    def reportable_fields(self) -> Dict[str, str]:
        """Ordered mapping of field name (possibly ``Table.Field``) -> label."""

    @abstractmethod
    def data_objects(self, session: Optional[Session]) -> DataSource:
        """Data source over the records this report type reads."""

    def field_mapping(self) -> Dict[str, Callable[[Any], Any]]:
        """Field name or key -> callable formatting the displayed value."""
        return {}

    def condition_filters(self) -> List[Tuple[str, ValueTransform]]:
        """Ordered (prefix, transform) pairs for condition values."""
        return default_condition_filters()

    def additional_report_data(self) -> Dict[str, Any]:
        """Extra values merged into the renderer context."""
        return {}

    def row_value(self, row: Mapping[str, Any], keys: List[str]) -> Any:
        """Value of the added-in-rows column for one row."""
        return sum_row_values(row, keys)


REPORT_TYPES: Dict[str, Type[ReportType]] = {}


def register_report_type(cls: Type[ReportType]) -> Type[ReportType]:
    """Register a report type class; usable as a decorator.

    Raises ``ReportTypeError`` straight away when the class leaves a required
    method unimplemented or reuses another type's name.
    """
    if not inspect.isclass(cls) or not issubclass(cls, ReportType):
        raise ReportTypeError(f"{cls!r} is not a ReportType subclass")

    missing = [
        method for method in REQUIRED_METHODS
        if getattr(getattr(cls, method, None), "__isabstractmethod__", False)
    ]
    if missing:
        raise ReportTypeError(
            f"Report type {cls.__name__} must implement: {', '.join(missing)}"
        )
    if not cls.name:
        raise ReportTypeError(f"Report type {cls.__name__} has no name")

    existing = REPORT_TYPES.get(cls.name)
    if existing is not None and existing is not cls:
        raise ReportTypeError(f"Report type name '{cls.name}' is already registered by {existing.__name__}")

    REPORT_TYPES[cls.name] = cls
    logger.debug("Registered report type %s", cls.name)
    return cls


def get_report_type(name: str) -> ReportType:
    """Instantiate a registered report type by name."""
    cls = REPORT_TYPES.get(name)
    if cls is None:
        raise ReportTypeError(f"Unknown report type: {name}")
    return cls()


def available_report_types() -> Dict[str, ReportType]:
    return {name: cls() for name, cls in REPORT_TYPES.items()}


def _format_date(value: Any) -> Any:
    return value.strftime("%Y-%m-%d") if hasattr(value, "strftime") else value


def _format_amount(value: Any) -> Any:
    return f"{value:.2f}" if value is not None else value


@register_report_type
class InvoiceReport(ReportType):
    """Invoices joined to the customer they bill."""

    name = "invoices"

    def report_name(self) -> str:
        return "Invoice Report"

    def reportable_fields(self) -> Dict[str, str]:
        return {
            "Invoice.number": "Invoice",
            "Invoice.status": "Status",
            "Invoice.amount": "Amount",
            "Invoice.issued_at": "Issued",
            "Invoice.financial_year": "Financial Year",
            "Customer.name": "Customer",
            "Customer.region": "Region",
            "Customer.age": "Age",
        }

    def data_objects(self, session: Optional[Session]) -> DataSource:
        base = select(Invoice.id).select_from(
            Invoice.__table__.join(Customer.__table__, Invoice.customer_id == Customer.id)
        )
        return SqlAlchemyDataSource(
            session,
            columns={
                "Invoice.number": Invoice.number,
                "Invoice.status": Invoice.status,
                "Invoice.amount": Invoice.amount,
                "Invoice.issued_at": Invoice.issued_at,
                "Invoice.financial_year": Invoice.financial_year,
                "Customer.name": Customer.name,
                "Customer.region": Customer.region,
                "Customer.age": Customer.age,
            },
            base=base,
            identity=Invoice.id,
        )

    def field_mapping(self) -> Dict[str, Callable[[Any], Any]]:
        return {
            "Invoice.issued_at": _format_date,
            "Invoice.amount": _format_amount,
        }
