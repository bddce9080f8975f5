"""
Unit tests for report type registration.
"""

import pytest

from advanced_reports.datasource.memory import InMemoryDataSource
from advanced_reports.reporting.exceptions import ReportTypeError
from advanced_reports.reporting.report_types import (
    REPORT_TYPES,
    InvoiceReport,
    ReportType,
    available_report_types,
    get_report_type,
    register_report_type,
)


class TestReportTypeRegistry:
    """Test the report type registry"""

    def test_invoice_report_is_registered(self):
        """Test the built-in invoice type is available by name"""
        report_type = get_report_type("invoices")
        assert isinstance(report_type, InvoiceReport)
        assert report_type.report_name() == "Invoice Report"
        assert "Invoice.number" in report_type.reportable_fields()
        assert "invoices" in available_report_types()

    def test_unknown_type_raises(self):
        """Test looking up an unregistered type fails"""
        with pytest.raises(ReportTypeError, match="Unknown report type"):
            get_report_type("payroll")

    def test_missing_required_methods_fail_registration(self):
        """Test registration names every unimplemented required method"""
        class Incomplete(ReportType):
            name = "incomplete"

            def report_name(self):
                return "Incomplete"

        with pytest.raises(ReportTypeError) as exc_info:
            register_report_type(Incomplete)
        assert "reportable_fields" in str(exc_info.value)
        assert "data_objects" in str(exc_info.value)
        assert "incomplete" not in REPORT_TYPES

    def test_nameless_type_fails_registration(self):
        """Test a report type must declare a registry name"""
        class Nameless(ReportType):
            def report_name(self):
                return "Nameless"

            def reportable_fields(self):
                return {}

            def data_objects(self, session):
                return InMemoryDataSource([])

        with pytest.raises(ReportTypeError, match="has no name"):
            register_report_type(Nameless)

    def test_duplicate_name_fails_registration(self):
        """Test two classes cannot share a name"""
        class OtherInvoices(InvoiceReport):
            pass

        with pytest.raises(ReportTypeError, match="already registered"):
            register_report_type(OtherInvoices)

    def test_register_and_use_custom_type(self):
        """Test a complete report type registers and instantiates"""
        @register_report_type
        class Notes(ReportType):
            name = "notes"

            def report_name(self):
                return "Notes"

            def reportable_fields(self):
                return {"Note.text": "Text"}

            def data_objects(self, session):
                return InMemoryDataSource([{"Note.text": "hello"}])

        try:
            report_type = get_report_type("notes")
            assert report_type.condition_filters()[0][0] == "date:"
            assert report_type.field_mapping() == {}
            assert report_type.additional_report_data() == {}
        finally:
            REPORT_TYPES.pop("notes", None)

    def test_non_report_type_is_rejected(self):
        """Test only ReportType subclasses can be registered"""
        with pytest.raises(ReportTypeError):
            register_report_type(dict)
