"""
Unit tests for the reporting service logic.
Tests CRUD delegation, error mapping and report generation bookkeeping.
"""

import pytest
from unittest.mock import Mock, AsyncMock
from datetime import datetime
from fastapi import HTTPException

from advanced_reports.core.config import ReportSettings
from advanced_reports.reporting.models import AdvancedReport, ReportGenerationLog
from advanced_reports.reporting.schemas import GenerateReportRequest, ReportCreate, ReportUpdate
from advanced_reports.reporting.service import ReportService


def make_report(**overrides) -> AdvancedReport:
    """Transient report with every definition column filled in"""
    values = dict(
        id=1,
        report_id=None,
        title="Invoices",
        generated_report_title=None,
        description=None,
        report_type="invoices",
        report_fields=["Customer.name", "Invoice.number"],
        report_headers=[],
        condition_fields=[],
        condition_ops=[],
        condition_values=[],
        sort_by=["Invoice.number"],
        sort_dir=["ASC"],
        numeric_sort=["Invoice.number"],
        clear_columns=[],
        add_in_rows=[],
        add_cols=[],
        paginate_by=None,
        page_header="$name",
        report_params={},
        is_active=True,
        created_by="test_user",
        created_date=datetime(2024, 5, 1, 9, 0),
        updated_date=datetime(2024, 5, 1, 9, 0),
    )
    values.update(overrides)
    return AdvancedReport(**values)


class TestReportServiceCore:
    """Test core report service functionality"""

    @pytest.fixture
    def mock_report_dao(self):
        """Mock report DAO with async methods"""
        dao = Mock()
        dao.get_all = AsyncMock(return_value=[])
        dao.get_by_id = AsyncMock(return_value=None)
        dao.create = AsyncMock()
        dao.update = AsyncMock(return_value=None)
        dao.delete = AsyncMock(return_value=True)
        return dao

    @pytest.fixture
    def report_service(self, mock_report_dao, tmp_path):
        """Create report service with mocked dependencies"""
        return ReportService(
            report_dao=mock_report_dao,
            dw_session=None,
            settings=ReportSettings(storage_dir=str(tmp_path)),
        )

    async def test_get_all_reports_empty(self, report_service, mock_report_dao):
        """Test getting all reports when none exist"""
        result = await report_service.get_all()
        assert result == []
        mock_report_dao.get_all.assert_called_once()

    async def test_get_by_id_not_found(self, report_service, mock_report_dao):
        """Test getting a report that doesn't exist"""
        assert await report_service.get_by_id(999) is None
        mock_report_dao.get_by_id.assert_called_once_with(999)

    async def test_get_by_id_maps_model(self, report_service, mock_report_dao):
        """Test a stored report is returned as a read schema"""
        mock_report_dao.get_by_id.return_value = make_report()
        report = await report_service.get_by_id(1)
        assert report.title == "Invoices"
        assert report.numeric_sort == ["Invoice.number"]

    async def test_create_rejects_unknown_report_type(self, report_service, mock_report_dao):
        """Test creating a report of an unregistered type fails with 400"""
        data = ReportCreate(title="Payroll", report_type="payroll", report_fields=["Employee.name"])
        with pytest.raises(HTTPException) as exc_info:
            await report_service.create(data)
        assert exc_info.value.status_code == 400
        mock_report_dao.create.assert_not_called()

    async def test_create_rejects_unknown_fields(self, report_service, mock_report_dao):
        """Test fields the report type doesn't offer are rejected with 400"""
        data = ReportCreate(title="Invoices", report_type="invoices", report_fields=["Invoice.number", "Bogus"])
        with pytest.raises(HTTPException) as exc_info:
            await report_service.create(data)
        assert exc_info.value.status_code == 400
        assert "Bogus" in exc_info.value.detail
        mock_report_dao.create.assert_not_called()

    async def test_update_rejects_unknown_fields(self, report_service, mock_report_dao):
        """Test updated fields are checked against the stored report's type"""
        mock_report_dao.get_by_id.return_value = make_report()
        with pytest.raises(HTTPException) as exc_info:
            await report_service.update(1, ReportUpdate(report_fields=["Employee.name"]))
        assert exc_info.value.status_code == 400
        mock_report_dao.update.assert_not_called()

    async def test_update_missing_report(self, report_service):
        """Test updating a missing report returns None"""
        assert await report_service.update(5, Mock()) is None

    async def test_delete_delegates(self, report_service, mock_report_dao):
        """Test soft delete goes through the DAO"""
        assert await report_service.delete(3) is True
        mock_report_dao.delete.assert_called_once_with(3)

    async def test_preview_missing_report(self, report_service):
        """Test previewing a missing report fails with 404"""
        with pytest.raises(HTTPException) as exc_info:
            await report_service.preview(42)
        assert exc_info.value.status_code == 404

    async def test_get_file_without_stored_file(self, report_service, mock_report_dao):
        """Test downloading a format that wasn't generated fails with 404"""
        mock_report_dao.get_by_id.return_value = make_report(id=2, report_id=1, html_file=None)
        with pytest.raises(HTTPException) as exc_info:
            await report_service.get_file(2, "html")
        assert exc_info.value.status_code == 404

    def test_report_types_listing(self, report_service):
        """Test registered report types are listed with their fields"""
        types = {info.name: info for info in report_service.get_report_types()}
        assert types["invoices"].label == "Invoice Report"
        assert "Customer.name" in types["invoices"].fields

    def test_unknown_report_type_fields(self, report_service):
        """Test fields of an unknown type fail with 404"""
        with pytest.raises(HTTPException) as exc_info:
            report_service.get_report_type_fields("payroll")
        assert exc_info.value.status_code == 404


class TestReportGeneration:
    """Test prepare-and-generate against the sample warehouse"""

    @pytest.fixture
    def template(self):
        return make_report(generated_report_title="Invoice Run")

    @pytest.fixture
    def mock_report_dao(self, template):
        """DAO that snapshots the template into report 2"""
        dao = Mock()
        dao.get_by_id = AsyncMock(return_value=template)

        async def duplicate(source, title, created_by="system"):
            return make_report(id=2, report_id=source.id, title=title)

        async def save_files(report, files):
            for format, location in files.items():
                setattr(report, f"{format}_file", location)
            return report

        dao.duplicate = AsyncMock(side_effect=duplicate)
        dao.save_files = AsyncMock(side_effect=save_files)
        dao.create_generation_log = AsyncMock(side_effect=lambda log: log)
        return dao

    @pytest.fixture
    def report_service(self, mock_report_dao, dw_db_session, sample_invoices, tmp_path):
        return ReportService(
            report_dao=mock_report_dao,
            dw_session=dw_db_session,
            settings=ReportSettings(storage_dir=str(tmp_path), formats=["html", "csv", "txt"]),
        )

    async def test_generates_each_format_and_logs(self, report_service, mock_report_dao, tmp_path):
        """Test files are stored under the report folder and every format is logged"""
        response = await report_service.prepare_and_generate(1)

        assert response.report.id == 2
        assert response.report.report_id == 1
        assert response.report.title == "Invoice Run"
        assert set(response.report.files) == {"html", "csv"}
        csv_path = tmp_path / "advanced-reports" / "1" / "2" / "Invoice-Run.csv"
        assert response.report.files["csv"] == str(csv_path)
        assert csv_path.read_text(encoding="utf-8").splitlines()[1:] == [
            "Acme,2-doc",
            "Initech,9-misc",
            "Acme,11-doc",
            "Globex,100",
        ]

        logs = [call.args[0] for call in mock_report_dao.create_generation_log.call_args_list]
        assert [log.format for log in logs] == ["html", "csv", "txt"]
        assert all(isinstance(log, ReportGenerationLog) for log in logs)
        assert [log.success for log in logs] == [True, True, False]
        assert logs[0].row_count == 4
        assert logs[2].error_message == "Formatter for 'txt' not found."

    async def test_request_title_wins(self, report_service):
        """Test an explicit title names the generated report"""
        response = await report_service.prepare_and_generate(1, GenerateReportRequest(title="Custom Title"))
        assert response.report.title == "Custom Title"

    async def test_generated_report_cannot_be_regenerated(self, report_service, mock_report_dao):
        """Test only templates can be generated"""
        mock_report_dao.get_by_id.return_value = make_report(id=2, report_id=1)
        with pytest.raises(HTTPException) as exc_info:
            await report_service.prepare_and_generate(2)
        assert exc_info.value.status_code == 400
