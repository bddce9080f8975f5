"""API router for the reporting module."""

from typing import Dict, List, Optional
from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import FileResponse, Response

from advanced_reports.core.dependencies import SessionDep, DWSessionDep, SettingsDep
from advanced_reports.reporting.dao import ReportDAO
from advanced_reports.reporting.service import ReportService
from advanced_reports.reporting.schemas import (
    GeneratedReportSummary,
    GenerateReportRequest,
    GenerateReportResponse,
    GenerationLogRead,
    ReportCreate,
    ReportPreview,
    ReportRead,
    ReportTypeInfo,
    ReportUpdate,
)

router = APIRouter(prefix="/reports", tags=["reporting"])

MEDIA_TYPES = {
    "html": "text/html",
    "csv": "text/csv",
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


# Dependency functions
def get_report_dao(db: SessionDep) -> ReportDAO:
    return ReportDAO(db)


def get_report_service(
    dw_db: DWSessionDep,
    settings: SettingsDep,
    report_dao: ReportDAO = Depends(get_report_dao),
) -> ReportService:
    return ReportService(report_dao, dw_db, settings=settings)


def _parameters(request: Request) -> Dict[str, str]:
    """Query string values, available to ``param:`` conditions."""
    return dict(request.query_params)


# ===== REPORT TYPE ENDPOINTS =====


@router.get("/types", response_model=List[ReportTypeInfo])
async def get_report_types(service: ReportService = Depends(get_report_service)) -> List[ReportTypeInfo]:
    """Get all registered report types."""
    return service.get_report_types()


@router.get("/types/{name}/fields", response_model=Dict[str, str])
async def get_report_type_fields(name: str, service: ReportService = Depends(get_report_service)) -> Dict[str, str]:
    """Get the reportable fields of a report type."""
    return service.get_report_type_fields(name)


# ===== REPORT CONFIGURATION ENDPOINTS =====


@router.get("/", response_model=List[ReportRead])
async def get_all_reports(service: ReportService = Depends(get_report_service)) -> List[ReportRead]:
    """Get all report templates."""
    return await service.get_all()


@router.get("/{report_id}", response_model=ReportRead)
async def get_report_by_id(report_id: int, service: ReportService = Depends(get_report_service)) -> ReportRead:
    """Get a specific report by ID."""
    report = await service.get_by_id(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.post("/", response_model=ReportRead, status_code=201)
async def create_report(report_data: ReportCreate, service: ReportService = Depends(get_report_service)) -> ReportRead:
    """Create a new report template."""
    return await service.create(report_data)


@router.patch("/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: int, report_data: ReportUpdate, service: ReportService = Depends(get_report_service)
) -> ReportRead:
    """Update an existing report."""
    report = await service.update(report_id, report_data)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.delete("/{report_id}")
async def delete_report(report_id: int, service: ReportService = Depends(get_report_service)) -> Dict[str, str]:
    """Delete a report."""
    success = await service.delete(report_id)
    if not success:
        raise HTTPException(status_code=404, detail="Report not found")
    return {"message": "Report deleted successfully"}


# ===== PREVIEW AND RENDER ENDPOINTS =====


@router.get("/{report_id}/preview", response_model=ReportPreview)
async def preview_report(
    report_id: int, request: Request, service: ReportService = Depends(get_report_service)
) -> ReportPreview:
    """Compiled conditions and sort plus the shaped rows of a report."""
    return await service.preview(report_id, _parameters(request))


@router.get("/{report_id}/render/{format}")
async def render_report(
    report_id: int, format: str, request: Request, service: ReportService = Depends(get_report_service)
) -> Response:
    """Render a report in one format without storing it."""
    artifact = await service.render(report_id, format, _parameters(request))
    if artifact.is_placeholder:
        return Response(content=artifact.content, media_type="text/plain")
    return Response(content=artifact.content, media_type=MEDIA_TYPES.get(artifact.format, "application/octet-stream"))


# ===== GENERATION ENDPOINTS =====


@router.post("/{report_id}/generate", response_model=GenerateReportResponse)
async def generate_report(
    report_id: int,
    request: Optional[GenerateReportRequest] = Body(default=None),
    service: ReportService = Depends(get_report_service),
) -> GenerateReportResponse:
    """Snapshot a report template and generate all enabled formats."""
    return await service.prepare_and_generate(report_id, request)


@router.get("/{report_id}/generated", response_model=List[GeneratedReportSummary])
async def get_generated_reports(
    report_id: int, service: ReportService = Depends(get_report_service)
) -> List[GeneratedReportSummary]:
    """Get the reports generated from a template."""
    return await service.get_generated_reports(report_id)


@router.get("/{report_id}/logs", response_model=List[GenerationLogRead])
async def get_generation_logs(
    report_id: int, limit: int = 50, service: ReportService = Depends(get_report_service)
) -> List[GenerationLogRead]:
    """Get per-format generation logs of a generated report."""
    return await service.get_generation_logs(report_id, limit)


@router.get("/{report_id}/files/{format}")
async def download_report_file(
    report_id: int, format: str, service: ReportService = Depends(get_report_service)
) -> FileResponse:
    """Download a stored file of a generated report."""
    path = await service.get_file(report_id, format)
    return FileResponse(path, media_type=MEDIA_TYPES.get(format.lower(), "application/octet-stream"), filename=path.name)
