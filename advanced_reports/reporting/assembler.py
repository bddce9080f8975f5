"""Report assembler: turns a report definition into rendered, optionally stored, output."""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from advanced_reports.core.config import ReportSettings, get_settings
from advanced_reports.datasource.base import DataSource
from advanced_reports.reporting.conditions import ConditionBuilder
from advanced_reports.reporting.exceptions import RendererError, ReportError
from advanced_reports.reporting.fields import FieldRegistry, compute_headers, disambiguate_fields
from advanced_reports.reporting.postprocess import ColumnPostProcessor
from advanced_reports.reporting.renderers import RendererRegistry, default_renderers
from advanced_reports.reporting.report_types import ReportType
from advanced_reports.reporting.schemas import (
    CompiledCondition,
    CompiledSort,
    GeneratedArtifact,
    GenerationOutcome,
    ReportDefinition,
    ReportResult,
)
from advanced_reports.reporting.sorting import SortPlanner
from advanced_reports.reporting.storage import ArtifactStore, report_file_name

logger = logging.getLogger(__name__)


class CompiledReport:
    """Headers, predicates and sort keys compiled from one definition."""

    def __init__(self, headers: Dict[str, str], fields: Dict[str, str],
                 conditions: List[CompiledCondition], sort: List[CompiledSort]):
        self.headers = headers
        self.fields = fields
        self.conditions = conditions
        self.sort = sort


class ReportAssembler:
    """Orchestrates field resolution, query compilation, execution, shaping and rendering.

    One assembler serves one report type and data source; every call builds its own
    result and discards it once the artifact exists.
    """

    def __init__(
        self,
        report_type: ReportType,
        data_source: DataSource,
        renderers: Optional[RendererRegistry] = None,
        store: Optional[ArtifactStore] = None,
        settings: Optional[ReportSettings] = None,
    ):
        self.report_type = report_type
        self.data_source = data_source
        self.renderers = renderers or default_renderers()
        self.settings = settings or get_settings()
        self.store = store or ArtifactStore(self.settings.storage_dir)
        self.registry = FieldRegistry(report_type.reportable_fields())
        self.sort_planner = SortPlanner()
        self.post_processor = ColumnPostProcessor(
            field_mapping=report_type.field_mapping(),
            row_value=report_type.row_value,
        )

    # ===== QUERY COMPILATION =====

    def reportable(self, definition: ReportDefinition) -> ReportDefinition:
        """Drop selected fields the report type can't report on, with their headers."""
        if all(field in self.registry for field in definition.report_fields):
            return definition
        fields, headers = [], []
        for index, field in enumerate(definition.report_fields):
            if field not in self.registry:
                logger.warning("Report '%s' skips unknown field '%s'", definition.title, field)
                continue
            fields.append(field)
            headers.append(definition.report_headers[index] if index < len(definition.report_headers) else None)
        if not fields:
            raise ReportError(f"Report '{definition.title}' has no reportable fields")
        return definition.model_copy(update={"report_fields": fields, "report_headers": headers})

    def compile(self, definition: ReportDefinition, parameters: Optional[Mapping[str, str]] = None) -> CompiledReport:
        definition = self.reportable(definition)
        headers = compute_headers(definition, self.registry)
        fields = dict(zip(disambiguate_fields(definition.report_fields), definition.report_fields))
        builder = ConditionBuilder(self.report_type.condition_filters(), parameters)
        conditions = builder.compile(definition, self.registry)
        sort = self.sort_planner.compile(definition, self.registry)
        return CompiledReport(headers, fields, conditions, sort)

    def build_result(self, definition: ReportDefinition, parameters: Optional[Mapping[str, str]] = None) -> ReportResult:
        """Execute a definition against the data source and shape the rows."""
        definition = self.reportable(definition)
        compiled = self.compile(definition, parameters)
        paginate_by = definition.paginate_by if definition.paginate_by in self.registry else None
        raw_rows = self.data_source.execute(compiled.fields, compiled.conditions, compiled.sort, paginate_by)
        logger.debug("Report '%s' fetched %s rows", definition.title, len(raw_rows))
        if paginate_by != definition.paginate_by:
            definition = definition.model_copy(update={"paginate_by": None})
        return self.post_processor.build_result(raw_rows, compiled.headers, definition)

    # ===== RENDERING =====

    def render_context(self, definition: ReportDefinition, format: str, result: ReportResult) -> Dict[str, Any]:
        context = {
            "title": definition.title,
            "description": definition.description,
            "format": format,
            "now": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            "report_name": self.report_type.report_name(),
            "page_headers": [page.header for page in result.pages],
        }
        context.update(self.report_type.additional_report_data())
        return context

    def create_report(
        self,
        definition: ReportDefinition,
        format: str = "html",
        store: bool = False,
        parameters: Optional[Mapping[str, str]] = None,
        folder: Optional[Path] = None,
        result: Optional[ReportResult] = None,
    ) -> GeneratedArtifact:
        """Render a definition in ``format``; with ``store`` the content is persisted.

        Formats listed in ``conversion_formats`` are rendered in their intermediate
        format first and then converted, keeping the requested format on the artifact.
        """
        format = format.lower()
        render_format = self.settings.conversion_formats.get(format, format)
        convert_to = format if render_format != format else None

        if result is None:
            result = self.build_result(definition, parameters)
        context = self.render_context(definition, format, result)

        renderer = self.renderers.get(render_format)
        if renderer is None:
            logger.warning("No renderer registered for format '%s'", render_format)
            return GeneratedArtifact(
                format=format, content=f"Formatter for '{render_format}' not found.", is_placeholder=True
            )

        try:
            content = renderer.render(render_format, result.columns, result, context)
        except ReportError:
            raise
        except Exception as e:
            raise RendererError(f"Error rendering {render_format}: {str(e)}") from e
        if not content:
            content = " "

        if convert_to:
            converter = self.renderers.get_converter(convert_to)
            if converter is None:
                logger.warning("No converter registered for format '%s'", convert_to)
                return GeneratedArtifact(
                    format=format, content=f"Converter for '{convert_to}' not found.", is_placeholder=True
                )
            try:
                content = converter.convert(content, convert_to, context)
            except ReportError:
                raise
            except Exception as e:
                raise RendererError(f"Error converting to {convert_to}: {str(e)}") from e

        if store:
            name = report_file_name(definition.title, format)
            location = self.store.persist(content, name, folder)
            return GeneratedArtifact(format=format, filename=location, row_count=result.row_count)
        return GeneratedArtifact(format=format, content=content, row_count=result.row_count)

    def generate(
        self,
        definition: ReportDefinition,
        format: str,
        persist: bool = False,
        parameters: Optional[Mapping[str, str]] = None,
        folder: Optional[Path] = None,
    ) -> GeneratedArtifact:
        return self.create_report(definition, format, store=persist, parameters=parameters, folder=folder)

    def generate_all(
        self,
        definition: ReportDefinition,
        formats: Optional[Iterable[str]] = None,
        persist: bool = True,
        parameters: Optional[Mapping[str, str]] = None,
        folder: Optional[Path] = None,
    ) -> List[GenerationOutcome]:
        """Generate each format in turn; one format failing doesn't stop the others."""
        outcomes = []
        for format in list(formats or self.settings.enabled_formats()):
            start_time = time.time()
            try:
                artifact = self.generate(definition, format, persist=persist, parameters=parameters, folder=folder)
                outcome = GenerationOutcome(format=format, success=True, artifact=artifact)
            except ReportError as e:
                logger.error("Generating '%s' as %s failed: %s", definition.title, format, e)
                outcome = GenerationOutcome(format=format, success=False, error=str(e))
            outcome.duration_ms = (time.time() - start_time) * 1000
            outcomes.append(outcome)
        return outcomes
