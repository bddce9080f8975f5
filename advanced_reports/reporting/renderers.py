"""Output renderers and converters, looked up by format tag."""

import html
import io
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Union

import pandas as pd

from advanced_reports.reporting.exceptions import RendererError
from advanced_reports.reporting.schemas import ReportPage, ReportResult

logger = logging.getLogger(__name__)

TOTAL_LABEL = "Total"

Content = Union[str, bytes]


def page_records(result: ReportResult, page: ReportPage) -> List[List[Any]]:
    """Display values of a page in column order, plus a totals row when configured."""
    keys = list(result.columns)
    records = [[row.display.get(key) for key in keys] for row in page.rows]
    if result.total_keys:
        totals_row = ["" for _ in keys]
        for index, key in enumerate(keys):
            if key in page.totals:
                totals_row[index] = page.totals[key]
        if keys and keys[0] not in page.totals:
            totals_row[0] = TOTAL_LABEL
        records.append(totals_row)
    return records


def page_frame(result: ReportResult, page: ReportPage) -> pd.DataFrame:
    return pd.DataFrame(page_records(result, page), columns=list(result.columns.values()))


class Renderer(ABC):
    """Renders a report result into the content of one format."""

    @abstractmethod
    def render(self, format: str, headers: Mapping[str, str], rows: ReportResult, context: Dict[str, Any]) -> Content:
        raise NotImplementedError


class HtmlRenderer(Renderer):
    """One ``<table>`` per page inside a minimal HTML document."""

    def render(self, format, headers, rows, context):
        title = html.escape(str(context.get("title") or ""))
        parts = [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{title}</title>",
            "</head>",
            "<body>",
            f'<h1 class="report-title">{title}</h1>',
        ]
        if context.get("description"):
            parts.append(f'<p class="report-description">{html.escape(str(context["description"]))}</p>')

        for page in rows.pages:
            if page.header:
                parts.append(f'<h2 class="report-page">{html.escape(page.header)}</h2>')
            frame = page_frame(rows, page)
            parts.append(frame.to_html(index=False, na_rep="", classes="report-table", border=0))

        now = context.get("now")
        if now is not None:
            parts.append(f'<p class="report-generated">Generated {html.escape(str(now))}</p>')
        parts.extend(["</body>", "</html>"])
        return "\n".join(parts)


class CsvRenderer(Renderer):
    """All pages in one table; each page is followed by its totals row."""

    def render(self, format, headers, rows, context):
        records = [record for page in rows.pages for record in page_records(rows, page)]
        frame = pd.DataFrame(records, columns=list(rows.columns.values()))
        return frame.to_csv(index=False)


class XlsxRenderer(Renderer):
    """One worksheet per page, with a styled header row."""

    def render(self, format, headers, rows, context):
        buffer = io.BytesIO()
        used = set()
        with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
            for number, page in enumerate(rows.pages, start=1):
                sheet_name = self._sheet_name(page.name or context.get("title") or "Report", number, used)
                page_frame(rows, page).to_excel(writer, sheet_name=sheet_name, index=False)
                self._format_sheet(writer.sheets[sheet_name], len(rows.columns))
        return buffer.getvalue()

    @staticmethod
    def _sheet_name(name: str, number: int, used: set) -> str:
        # Excel sheet name limit is 31 chars and forbids []:*?/\
        cleaned = "".join(ch for ch in str(name) if ch not in "[]:*?/\\")[:31] or f"Page {number}"
        if cleaned in used:
            cleaned = f"{cleaned[:26]} ({number})"
        used.add(cleaned)
        return cleaned

    @staticmethod
    def _format_sheet(worksheet, column_count: int) -> None:
        from openpyxl.styles import Alignment, Font, PatternFill

        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        for col_num in range(1, column_count + 1):
            cell = worksheet.cell(row=1, column=col_num)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = Alignment(horizontal="center", vertical="center")

        for column in worksheet.columns:
            max_length = max((len(str(cell.value)) for cell in column if cell.value is not None), default=0)
            worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)


class Converter(ABC):
    """Transforms content rendered in an intermediate format into a target format."""

    @abstractmethod
    def convert(self, content: Content, target_format: str, context: Dict[str, Any]) -> bytes:
        raise NotImplementedError


class PdfConverter(Converter):
    """Converts the HTML rendering of a report into a PDF with reportlab."""

    def convert(self, content, target_format, context):
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4, landscape
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

        markup = content.decode("utf-8") if isinstance(content, bytes) else content
        try:
            tables = pd.read_html(io.StringIO(markup), keep_default_na=False)
        except ValueError:
            # no tables in the markup
            tables = []
        except ImportError as e:
            raise RendererError(f"HTML parser unavailable for PDF conversion: {str(e)}") from e

        styles = getSampleStyleSheet()
        story = [Paragraph(html.escape(str(context.get("title") or "")), styles["Title"])]
        if context.get("description"):
            story.append(Paragraph(html.escape(str(context["description"])), styles["Normal"]))
            story.append(Spacer(1, 12))

        page_headers: List[Optional[str]] = list(context.get("page_headers") or [])
        for index, frame in enumerate(tables):
            header = page_headers[index] if index < len(page_headers) else None
            if header:
                story.append(Paragraph(html.escape(header), styles["Heading2"]))
            data = [[str(col) for col in frame.columns]]
            data.extend([["" if value is None else str(value) for value in row] for row in frame.values.tolist()])
            table = Table(data, repeatRows=1)
            table.setStyle(TableStyle([
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]))
            story.append(table)
            story.append(Spacer(1, 18))

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=landscape(A4), leftMargin=36, rightMargin=36, topMargin=36, bottomMargin=36)
        doc.build(story)
        return buffer.getvalue()


class RendererRegistry:
    """Capability map of format tag -> renderer, and target format -> converter."""

    def __init__(self):
        self._renderers: Dict[str, Renderer] = {}
        self._converters: Dict[str, Converter] = {}

    def register(self, format: str, renderer: Renderer) -> None:
        self._renderers[format.lower()] = renderer

    def register_converter(self, target_format: str, converter: Converter) -> None:
        self._converters[target_format.lower()] = converter

    def get(self, format: str) -> Optional[Renderer]:
        return self._renderers.get(format.lower())

    def get_converter(self, target_format: str) -> Optional[Converter]:
        return self._converters.get(target_format.lower())

    @property
    def formats(self) -> List[str]:
        return list(self._renderers)


def default_renderers() -> RendererRegistry:
    """Registry populated with the built-in renderers and the PDF converter."""
    registry = RendererRegistry()
    registry.register("html", HtmlRenderer())
    registry.register("csv", CsvRenderer())
    registry.register("xlsx", XlsxRenderer())
    registry.register_converter("pdf", PdfConverter())
    return registry
