"""Column post-processing of fetched rows: formatting, blanking, added values and totals.

Every pass depends on row order, so rows must already be in their final sort order.
"""

import logging
from decimal import Decimal, InvalidOperation
from string import Template
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from advanced_reports.reporting.fields import disambiguate_fields, dotted_field_to_unique, normalize_key_list
from advanced_reports.reporting.schemas import ReportDefinition, ReportPage, ReportResult, ReportRow

logger = logging.getLogger(__name__)

ROW_TOTAL_KEY = "row_total"
ROW_TOTAL_HEADER = "Total"

RowValue = Callable[[Mapping[str, Any], List[str]], Any]


def to_decimal(value: Any) -> Decimal:
    """Numeric value of a cell; anything unparseable counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal(0)


def sum_row_values(row: Mapping[str, Any], keys: List[str]) -> Decimal:
    """Default added-in-rows derivation: the sum of the selected cells."""
    return sum((to_decimal(row.get(key)) for key in keys), Decimal(0))


class ColumnPostProcessor:
    """Shapes raw data source rows into a ``ReportResult``.

    ``field_mapping`` maps a field name or key to a callable formatting its display
    value. ``row_value`` derives the added-in-rows column.
    """

    def __init__(
        self,
        field_mapping: Optional[Mapping[str, Callable[[Any], Any]]] = None,
        row_value: Optional[RowValue] = None,
    ):
        self.field_mapping = dict(field_mapping or {})
        self.row_value = row_value or sum_row_values

    def build_result(
        self,
        raw_rows: Iterable[Mapping[str, Any]],
        headers: Dict[str, str],
        definition: ReportDefinition,
    ) -> ReportResult:
        columns = dict(headers)
        formatters = self._formatters(definition.report_fields, list(columns))

        rows = []
        for raw in raw_rows:
            data = dict(raw)
            display = {}
            for key in columns:
                value = data.get(key)
                formatter = formatters.get(key)
                display[key] = formatter(value) if formatter else value
            rows.append(ReportRow(data=data, display=display))

        pages = self.paginate(rows, definition)

        clear_keys = [key for key in normalize_key_list(definition.clear_columns) if key in columns]
        added_keys = [key for key in normalize_key_list(definition.add_in_rows) if key in columns]
        if added_keys:
            columns[ROW_TOTAL_KEY] = ROW_TOTAL_HEADER
        total_keys = [key for key in normalize_key_list(definition.add_cols) if key in columns]

        for page in pages:
            self.blank_duplicates(page.rows, clear_keys)
            if added_keys:
                self.add_row_values(page.rows, added_keys)
            if total_keys:
                page.totals = self.compute_totals(page.rows, total_keys)

        return ReportResult(columns=columns, pages=pages, total_keys=total_keys)

    def _formatters(self, fields: List[str], keys: List[str]) -> Dict[str, Callable[[Any], Any]]:
        formatters = {}
        for field, key in zip(fields, disambiguate_fields(fields)):
            formatter = (
                self.field_mapping.get(key)
                or self.field_mapping.get(field)
                or self.field_mapping.get(dotted_field_to_unique(field))
            )
            if formatter and key in keys:
                formatters[key] = formatter
        return formatters

    def paginate(self, rows: List[ReportRow], definition: ReportDefinition) -> List[ReportPage]:
        """Split rows into pages by the pagination field, keeping first-seen order."""
        if not definition.paginate_by:
            return [ReportPage(rows=rows)]

        key = dotted_field_to_unique(definition.paginate_by)
        template = Template(definition.page_header or "$name")
        pages: Dict[Any, ReportPage] = {}
        for row in rows:
            value = row.data.get(key)
            page = pages.get(value)
            if page is None:
                name = "" if value is None else str(value)
                page = ReportPage(name=name, header=template.safe_substitute(name=name))
                pages[value] = page
            page.rows.append(row)
        return list(pages.values()) or [ReportPage(rows=[])]

    def blank_duplicates(self, rows: List[ReportRow], keys: List[str]) -> None:
        """Blank a cell's display value when it repeats the previous row's value."""
        for key in keys:
            previous = object()
            for row in rows:
                current = row.data.get(key)
                if current == previous:
                    row.display[key] = ""
                previous = current

    def add_row_values(self, rows: List[ReportRow], keys: List[str]) -> None:
        for row in rows:
            value = self.row_value(row.data, keys)
            row.data[ROW_TOTAL_KEY] = value
            row.display[ROW_TOTAL_KEY] = value

    def compute_totals(self, rows: List[ReportRow], keys: List[str]) -> Dict[str, Decimal]:
        """Column sums over the page; non-numeric cells contribute zero."""
        totals = {key: Decimal(0) for key in keys}
        for row in rows:
            for key in keys:
                totals[key] += to_decimal(row.data.get(key))
        return totals
