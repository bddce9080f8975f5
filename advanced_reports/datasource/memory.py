"""Data source over an in-memory list of records."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from advanced_reports.datasource.base import DataSource
from advanced_reports.reporting.exceptions import DataSourceError
from advanced_reports.reporting.fields import dotted_field_to_unique
from advanced_reports.reporting.schemas import CompiledCondition, CompiledSort, SortDirection
from advanced_reports.reporting.sorting import IDENTITY_FIELD, numeric_sort_key

logger = logging.getLogger(__name__)


def _comparable(cell: Any, value: Any) -> Any:
    """Bring a condition value to the cell's type, the way a database would."""
    if value is None or cell is None:
        return value
    if isinstance(cell, (int, float, Decimal)) and not isinstance(cell, bool):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return value
    return str(value)


def _cell(cell: Any) -> Any:
    if isinstance(cell, (int, float)) and not isinstance(cell, bool):
        return Decimal(str(cell))
    return cell


_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "=": lambda a, b: a == b,
    "<>": lambda a, b: a != b,
    ">=": lambda a, b: a >= b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
}


def matches(record: Mapping[str, Any], condition: CompiledCondition) -> bool:
    """Evaluate one compiled condition against a record with SQL null semantics."""
    cell = record.get(condition.field)
    op = condition.operator
    value = condition.value

    if op in ("IS", "IS NOT"):
        if value is None:
            result = cell is None
        else:
            result = cell is not None and _cell(cell) == _comparable(cell, value)
        return result if op == "IS" else not result

    if cell is None:
        return False

    if op == "IN":
        values = value if isinstance(value, list) else [value]
        return any(_cell(cell) == _comparable(cell, item) for item in values)

    comparator = _COMPARATORS.get(op)
    if comparator is None:
        raise DataSourceError(f"Unsupported operator: {op}")
    try:
        return comparator(_cell(cell), _comparable(cell, value))
    except TypeError:
        return False


class InMemoryDataSource(DataSource):
    """Filters, sorts and projects a list of mappings keyed by field name.

    Records without an ``ID`` keep their list position for the identity sort.
    """

    def __init__(self, records: Sequence[Mapping[str, Any]]):
        self.records = list(records)

    def execute(
        self,
        fields: Mapping[str, str],
        predicate: Sequence[CompiledCondition],
        sort: Sequence[CompiledSort],
        paginate_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        indexed = [
            (position, record)
            for position, record in enumerate(self.records)
            if all(matches(record, condition) for condition in predicate)
        ]

        # stable sorts applied from the least significant key
        for item in reversed(list(sort)):
            indexed.sort(
                key=lambda pair, item=item: self._sort_value(pair, item),
                reverse=item.direction == SortDirection.DESC,
            )
        if paginate_by:
            indexed.sort(key=lambda pair: self._null_first(pair[1].get(paginate_by)))

        rows = []
        for _, record in indexed:
            row = {key: record.get(field) for key, field in fields.items()}
            if paginate_by:
                row.setdefault(dotted_field_to_unique(paginate_by), record.get(paginate_by))
            rows.append(row)
        return rows

    def _sort_value(self, pair, item: CompiledSort):
        position, record = pair
        if item.field == IDENTITY_FIELD and IDENTITY_FIELD not in record:
            return (1, position)
        value = record.get(item.field)
        if item.numeric:
            return (1, numeric_sort_key(value))
        return self._null_first(value)

    @staticmethod
    def _null_first(value: Any):
        if value is None:
            return (0, "")
        return (1, _cell(value))
