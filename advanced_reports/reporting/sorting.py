"""Sort planner: compiles a definition's sort fields into ordered sort keys."""

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, List

from advanced_reports.reporting.fields import FieldRegistry, dotted_field_to_unique, normalize_key_list
from advanced_reports.reporting.schemas import CompiledSort, ReportDefinition, SortDirection

logger = logging.getLogger(__name__)

IDENTITY_FIELD = "ID"

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?")


def numeric_sort_key(value: Any) -> Decimal:
    """Coerce a value to the number at its start, so ``"11-doc"`` sorts as 11.

    Values without a leading number coerce to zero, as a ``+0`` cast does in SQL.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        return Decimal(int(value))
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return Decimal(0)
    try:
        return Decimal(match.group(0).strip())
    except InvalidOperation:
        return Decimal(0)


class SortPlanner:
    """Builds the sort clause for a report definition."""

    def compile(self, definition: ReportDefinition, registry: FieldRegistry) -> List[CompiledSort]:
        sort_fields = definition.sort_by
        if not sort_fields:
            return [CompiledSort(field=IDENTITY_FIELD, key=IDENTITY_FIELD)]

        dirs = definition.sort_dir
        numeric = set(definition.numeric_sort) | set(normalize_key_list(definition.numeric_sort))
        direction = SortDirection.ASC
        compiled: List[CompiledSort] = []

        for index, field in enumerate(sort_fields):
            # never sort on something that isn't reportable
            if field not in registry:
                logger.debug("Skipping sort on unknown field %r", field)
                continue

            # use the direction at this slot if valid, otherwise keep the last one
            if index < len(dirs) and dirs[index] in (SortDirection.ASC.value, SortDirection.DESC.value):
                direction = SortDirection(dirs[index])

            key = dotted_field_to_unique(field)
            compiled.append(
                CompiledSort(
                    field=field,
                    key=key,
                    direction=direction,
                    numeric=field in numeric or key in numeric,
                )
            )
        return compiled


def sort_clause(sorts: List[CompiledSort]) -> str:
    """Human readable ORDER BY text, e.g. ``Age DESC, Name DESC``."""
    return ", ".join(sort.expression() for sort in sorts)
