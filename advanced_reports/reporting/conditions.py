"""Condition builder: compiles a definition's filter tuples into safe predicates."""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from advanced_reports.reporting.condition_filters import (
    ConditionContext,
    ValueTransform,
    default_condition_filters,
)
from advanced_reports.reporting.fields import FieldRegistry, dotted_field_to_unique
from advanced_reports.reporting.schemas import CompiledCondition, ReportDefinition

logger = logging.getLogger(__name__)

# operator -> label shown when editing a definition
ALLOWED_CONDITIONS = {
    "=": "=",
    "<>": "!=",
    ">=": ">=",
    ">": ">",
    "<": "<",
    "<=": "<=",
    "IN": "In List",
    "IS": "IS",
    "IS NOT": "IS NOT",
}

# a transform whose output starts with a prefix again is re-applied at most this often
MAX_FILTER_PASSES = 5


def _slot(values: Sequence[Optional[str]], index: int) -> Optional[str]:
    return values[index] if index < len(values) else None


class ConditionBuilder:
    """Validates (field, operator, value) tuples and applies value transforms.

    ``parameters`` is the request-time parameter source consulted by ``param:``
    values before the definition's own defaults.
    """

    def __init__(
        self,
        filters: Optional[List[Tuple[str, ValueTransform]]] = None,
        parameters: Optional[Mapping[str, str]] = None,
    ):
        self.filters = list(filters) if filters is not None else default_condition_filters()
        self.parameters = parameters or {}

    def compile(
        self, definition: ReportDefinition, registry: Optional[FieldRegistry] = None
    ) -> List[CompiledCondition]:
        fields = definition.condition_fields
        ops = definition.condition_ops
        vals = definition.condition_values
        context = ConditionContext(definition, self.parameters)

        compiled: List[CompiledCondition] = []
        for index, field in enumerate(fields):
            op = _slot(ops, index)
            raw = _slot(vals, index)
            # an incomplete slot ends the condition list
            if not op or not raw:
                break

            if op not in ALLOWED_CONDITIONS:
                logger.debug("Dropping condition %s: unsupported operator %r", index, op)
                continue
            if not field or (registry is not None and field not in registry):
                logger.debug("Dropping condition %s: unknown field %r", index, field)
                continue

            value = self._shape_value(op, raw)
            value = self._apply_filters(value, context)
            compiled.append(
                CompiledCondition(
                    field=field, key=dotted_field_to_unique(field), operator=op, value=value
                )
            )
        return compiled

    def _shape_value(self, op: str, raw: str) -> Any:
        if op == "IN":
            return raw.split(",")
        if op in ("IS", "IS NOT") and raw.lower() == "null":
            return None
        return raw

    def _apply_filters(self, value: Any, context: ConditionContext) -> Any:
        if isinstance(value, list):
            return [self.transform(item, context) for item in value]
        return self.transform(value, context)

    def transform(self, value: Any, context: ConditionContext) -> Any:
        """Run prefix transforms in registration order until no prefix matches."""
        if not self.filters:
            return value
        for _ in range(MAX_FILTER_PASSES):
            matched = False
            for prefix, transform in self.filters:
                if isinstance(value, str) and value.startswith(prefix):
                    value = transform(value[len(prefix):], context)
                    matched = True
            if not matched:
                break
        return value
