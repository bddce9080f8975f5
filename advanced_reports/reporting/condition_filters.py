"""Value transforms applied to condition values that start with a registered prefix.

A transform receives everything after its prefix plus the compilation context, and
returns the replacement value. Arguments inside a value are separated by ``|``,
e.g. ``date:-1 month|%Y-%m-%d`` or ``param:year``.
"""

import logging
import re
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from advanced_reports.reporting.schemas import ReportDefinition

logger = logging.getLogger(__name__)

ARGUMENT_SEPARATOR = "|"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ANCHORS = {"now", "today", "yesterday", "tomorrow"}
_OFFSET_RE = re.compile(
    r"([+-]?)\s*(\d+)\s*(second|sec|minute|min|hour|day|week|fortnight|month|year)s?(\s+ago)?",
    re.IGNORECASE,
)
_UNIT_KWARGS = {
    "second": ("seconds", 1),
    "sec": ("seconds", 1),
    "minute": ("minutes", 1),
    "min": ("minutes", 1),
    "hour": ("hours", 1),
    "day": ("days", 1),
    "week": ("weeks", 1),
    "fortnight": ("weeks", 2),
    "month": ("months", 1),
    "year": ("years", 1),
}


class ConditionContext:
    """What a transform may consult: the definition and the request parameters."""

    def __init__(self, definition: ReportDefinition, parameters: Optional[Mapping[str, str]] = None):
        self.definition = definition
        self.parameters = parameters or {}


ValueTransform = Callable[[str, ConditionContext], str]


def split_args(value: str) -> List[str]:
    return value.split(ARGUMENT_SEPARATOR)


class ValueTransforms:
    """Built-in condition value transforms."""

    def __init__(self, clock: Optional[Callable[[], pd.Timestamp]] = None):
        self.clock = clock or pd.Timestamp.now

    def relative_date_value(self, value: str, context: ConditionContext) -> str:
        """Evaluate a date expression such as ``today``, ``-2 weeks`` or ``2024-01-31``."""
        args = split_args(value)
        date_format = args[1] if len(args) > 1 and args[1] else DEFAULT_DATE_FORMAT
        timestamp = self.parse_date_expression(args[0])
        if timestamp is None:
            logger.warning("Could not evaluate date expression %r; leaving value unchanged", args[0])
            return args[0]
        return timestamp.strftime(date_format)

    def parse_date_expression(self, expression: str) -> Optional[pd.Timestamp]:
        text = expression.strip().lower()
        now = self.clock()

        anchor = None
        for name in _ANCHORS:
            if text == name or text.startswith(name + " "):
                anchor = name
                text = text[len(name):].strip()
                break

        if anchor in (None, "now"):
            base = now
        else:
            base = now.normalize()
            if anchor == "yesterday":
                base -= pd.DateOffset(days=1)
            elif anchor == "tomorrow":
                base += pd.DateOffset(days=1)

        if not text:
            return base

        offsets = list(_OFFSET_RE.finditer(text))
        consumed = "".join(match.group(0) for match in offsets)
        if offsets and consumed.replace(" ", "") == text.replace(" ", ""):
            for match in offsets:
                sign, amount, unit, ago = match.groups()
                name, multiplier = _UNIT_KWARGS[unit.lower()]
                amount = int(amount) * multiplier
                if sign == "-":
                    amount = -amount
                if ago:
                    amount = -amount
                base = base + pd.DateOffset(**{name: amount})
            return base

        if anchor is not None:
            return None
        try:
            return pd.Timestamp(expression.strip())
        except ValueError:
            return None

    def param_value(self, value: str, context: ConditionContext) -> str:
        """Look a parameter up in the request, then the report defaults, else ``""``."""
        name = split_args(value)[0]
        if name in context.parameters:
            return context.parameters[name]
        defaults: Dict[str, str] = context.definition.report_params or {}
        if name in defaults:
            return defaults[name]
        return ""


def default_condition_filters(transforms: Optional[ValueTransforms] = None) -> List[Tuple[str, ValueTransform]]:
    """Ordered (prefix, transform) pairs available to every report type."""
    transforms = transforms or ValueTransforms()
    return [
        ("date:", transforms.relative_date_value),
        ("param:", transforms.param_value),
    ]
