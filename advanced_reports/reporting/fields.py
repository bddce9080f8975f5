"""Field registry: reportable field names, their keys and labels."""

from typing import Dict, List, Iterable, Mapping, Optional

from advanced_reports.reporting.schemas import ReportDefinition


def dotted_field_to_unique(field: str) -> str:
    """Convert a dotted field name (``Table.Field``) to a unique key (``Table_Field``).

    Keys are used as column labels in queries and as row keys in results, so that
    ``Table.Field AS Table_Field`` maps back and forth without ambiguity.
    """
    return field.replace(".", "_")


def disambiguate_fields(fields: Iterable[str]) -> List[str]:
    """Resolve fields to keys, suffixing repeated selections with ``_2``, ``_3``...

    The first occurrence of a field keeps its plain key.
    """
    seen: Dict[str, int] = {}
    keys = []
    for field in fields:
        key = dotted_field_to_unique(field)
        count = seen.get(field, 0) + 1
        seen[field] = count
        keys.append(key if count == 1 else f"{key}_{count}")
    return keys


def normalize_key_list(fields: Optional[Iterable[str]]) -> List[str]:
    """Selectors (blanking, totals, added values) may name fields or keys."""
    if not fields:
        return []
    return [dotted_field_to_unique(field) for field in fields if field]


class FieldRegistry:
    """Ordered mapping of reportable field name -> human label."""

    def __init__(self, reportable_fields: Mapping[str, str]):
        self._fields: Dict[str, str] = dict(reportable_fields)
        self._by_key: Dict[str, str] = {
            dotted_field_to_unique(name): name for name in self._fields
        }

    def __contains__(self, field: object) -> bool:
        return field in self._fields

    def __iter__(self):
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def resolve(self, field: str) -> str:
        return dotted_field_to_unique(field)

    def label_for(self, field: str) -> str:
        """Label for a field, or the raw name when the field is not registered."""
        return self._fields.get(field, field)

    def field_for_key(self, key: str) -> Optional[str]:
        return self._by_key.get(key)

    def items(self):
        return self._fields.items()

    def keyed(self) -> Dict[str, str]:
        """Key -> label mapping, for selectors that work on keys."""
        return {dotted_field_to_unique(name): label for name, label in self._fields.items()}


def compute_headers(definition: ReportDefinition, registry: FieldRegistry) -> Dict[str, str]:
    """Map each selected field's disambiguated key to its header text, in selection order.

    A header supplied at the same position wins; otherwise the registry label is used.
    """
    fields = definition.report_fields
    titles = definition.report_headers
    headers: Dict[str, str] = {}
    for index, key in enumerate(disambiguate_fields(fields)):
        title = titles[index] if index < len(titles) else None
        headers[key] = title if title else registry.label_for(fields[index])
    return headers
