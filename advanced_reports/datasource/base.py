"""Interface every data source implements."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from advanced_reports.reporting.schemas import CompiledCondition, CompiledSort


class DataSource(ABC):
    """Executes a compiled report query and returns rows keyed by field key.

    ``fields`` maps each output key (already disambiguated) to the field it reads.
    Implementations bind condition values themselves; they never receive query text.
    """

    @abstractmethod
    def execute(
        self,
        fields: Mapping[str, str],
        predicate: Sequence[CompiledCondition],
        sort: Sequence[CompiledSort],
        paginate_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError
