"""Data source backed by a SQLAlchemy selectable."""

import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from sqlalchemy import Numeric, cast, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from advanced_reports.datasource.base import DataSource
from advanced_reports.reporting.exceptions import DataSourceError
from advanced_reports.reporting.fields import dotted_field_to_unique
from advanced_reports.reporting.schemas import CompiledCondition, CompiledSort, SortDirection
from advanced_reports.reporting.sorting import IDENTITY_FIELD

logger = logging.getLogger(__name__)


class SqlAlchemyDataSource(DataSource):
    """Runs compiled reports against columns of a base ``Select``.

    Args:
        session: session bound to the database holding the records
        columns: reportable field name -> column expression
        base: ``Select`` providing the FROM clause and joins; the selected
            columns are replaced by the report fields
        identity: column used for the default identity sort
    """

    def __init__(
        self,
        session: Session,
        columns: Mapping[str, ColumnElement],
        base: Optional[Select] = None,
        identity: Optional[ColumnElement] = None,
    ):
        self.session = session
        self.columns = dict(columns)
        self.base = base
        self.identity = identity

    def build_query(
        self,
        fields: Mapping[str, str],
        predicate: Sequence[CompiledCondition],
        sort: Sequence[CompiledSort],
        paginate_by: Optional[str] = None,
    ) -> Select:
        """Build the ``Select`` for a compiled report; values stay bound parameters."""
        selected = [self._column(field).label(key) for key, field in fields.items()]
        if paginate_by and dotted_field_to_unique(paginate_by) not in fields:
            selected.append(self._column(paginate_by).label(dotted_field_to_unique(paginate_by)))

        if self.base is not None:
            stmt = self.base.with_only_columns(*selected)
        else:
            stmt = select(*selected)

        for condition in predicate:
            if condition.field not in self.columns:
                logger.debug("Ignoring condition on unmapped field %r", condition.field)
                continue
            stmt = stmt.where(self._predicate(self.columns[condition.field], condition))

        order_by = []
        if paginate_by:
            order_by.append(self._column(paginate_by).asc())
        for item in sort:
            column = self._sort_column(item)
            if column is None:
                continue
            if item.numeric:
                column = cast(column, Numeric)
            order_by.append(column.desc() if item.direction == SortDirection.DESC else column.asc())
        if order_by:
            stmt = stmt.order_by(*order_by)
        return stmt

    def execute(
        self,
        fields: Mapping[str, str],
        predicate: Sequence[CompiledCondition],
        sort: Sequence[CompiledSort],
        paginate_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        try:
            stmt = self.build_query(fields, predicate, sort, paginate_by)
            result = self.session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]
        except KeyError as e:
            raise DataSourceError(f"Field {e} is not available in this data source") from e
        except SQLAlchemyError as e:
            logger.error("Report query failed: %s", e)
            raise DataSourceError(f"Report query failed: {str(e)}") from e

    def _column(self, field: str) -> ColumnElement:
        return self.columns[field]

    def _sort_column(self, item: CompiledSort) -> Optional[ColumnElement]:
        if item.field == IDENTITY_FIELD and item.field not in self.columns:
            return self.identity
        return self.columns.get(item.field)

    @staticmethod
    def _coerce(column: ColumnElement, value: Any) -> Any:
        """Convert a condition string to the column's Python type where possible."""
        if value is None:
            return value
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value
        if isinstance(value, python_type):
            return value
        try:
            if python_type is datetime:
                return pd.Timestamp(value).to_pydatetime()
            if python_type is date:
                return pd.Timestamp(value).date()
            if python_type in (int, float, Decimal):
                return python_type(value)
        except (ValueError, TypeError, InvalidOperation):
            logger.debug("Leaving %r uncoerced for column %s", value, column)
        return value

    @classmethod
    def _predicate(cls, column: ColumnElement, condition: CompiledCondition):
        op = condition.operator
        if isinstance(condition.value, list):
            value = [cls._coerce(column, item) for item in condition.value]
        else:
            value = cls._coerce(column, condition.value)
        if op == "=":
            return column == value
        if op == "<>":
            return column != value
        if op == ">=":
            return column >= value
        if op == ">":
            return column > value
        if op == "<":
            return column < value
        if op == "<=":
            return column <= value
        if op == "IN":
            return column.in_(value if isinstance(value, list) else [value])
        if op == "IS":
            return column.is_(value)
        if op == "IS NOT":
            return column.is_not(value)
        raise DataSourceError(f"Unsupported operator: {op}")
