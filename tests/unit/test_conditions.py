"""
Unit tests for condition compilation and value transforms.
"""

import pandas as pd
import pytest

from advanced_reports.reporting.condition_filters import ConditionContext, ValueTransforms, default_condition_filters
from advanced_reports.reporting.conditions import ALLOWED_CONDITIONS, MAX_FILTER_PASSES, ConditionBuilder
from advanced_reports.reporting.fields import FieldRegistry
from advanced_reports.reporting.schemas import ReportDefinition


REGISTRY = FieldRegistry({
    "Invoice.status": "Status",
    "Invoice.amount": "Amount",
    "Invoice.issued_at": "Issued",
    "Customer.age": "Age",
})


def definition(fields, ops, values, **kwargs) -> ReportDefinition:
    return ReportDefinition(condition_fields=fields, condition_ops=ops, condition_values=values, **kwargs)


@pytest.fixture
def fixed_transforms():
    """Transforms evaluated against a fixed clock"""
    return ValueTransforms(clock=lambda: pd.Timestamp("2024-03-15 10:30:00"))


class TestConditionBuilder:
    """Test condition tuple validation"""

    def test_compiles_simple_condition(self):
        """Test a complete tuple compiles to one condition with a key"""
        conditions = ConditionBuilder().compile(definition(["Invoice.status"], ["="], ["paid"]), REGISTRY)
        assert len(conditions) == 1
        assert conditions[0].field == "Invoice.status"
        assert conditions[0].key == "Invoice_status"
        assert conditions[0].operator == "="
        assert conditions[0].value == "paid"

    def test_missing_operator_ends_condition_list(self):
        """Test tuples after an incomplete slot are ignored"""
        d = definition(["Invoice.status", "Customer.age", "Invoice.amount"], ["=", ">"], ["paid", "30", "10"])
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert [c.field for c in conditions] == ["Invoice.status", "Customer.age"]

    def test_empty_value_ends_condition_list(self):
        """Test an empty value stops compilation like a missing one"""
        d = definition(["Invoice.status", "Customer.age", "Invoice.amount"], ["=", ">", "<"], ["paid", "", "10"])
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert [c.field for c in conditions] == ["Invoice.status"]

    def test_unsupported_operator_is_dropped(self):
        """Test an operator outside the allow-list skips only that condition"""
        d = definition(["Invoice.status", "Customer.age"], ["LIKE", ">="], ["%paid%", "30"])
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert len(conditions) == 1
        assert conditions[0].operator == ">="

    def test_unknown_field_is_dropped(self):
        """Test conditions on non-reportable fields are skipped"""
        d = definition(["Customer.password", "Invoice.status"], ["=", "="], ["x", "open"])
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert [c.field for c in conditions] == ["Invoice.status"]

    def test_in_operator_splits_values(self):
        """Test IN values become a list"""
        conditions = ConditionBuilder().compile(definition(["Invoice.status"], ["IN"], ["paid,open"]), REGISTRY)
        assert conditions[0].value == ["paid", "open"]

    def test_is_null_becomes_none(self):
        """Test IS / IS NOT with null compile to a None value"""
        d = definition(["Customer.age", "Invoice.status"], ["IS", "IS NOT"], ["null", "NULL"])
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert [c.value for c in conditions] == [None, None]

    def test_allowed_operators(self):
        """Test the operator allow-list"""
        assert set(ALLOWED_CONDITIONS) == {"=", "<>", ">=", ">", "<", "<=", "IN", "IS", "IS NOT"}


class TestValueTransforms:
    """Test prefixed value transforms"""

    def test_param_prefers_request_parameters(self):
        """Test param: reads the request first, then report defaults"""
        d = definition(["Invoice.status"], ["="], ["param:status"], report_params={"status": "open"})
        from_request = ConditionBuilder(parameters={"status": "paid"}).compile(d, REGISTRY)
        from_defaults = ConditionBuilder().compile(d, REGISTRY)
        assert from_request[0].value == "paid"
        assert from_defaults[0].value == "open"

    def test_missing_param_is_empty(self):
        """Test an unknown parameter resolves to an empty string"""
        conditions = ConditionBuilder().compile(definition(["Invoice.status"], ["="], ["param:nope"]), REGISTRY)
        assert conditions[0].value == ""

    def test_param_applies_to_each_in_element(self):
        """Test transforms run per element of an IN list"""
        d = definition(["Invoice.status"], ["IN"], ["param:a,closed"], report_params={"a": "paid"})
        conditions = ConditionBuilder().compile(d, REGISTRY)
        assert conditions[0].value == ["paid", "closed"]

    def test_relative_dates(self, fixed_transforms):
        """Test date: expressions against a fixed clock"""
        context = ConditionContext(ReportDefinition())
        assert fixed_transforms.relative_date_value("today|%Y-%m-%d", context) == "2024-03-15"
        assert fixed_transforms.relative_date_value("yesterday", context) == "2024-03-14 00:00:00"
        assert fixed_transforms.relative_date_value("-1 month|%Y-%m-%d", context) == "2024-02-15"
        assert fixed_transforms.relative_date_value("2 days ago|%Y-%m-%d", context) == "2024-03-13"
        assert fixed_transforms.relative_date_value("now", context) == "2024-03-15 10:30:00"
        assert fixed_transforms.relative_date_value("2024-01-31|%d/%m/%Y", context) == "31/01/2024"

    def test_unparseable_date_is_left_unchanged(self, fixed_transforms):
        """Test an invalid expression falls through as the raw value"""
        context = ConditionContext(ReportDefinition())
        assert fixed_transforms.relative_date_value("not a date", context) == "not a date"

    def test_date_condition_compiles(self, fixed_transforms):
        """Test date: values inside a definition"""
        builder = ConditionBuilder(filters=default_condition_filters(fixed_transforms))
        d = definition(["Invoice.issued_at"], [">="], ["date:-1 week|%Y-%m-%d"])
        assert builder.compile(d, REGISTRY)[0].value == "2024-03-08"

    def test_transforms_chain_across_prefixes(self):
        """Test a transform producing another prefix is transformed again"""
        filters = [("alias:", lambda value, context: "param:" + value)] + default_condition_filters()
        d = definition(["Invoice.status"], ["="], ["alias:status"], report_params={"status": "open"})
        assert ConditionBuilder(filters=filters).compile(d, REGISTRY)[0].value == "open"

    def test_self_referencing_transform_is_capped(self):
        """Test a transform that keeps its own prefix stops after the pass limit"""
        calls = []

        def loop(value, context):
            calls.append(value)
            return "loop:" + value

        d = definition(["Invoice.status"], ["="], ["loop:x"])
        conditions = ConditionBuilder(filters=[("loop:", loop)]).compile(d, REGISTRY)
        assert len(calls) == MAX_FILTER_PASSES
        assert conditions[0].value == "loop:x"
