"""Tests for number series formatting and counter planning (pure functions)."""

from datetime import date

import pytest

from posting_kernel.domain.numbering import (
    ResetRule,
    SeriesFormat,
    SeriesScope,
    YearFormat,
    format_number,
    parse_ordinal,
    period_marker,
    plan_allocation,
    validate_series_format,
)


def _fmt(**overrides) -> SeriesFormat:
    values = {
        "document_type_key": "INV",
        "name": "Sales Invoice",
        "prefix": "INV",
        "separator": "-",
        "number_length": 5,
        "year_format": YearFormat.YYYY,
        "reset_rule": ResetRule.NEVER,
    }
    values.update(overrides)
    return SeriesFormat(**values)


class TestFormatNumber:

    def test_four_digit_year(self):
        assert format_number(_fmt(), 1, date(2025, 3, 1)) == "INV-2025-00001"

    def test_two_digit_year(self):
        fmt = _fmt(year_format=YearFormat.YY)
        assert format_number(fmt, 42, date(2025, 3, 1)) == "INV-25-00042"

    def test_no_year(self):
        fmt = _fmt(year_format=YearFormat.NONE, prefix="CUS")
        assert format_number(fmt, 7, date(2025, 3, 1)) == "CUS-00007"

    def test_monthly_reset_appends_month(self):
        fmt = _fmt(year_format=YearFormat.YY, reset_rule=ResetRule.MONTHLY)
        assert format_number(fmt, 3, date(2025, 3, 9)) == "INV-2503-00003"

    def test_custom_separator(self):
        fmt = _fmt(separator="/")
        assert format_number(fmt, 12, date(2024, 12, 31)) == "INV/2024/00012"

    def test_wide_ordinal_is_not_truncated(self):
        fmt = _fmt(number_length=3, year_format=YearFormat.NONE)
        assert format_number(fmt, 12345, date(2025, 1, 1)) == "INV-12345"

    def test_raw_strings_are_accepted(self):
        fmt = SeriesFormat("PO", "Purchase Order", "PO", year_format="yy",
                           reset_rule="yearly", scope="branch")
        assert fmt.year_format is YearFormat.YY
        assert fmt.reset_rule is ResetRule.YEARLY
        assert fmt.scope is SeriesScope.BRANCH

    def test_branch_code_follows_year(self):
        fmt = _fmt(prefix="DN", year_format=YearFormat.YY, scope=SeriesScope.BRANCH)
        assert format_number(fmt, 1, date(2025, 3, 1), "BR01") == "DN-25-BR01-00001"
        assert format_number(fmt, 1, date(2025, 3, 1), "BR02") == "DN-25-BR02-00001"

    def test_scoped_series_without_reference(self):
        fmt = _fmt(prefix="GRN", year_format=YearFormat.YY, scope=SeriesScope.WAREHOUSE)
        assert format_number(fmt, 4, date(2025, 3, 1), "") == "GRN-25-00004"

    def test_company_series_ignores_reference(self):
        assert format_number(_fmt(), 1, date(2025, 3, 1), "BR01") == "INV-2025-00001"


class TestParseOrdinal:

    def test_round_trip_with_year(self):
        fmt = _fmt()
        assert parse_ordinal(fmt, "INV-2025-00017") == 17

    def test_monthly(self):
        fmt = _fmt(year_format=YearFormat.YY, reset_rule=ResetRule.MONTHLY)
        assert parse_ordinal(fmt, "INV-2503-00003") == 3

    def test_foreign_prefix(self):
        assert parse_ordinal(_fmt(), "SO-2025-00001") is None

    def test_wrong_year_width(self):
        assert parse_ordinal(_fmt(), "INV-25-00001") is None

    def test_prefix_with_regex_characters(self):
        fmt = _fmt(prefix="A.B", year_format=YearFormat.NONE)
        assert parse_ordinal(fmt, "A.B-00009") == 9
        assert parse_ordinal(fmt, "AXB-00009") is None

    def test_scoped_number(self):
        fmt = _fmt(prefix="SA", year_format=YearFormat.NONE, scope=SeriesScope.WAREHOUSE)
        assert parse_ordinal(fmt, "SA-WH1-00021", "WH1") == 21
        assert parse_ordinal(fmt, "SA-WH2-00021", "WH1") is None
        assert parse_ordinal(fmt, "SA-00021", "WH1") is None


class TestValidateSeriesFormat:

    def test_valid(self):
        assert validate_series_format(_fmt())

    def test_empty_prefix(self):
        result = validate_series_format(_fmt(prefix=""))
        assert not result
        assert result.first_error.field == "prefix"

    def test_number_length_bounds(self):
        assert not validate_series_format(_fmt(number_length=0))
        assert not validate_series_format(_fmt(number_length=13))

    def test_starting_number(self):
        result = validate_series_format(_fmt(starting_number=0))
        assert result.first_error.field == "starting_number"

    def test_reset_needs_year_format(self):
        result = validate_series_format(
            _fmt(year_format=YearFormat.NONE, reset_rule=ResetRule.YEARLY)
        )
        assert not result
        assert result.first_error.field == "reset_rule"

    def test_unknown_year_format_rejected(self):
        with pytest.raises(ValueError):
            _fmt(year_format="yyy")


class TestPlanAllocation:

    def test_period_markers(self):
        assert period_marker(ResetRule.YEARLY, date(2025, 3, 1)) == "2025"
        assert period_marker(ResetRule.MONTHLY, date(2025, 3, 1)) == "2025-03"
        assert period_marker(ResetRule.NEVER, date(2025, 3, 1)) is None

    def test_never_reset_issues_current_value(self):
        step = plan_allocation(_fmt(), 5, None, date(2025, 3, 1))
        assert (step.ordinal, step.next_value, step.period_marker) == (5, 6, None)
        assert not step.reset

    def test_first_allocation_stamps_marker(self):
        fmt = _fmt(reset_rule=ResetRule.YEARLY)
        step = plan_allocation(fmt, 1, None, date(2025, 3, 1))
        assert step.ordinal == 1
        assert step.period_marker == "2025"
        assert not step.reset

    def test_same_period_continues(self):
        fmt = _fmt(reset_rule=ResetRule.YEARLY)
        step = plan_allocation(fmt, 8, "2025", date(2025, 11, 30))
        assert (step.ordinal, step.next_value) == (8, 9)

    def test_new_year_resets_to_starting_number(self):
        fmt = _fmt(reset_rule=ResetRule.YEARLY, starting_number=100)
        step = plan_allocation(fmt, 412, "2024", date(2025, 1, 2))
        assert step.reset
        assert (step.ordinal, step.next_value) == (100, 101)
        assert step.period_marker == "2025"

    def test_new_month_resets(self):
        fmt = _fmt(year_format=YearFormat.YY, reset_rule=ResetRule.MONTHLY)
        step = plan_allocation(fmt, 30, "2025-02", date(2025, 3, 1))
        assert step.reset
        assert step.ordinal == 1
        assert format_number(fmt, step.ordinal, step.format_date) == "INV-2503-00001"

    def test_backdated_keeps_counter_and_stored_period(self):
        fmt = _fmt(reset_rule=ResetRule.YEARLY)
        step = plan_allocation(fmt, 7, "2025", date(2024, 12, 31))
        assert step.backdated
        assert not step.reset
        assert (step.ordinal, step.next_value, step.period_marker) == (7, 8, "2025")
        assert format_number(fmt, step.ordinal, step.format_date) == "INV-2025-00007"
