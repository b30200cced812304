"""
Number series formatting and counter planning -- pure functions.

Responsibility:
    Turns a series format plus an ordinal and a reference date into the
    document number string, decides when a reset rule fires, and parses
    the ordinal back out of an issued number.

Composition rule:
    prefix [+ separator + year part] [+ separator + scope ref]
        + separator + zero-padded ordinal

    The scope ref (branch or warehouse code) appears only for series
    scoped below the company, so sibling counters never issue the same
    visible number.

    year part: ``yyyy`` -> 2025, ``yy`` -> 25, ``none`` -> omitted.
    Series that reset monthly append the two-digit month (2503, 202503)
    so numbers from different months never collide.

Period markers:
    ``yearly`` -> "2025", ``monthly`` -> "2025-03", ``never`` -> None.
    Markers of one rule compare correctly as strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from posting_kernel.domain.dtos import ValidationError, ValidationResult

MAX_NUMBER_LENGTH = 12
MAX_PREFIX_LENGTH = 20


class YearFormat(str, Enum):
    NONE = "none"
    YY = "yy"
    YYYY = "yyyy"


class ResetRule(str, Enum):
    NEVER = "never"
    YEARLY = "yearly"
    MONTHLY = "monthly"


class SeriesScope(str, Enum):
    """Which dimension a series counter is kept per."""

    COMPANY = "company"
    BRANCH = "branch"
    WAREHOUSE = "warehouse"


@dataclass(frozen=True)
class SeriesFormat:
    """Formatting and reset settings of one number series."""

    document_type_key: str
    name: str
    prefix: str
    separator: str = "-"
    number_length: int = 5
    year_format: YearFormat = YearFormat.NONE
    reset_rule: ResetRule = ResetRule.NEVER
    scope: SeriesScope = SeriesScope.COMPANY
    starting_number: int = 1

    def __post_init__(self) -> None:
        # Accept raw strings from config and ORM rows
        object.__setattr__(self, "year_format", YearFormat(self.year_format))
        object.__setattr__(self, "reset_rule", ResetRule(self.reset_rule))
        object.__setattr__(self, "scope", SeriesScope(self.scope))


@dataclass(frozen=True)
class CounterStep:
    """
    What one allocation does to a series counter.

    Attributes:
        ordinal: Value embedded in the issued number.
        next_value: New current_value to store.
        period_marker: New last_reset_period to store.
        format_date: Date whose year/month goes into the number.
        reset: True when the reset rule fired.
        backdated: True when the reference date falls before the stored
            period; the counter continues and the number carries the
            stored period.
    """

    ordinal: int
    next_value: int
    period_marker: str | None
    format_date: date
    reset: bool = False
    backdated: bool = False


def validate_series_format(fmt: SeriesFormat) -> ValidationResult:
    """Check a series format for internal consistency."""
    errors: list[ValidationError] = []

    if not fmt.document_type_key:
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message="document type key is required",
            field="document_type_key",
        ))
    if not fmt.prefix or len(fmt.prefix) > MAX_PREFIX_LENGTH:
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message=f"prefix must be 1..{MAX_PREFIX_LENGTH} characters",
            field="prefix",
        ))
    if len(fmt.separator) > 5:
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message="separator must be at most 5 characters",
            field="separator",
        ))
    if not 1 <= fmt.number_length <= MAX_NUMBER_LENGTH:
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message=f"number length must be 1..{MAX_NUMBER_LENGTH}",
            field="number_length",
        ))
    if fmt.starting_number < 1:
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message="starting number must be at least 1",
            field="starting_number",
        ))
    if fmt.reset_rule != ResetRule.NEVER and fmt.year_format == YearFormat.NONE:
        # A reset without a period in the number would re-issue old numbers
        errors.append(ValidationError(
            code="INVALID_SERIES_CONFIG",
            message=f"reset rule {fmt.reset_rule.value} requires a year format",
            field="reset_rule",
        ))

    if errors:
        return ValidationResult.failure(*errors)
    return ValidationResult.success()


def period_marker(reset_rule: ResetRule, reference_date: date) -> str | None:
    """Period a reference date belongs to under ``reset_rule``."""
    if reset_rule == ResetRule.YEARLY:
        return f"{reference_date.year:04d}"
    if reset_rule == ResetRule.MONTHLY:
        return f"{reference_date.year:04d}-{reference_date.month:02d}"
    return None


def period_start(marker: str) -> date:
    """First day of the period named by ``marker``."""
    if len(marker) == 4:
        return date(int(marker), 1, 1)
    year, month = marker.split("-")
    return date(int(year), int(month), 1)


def year_part(fmt: SeriesFormat, reference_date: date) -> str:
    """Period segment of the number ("" when the format has none)."""
    if fmt.year_format == YearFormat.YYYY:
        part = f"{reference_date.year:04d}"
    elif fmt.year_format == YearFormat.YY:
        part = f"{reference_date.year % 100:02d}"
    else:
        return ""
    if fmt.reset_rule == ResetRule.MONTHLY:
        part += f"{reference_date.month:02d}"
    return part


def scope_part(fmt: SeriesFormat, scope_ref: str | None) -> str:
    """Scope segment of the number ('' for company-wide counters)."""
    if fmt.scope == SeriesScope.COMPANY:
        return ""
    return scope_ref or ""


def format_number(
    fmt: SeriesFormat,
    ordinal: int,
    reference_date: date,
    scope_ref: str | None = None,
) -> str:
    """
    Compose the document number.

    Ordinals wider than number_length are not truncated.
    """
    segments = [fmt.prefix]
    for part in (year_part(fmt, reference_date), scope_part(fmt, scope_ref)):
        if part:
            segments.append(part)
    segments.append(str(ordinal).zfill(fmt.number_length))
    return fmt.separator.join(segments)


def parse_ordinal(
    fmt: SeriesFormat, number: str, scope_ref: str | None = None
) -> int | None:
    """Ordinal embedded in ``number``, or None if it does not match ``fmt``."""
    digits = {YearFormat.NONE: 0, YearFormat.YY: 2, YearFormat.YYYY: 4}[fmt.year_format]
    if digits and fmt.reset_rule == ResetRule.MONTHLY:
        digits += 2
    sep = re.escape(fmt.separator)
    middle = rf"\d{{{digits}}}{sep}" if digits else ""
    scope = scope_part(fmt, scope_ref)
    if scope:
        middle += rf"{re.escape(scope)}{sep}"
    match = re.fullmatch(rf"{re.escape(fmt.prefix)}{sep}{middle}(\d+)", number)
    if match is None:
        return None
    return int(match.group(1))


def plan_allocation(
    fmt: SeriesFormat,
    current_value: int,
    last_period: str | None,
    reference_date: date,
) -> CounterStep:
    """
    Decide the ordinal for the next allocation.

    Rollover is detected from the stored period marker, never from an
    issued number:
        - no reset rule: issue current_value.
        - first allocation: stamp the marker, issue current_value.
        - later period: reset to starting_number and advance the marker.
        - same period: issue current_value.
        - earlier period (back-dated): issue current_value under the
          stored period so the number cannot repeat one already issued.
    """
    marker = period_marker(fmt.reset_rule, reference_date)

    if marker is None:
        return CounterStep(current_value, current_value + 1, last_period, reference_date)

    if last_period is None or marker == last_period:
        return CounterStep(current_value, current_value + 1, marker, reference_date)

    if marker > last_period:
        start = fmt.starting_number
        return CounterStep(start, start + 1, marker, reference_date, reset=True)

    return CounterStep(
        current_value,
        current_value + 1,
        last_period,
        period_start(last_period),
        backdated=True,
    )
