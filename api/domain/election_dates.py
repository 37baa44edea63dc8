# SPDX-License-Identifier: Apache-2.0

"""
Statutory election date calculator.

Pure, deterministic UTC calendar arithmetic. Month indexes are 0-based
(0 = January) and weekdays count from Sunday (0 = Sunday ... 6 = Saturday),
matching the conventions used by the scheduling rules below.

All results are advisory estimates: unknown jurisdictions degrade to a
default rule instead of failing.
"""

import calendar
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Tuple, Union

from models.entities import ElectionDateEstimate
from models.enums import Jurisdiction

DateLike = Union[date, datetime]

SUNDAY, MONDAY, TUESDAY, WEDNESDAY, THURSDAY, FRIDAY, SATURDAY = range(7)


def _sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def _check_month_index(month_index: int) -> None:
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be between 0 and 11, got {month_index}")


def _check_weekday(weekday: int) -> None:
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be between 0 (Sunday) and 6 (Saturday), got {weekday}")


def nth_weekday_of_month(year: int, month_index: int, weekday: int, n: int) -> date:
    """
    Find the n-th occurrence of a weekday in a month.

    Args:
        year: Calendar year
        month_index: 0-based month (9 = October)
        weekday: 0 = Sunday ... 6 = Saturday
        n: Occurrence, starting at 1

    Returns:
        The matching date

    Raises:
        ValueError: If the arguments are out of range or the month has no n-th occurrence
    """
    _check_month_index(month_index)
    _check_weekday(weekday)
    if n < 1:
        raise ValueError(f"n must be at least 1, got {n}")

    first = date(year, month_index + 1, 1)
    offset = (7 + weekday - _sunday_based_weekday(first)) % 7
    day = 1 + offset + (n - 1) * 7

    days_in_month = calendar.monthrange(year, month_index + 1)[1]
    if day > days_in_month:
        raise ValueError(f"{year}-{month_index + 1:02d} has no occurrence {n} of weekday {weekday}")

    return date(year, month_index + 1, day)


def last_weekday_of_month(year: int, month_index: int, weekday: int) -> date:
    """Find the last occurrence of a weekday in a month."""
    _check_month_index(month_index)
    _check_weekday(weekday)

    last = date(year, month_index + 1, calendar.monthrange(year, month_index + 1)[1])
    offset = (7 + _sunday_based_weekday(last) - weekday) % 7
    return date(year, month_index + 1, last.day - offset)


@dataclass(frozen=True)
class ElectionRule:
    """Weekday-arithmetic rule for a recurring election."""
    description: str
    anchor_year: int
    month_index: int
    weekday: int
    occurrence: Optional[int] = None  # None means the last occurrence in the month
    cycle_years: int = 4
    names: Tuple[str, ...] = ()
    codes: Tuple[str, ...] = ()

    def date_in(self, year: int) -> date:
        """Election day for a given year under this rule."""
        if self.occurrence is None:
            return last_weekday_of_month(year, self.month_index, self.weekday)
        return nth_weekday_of_month(year, self.month_index, self.weekday, self.occurrence)

    def next_on_or_after(self, reference: date) -> date:
        """
        First election day on or after the reference date.

        Starts from the cycle year containing the reference date and moves to
        the next cycle when that year's election day has already passed.
        """
        elapsed = reference.year - self.anchor_year
        cycles = -(-elapsed // self.cycle_years)  # ceiling division
        year = self.anchor_year + cycles * self.cycle_years

        election_day = self.date_in(year)
        if election_day < reference:
            election_day = self.date_in(year + self.cycle_years)
        return election_day

    def matches(self, normalized_name: str) -> bool:
        if any(name in normalized_name for name in self.names):
            return True
        tokens = set(re.findall(r"[a-z]+", normalized_name))
        return any(code in tokens for code in self.codes)


FEDERAL_RULE = ElectionRule(
    description="Fixed-date: third Monday in October in the fourth year (subject to early dissolution)",
    anchor_year=2021,
    month_index=9,
    weekday=MONDAY,
    occurrence=3
)

DEFAULT_RULE = ElectionRule(
    description="Estimated: every 4 years, third Monday in October",
    anchor_year=2022,
    month_index=9,
    weekday=MONDAY,
    occurrence=3
)

# Municipal election cycles by province or territory (estimates, subject to change)
MUNICIPAL_RULES: Tuple[ElectionRule, ...] = (
    ElectionRule("Every 4 years, third Monday in October",
                 2021, 9, MONDAY, 3, names=("alberta",), codes=("ab",)),
    ElectionRule("Every 4 years, fourth Monday in October",
                 2022, 9, MONDAY, 4, names=("ontario",)),
    ElectionRule("Every 4 years, third Saturday in October",
                 2022, 9, SATURDAY, 3, names=("british columbia",), codes=("bc",)),
    ElectionRule("Every 4 years, first Sunday in November",
                 2021, 10, SUNDAY, 1, names=("quebec",), codes=("qc",)),
    ElectionRule("Every 4 years, last Wednesday in October",
                 2022, 9, WEDNESDAY, None, names=("manitoba",), codes=("mb",)),
    ElectionRule("Every 4 years, second Wednesday in November",
                 2024, 10, WEDNESDAY, 2, names=("saskatchewan",), codes=("sk",)),
    ElectionRule("Approx. every 4 years, first Monday in May",
                 2020, 4, MONDAY, 1, names=("new brunswick",), codes=("nb",)),
    ElectionRule("Approx. every 4 years, third Saturday in October",
                 2020, 9, SATURDAY, 3, names=("nova scotia",), codes=("ns",)),
    ElectionRule("Approx. every 4 years, last Tuesday in September",
                 2021, 8, TUESDAY, None, names=("newfoundland",), codes=("nl",)),
    ElectionRule("Approx. every 4 years, first Monday in November",
                 2022, 10, MONDAY, 1, names=("prince edward",), codes=("pei", "pe")),
    ElectionRule("Estimated: every 4 years, third Monday in October",
                 2021, 9, MONDAY, 3,
                 names=("yukon", "nunavut", "northwest territories"), codes=("yt", "nu", "nt")),
)


def _normalize_name(name: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFKD", name or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def _reference_day(reference_date: Optional[DateLike]) -> date:
    if reference_date is None:
        return datetime.now(timezone.utc).date()
    if isinstance(reference_date, datetime):
        if reference_date.tzinfo is not None:
            reference_date = reference_date.astimezone(timezone.utc)
        return reference_date.date()
    return reference_date


def _estimate(rule: ElectionRule, reference: date) -> ElectionDateEstimate:
    return ElectionDateEstimate(
        election_date=rule.next_on_or_after(reference),
        estimated=True,
        rule=rule.description
    )


def find_municipal_rule(jurisdiction_name: Optional[str]) -> ElectionRule:
    """Look up the municipal rule for a province or territory name, or the default rule."""
    normalized = _normalize_name(jurisdiction_name)
    if normalized:
        for rule in MUNICIPAL_RULES:
            if rule.matches(normalized):
                return rule
    return DEFAULT_RULE


def next_federal_election_date(reference_date: Optional[DateLike] = None) -> ElectionDateEstimate:
    """Next federal general election under the fixed-date rule."""
    return _estimate(FEDERAL_RULE, _reference_day(reference_date))


def next_municipal_election_date(jurisdiction_name: Optional[str],
                                 reference_date: Optional[DateLike] = None) -> ElectionDateEstimate:
    """
    Next municipal election for a province or territory.

    Never fails on an unrecognized name; the default rule is used instead.
    """
    return _estimate(find_municipal_rule(jurisdiction_name), _reference_day(reference_date))


def next_election_date(jurisdiction: Union[Jurisdiction, str],
                       reference_date: Optional[DateLike] = None,
                       name: Optional[str] = None) -> ElectionDateEstimate:
    """
    Answer an election date query for a jurisdiction level.

    Provincial general elections have no rule table yet and use the default
    estimate rule.
    """
    jurisdiction = Jurisdiction(jurisdiction)
    if jurisdiction == Jurisdiction.FEDERAL:
        return next_federal_election_date(reference_date)
    if jurisdiction == Jurisdiction.MUNICIPAL:
        return next_municipal_election_date(name, reference_date)
    return _estimate(DEFAULT_RULE, _reference_day(reference_date))
