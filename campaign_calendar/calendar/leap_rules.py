"""
Leap year rule evaluation.

Rules form a small recursive tree: a year is a leap year when any top-level
rule matches, and a rule matches when its interval/offset condition holds and
none of its exclude rules match. Exclude rules use the same structure, so the
Gregorian "every 4, except every 100, except every 400" is three levels deep.
"""

from typing import Iterable, Optional, Sequence

from campaign_calendar.calendar.calendar_models import LeapRule


def rule_matches(year: int, rule: LeapRule) -> bool:
    """Check a single rule, including its nested exclusions."""
    if rule.interval <= 0:
        return False
    if (year - rule.offset) % rule.interval != 0:
        return False
    return not any(rule_matches(year, excluded) for excluded in rule.exclude)


def is_leap_year(year: int, rules: Iterable[LeapRule]) -> bool:
    """True if any top-level rule matches the year."""
    return any(rule_matches(year, rule) for rule in rules)


def get_leap_day_target_month(year: int, rules: Sequence[LeapRule]) -> Optional[int]:
    """
    Month index receiving the leap day for a year.

    Returns the target_month of the first matching top-level rule, or None
    when no rule matches or the matching rule has no target (the leap day is
    then appended at the end of the year).
    """
    for rule in rules:
        if rule_matches(year, rule):
            return rule.target_month
    return None


def count_leap_years(start_year: int, end_year: int, rules: Sequence[LeapRule]) -> int:
    """Number of leap years in [start_year, end_year). Linear in the range."""
    if not rules:
        return 0
    return sum(1 for year in range(start_year, end_year) if is_leap_year(year, rules))


def get_leap_days_before(year: int, base_year: int, rules: Sequence[LeapRule]) -> int:
    """
    Signed count of leap days between base_year and year.

    Positive when year is after base_year (leap years in [base_year, year)),
    negative when before (leap years in [year, base_year)).
    """
    if year >= base_year:
        return count_leap_years(base_year, year, rules)
    return -count_leap_years(year, base_year, rules)


def create_gregorian_leap_rules(target_month: Optional[int] = 1) -> tuple[LeapRule, ...]:
    """Standard Gregorian rules; the leap day goes to February by default."""
    return (
        LeapRule(
            interval=4,
            target_month=target_month,
            exclude=(LeapRule(interval=100, exclude=(LeapRule(interval=400),)),),
        ),
    )


def create_simple_leap_rule(
    interval: int,
    offset: int = 0,
    target_month: Optional[int] = None,
) -> tuple[LeapRule, ...]:
    """A single rule with no exclusions (e.g. Harptos Shieldmeet every 4 years)."""
    return (LeapRule(interval=interval, offset=offset, target_month=target_month),)


class LeapRuleEvaluator:
    """Leap rule queries bound to one calendar's rule set."""

    def __init__(self, rules: Sequence[LeapRule] = ()):
        self.rules = tuple(rules)

    @property
    def has_rules(self) -> bool:
        return bool(self.rules)

    def is_leap_year(self, year: int) -> bool:
        return is_leap_year(year, self.rules)

    def get_leap_day_target_month(self, year: int) -> Optional[int]:
        return get_leap_day_target_month(year, self.rules)

    def count_leap_years(self, start_year: int, end_year: int) -> int:
        return count_leap_years(start_year, end_year, self.rules)

    def get_leap_days_before(self, year: int, base_year: int) -> int:
        return get_leap_days_before(year, base_year, self.rules)
