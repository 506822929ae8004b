"""
Iteration Calendar

Maps calendar dates to iteration numbers and back. Weekdays follow the
project convention of 0 = Sunday through 6 = Saturday.
"""

import math
from datetime import date, datetime, timedelta
from typing import Optional, Union

from .config import ProjectConfig


SECONDS_IN_A_DAY = 60 * 60 * 24


def weekday_number(day: date) -> int:
    """Weekday with Sunday as 0."""
    return day.isoweekday() % 7


def start_date(config: ProjectConfig, today: Optional[date] = None) -> date:
    """
    Canonical start of iteration 1.

    The configured start date (or today when none is set) is moved back to
    the nearest prior iteration start day. A start date that already falls on
    the iteration start day is returned unchanged.
    """
    start = config.start_date or today or date.today()

    day_difference = weekday_number(start) - config.iteration_start_day
    if day_difference == 0:
        return start

    # Iteration start day is later in the week than the start date
    if day_difference < 0:
        day_difference += 7

    return start - timedelta(days=day_difference)


def _days_between(start: date, when: Union[date, datetime]) -> int:
    if isinstance(when, datetime):
        begin = datetime.combine(start, datetime.min.time(), tzinfo=when.tzinfo)
        difference = abs((when - begin).total_seconds()) / SECONDS_IN_A_DAY
    else:
        difference = abs((when - start).days)

    # Half-up rounding, not the banker's rounding of round()
    return math.floor(difference + 0.5)


def iteration_number_for_date(
    config: ProjectConfig,
    when: Union[date, datetime],
    today: Optional[date] = None
) -> int:
    """
    Iteration number containing a date.

    Dates before the canonical start are measured by absolute distance, so
    they map onto positive numbers as well.
    """
    days_apart = _days_between(start_date(config, today), when)
    return days_apart // (config.iteration_length * 7) + 1


def date_for_iteration_number(
    config: ProjectConfig,
    iteration_number: int,
    today: Optional[date] = None
) -> date:
    """First day of the given iteration."""
    difference = 7 * config.iteration_length * (iteration_number - 1)
    return start_date(config, today) + timedelta(days=difference)


def current_iteration_number(config: ProjectConfig, today: Optional[date] = None) -> int:
    """Iteration number containing today."""
    today = today or date.today()
    return iteration_number_for_date(config, today, today)
