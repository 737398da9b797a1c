"""
Pure budget arithmetic: calendar windows, status evaluation, month-end
projection and period roll-forward. Nothing here touches the database or
reads the system clock; callers pass the reference date in.
"""
from __future__ import annotations

import calendar
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Tuple

from budgets.budget_model import BudgetStatus, ProjectedSpending
from budgets.errors import InvalidBudgetConfiguration


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal(100)
MAX_BUDGET_YEAR = 2100


def to_money(value: Decimal | int | float | str | None) -> Decimal:
    """Quantize to currency precision (2 dp, half-up). None counts as zero."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def days_in_month(month: int, year: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_window(month: int, year: int) -> Tuple[date, date]:
    """Closed [first day, last day] window for a calendar month."""
    return date(year, month, 1), date(year, month, days_in_month(month, year))


def next_period(month: int, year: int) -> Tuple[int, int]:
    if month == 12:
        return 1, year + 1
    return month + 1, year


def previous_period(month: int, year: int) -> Tuple[int, int]:
    if month == 1:
        return 12, year - 1
    return month - 1, year


def is_in_period(day: date, month: int, year: int) -> bool:
    return day.month == month and day.year == year


def is_last_day_of_month(day: date) -> bool:
    return day.day == days_in_month(day.month, day.year)


def days_remaining(month: int, year: int, today: date) -> int:
    """Days from today until the last day of the budget month, never negative."""
    _, last_day = month_window(month, year)
    return max((last_day - today).days, 0)


def evaluate_status(monthly_limit: Decimal, alert_threshold: int, current_spent: Decimal) -> BudgetStatus:
    limit = to_money(monthly_limit)
    if limit <= 0:
        raise InvalidBudgetConfiguration(f"monthly_limit must be positive, got {limit}")
    spent = to_money(current_spent)

    raw_percentage = spent / limit * HUNDRED
    return BudgetStatus(
        current_spent=spent,
        monthly_limit=limit,
        remaining=limit - spent,
        percentage=raw_percentage.quantize(CENT, rounding=ROUND_HALF_UP),
        is_exceeded=spent > limit,
        # compared unrounded so that 79.996% does not alert on an 80% threshold
        should_alert=raw_percentage >= alert_threshold,
    )


def project_spending(
    monthly_limit: Decimal,
    current_spent: Decimal,
    month: int,
    year: int,
    today: date,
) -> ProjectedSpending:
    """
    Linear month-end projection from the spend observed so far.

    Only the budget's own month is extrapolated. For past or future months the
    whole month counts as elapsed, so projected_total equals current_spent.
    """
    limit = to_money(monthly_limit)
    spent = to_money(current_spent)
    total_days = days_in_month(month, year)

    if is_in_period(today, month, year):
        elapsed = max(today.day, 1)
    else:
        elapsed = total_days

    projected_total = to_money(spent * total_days / elapsed)
    return ProjectedSpending(
        daily_average=to_money(spent / elapsed),
        projected_total=projected_total,
        will_exceed=projected_total > limit,
        projected_excess=max(projected_total - limit, ZERO),
    )
