import uuid
from typing import Any, Iterable

from app.schemas.licenses import MonthlyStats
from app.services.policy import DEFAULT_LIMITS, MonthlyLimits


def is_partial_day(record: Any) -> bool:
    # Existing records count as partial by their hours, whatever their license_type says.
    return record.hours is not None and record.hours > 0


def in_month(record: Any, year: int, month: int) -> bool:
    return record.license_date.year == year and record.license_date.month == month


def monthly_stats(
    employee_id: uuid.UUID,
    year: int,
    month: int,
    records: Iterable[Any],
    limits: MonthlyLimits = DEFAULT_LIMITS,
) -> MonthlyStats:
    full_days = 0
    partial_days = 0
    partial_hours = 0
    for record in records:
        if record.employee_id != employee_id or not in_month(record, year, month):
            continue
        if is_partial_day(record):
            partial_days += 1
            partial_hours += record.hours
        else:
            full_days += 1

    return MonthlyStats(
        employee_id=employee_id,
        year=year,
        month=month,
        full_day_count=full_days,
        partial_day_count=partial_days,
        total_partial_hours=partial_hours,
        remaining_full_days=max(0, limits.full_day_licenses - full_days),
        remaining_short_licenses=max(0, limits.short_licenses - partial_days),
        remaining_hours=max(0, limits.max_hours_per_month - partial_hours),
        full_day_limit=limits.full_day_licenses,
        short_license_limit=limits.short_licenses,
        hours_limit=limits.max_hours_per_month,
    )
