from collections import Counter
from datetime import date
from typing import Any

from app.schemas.reports import DashboardStats, EmployeeActivity
from app.services.policy import Category, LicenseType, coerce_category
from app.services.sorting import sort_recent

RECENT_LIMIT = 10


def _top_employee(
    records: list[Any], employees: dict[Any, Any]
) -> EmployeeActivity | None:
    counts = Counter(
        record.employee_id for record in records if record.employee_id in employees
    )
    if not counts:
        return None
    # most_common keeps first-seen order among equal counts.
    employee_id, count = counts.most_common(1)[0]
    return EmployeeActivity(employee=employees[employee_id], license_count=count)


def category_counts(employees: list[Any]) -> dict[str, int]:
    counts = {category.value: 0 for category in Category}
    for employee in employees:
        resolved = coerce_category(employee.category)
        key = resolved.value if resolved else employee.category
        counts[key] = counts.get(key, 0) + 1
    return counts


def dashboard_stats(
    employees: list[Any], licenses: list[Any], today: date | None = None
) -> DashboardStats:
    today = today or date.today()
    by_id = {employee.id: employee for employee in employees}

    months = Counter(
        (record.license_date.year, record.license_date.month) for record in licenses
    )
    most_active_month = None
    if months:
        (year, month), _ = months.most_common(1)[0]
        most_active_month = f"{month}/{year}"

    this_month = [
        record
        for record in licenses
        if record.license_date.year == today.year and record.license_date.month == today.month
    ]

    return DashboardStats(
        total_employees=len(employees),
        total_licenses=len(licenses),
        full_day_licenses=sum(
            1 for record in licenses if record.license_type == LicenseType.FULL_DAY.value
        ),
        partial_day_licenses=sum(
            1 for record in licenses if record.license_type == LicenseType.PARTIAL_DAY.value
        ),
        total_hours=sum(record.hours or 0 for record in licenses),
        most_active_month=most_active_month,
        most_active_employee=_top_employee(licenses, by_id),
        this_month_count=len(this_month),
        this_month_top_employee=_top_employee(this_month, by_id),
        employee_counts=category_counts(employees),
        recent_licenses=sort_recent(licenses)[:RECENT_LIMIT],
    )
