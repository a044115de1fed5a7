import csv
from datetime import date
from io import StringIO
from typing import Any, Iterable

from app.schemas.licenses import LicenseFilter
from app.schemas.reports import (
    EmployeeReportRow,
    MonthlyLimitReportResponse,
    MonthlyLimitRow,
    ReportTotals,
    SummaryReportResponse,
)
from app.services.monthly_stats import in_month, is_partial_day, monthly_stats
from app.services.policy import (
    CATEGORY_PLURALS,
    DEFAULT_LIMITS,
    DEFAULT_WEIGHTS,
    MonthlyLimits,
    ReportingHourWeights,
    arabic_month_name,
    coerce_category,
)
from app.services.sorting import name_key, sort_by_employee

REPORT_TITLE = "تقرير متابعة موظفي إدارة السجل العام"

LICENSE_CSV_HEADER = [
    "م",
    "الرتبة",
    "اسم الموظف",
    "رقم الملف",
    "نوع الرخصة",
    "تاريخ الرخصة",
    "الساعات",
    "الشهر",
    "السنة",
]

SUMMARY_CSV_HEADER = [
    "م",
    "الرتبة",
    "اسم الموظف",
    "رقم الملف",
    "الفئة",
    "أيام كاملة",
    "أنصاف أيام",
    "إجمالي الساعات",
]


def _fold(text: str | None) -> str:
    return name_key(text)[0]


def matches_search(employee: Any, query: str) -> bool:
    needle = _fold(query.strip())
    if not needle:
        return True
    if employee is None:
        return False
    return any(
        needle in _fold(value)
        for value in (employee.full_name, employee.rank, employee.file_number)
    )


def matches_category(employee: Any, categories: Iterable[str]) -> bool:
    if employee is None:
        return False
    resolved = coerce_category(employee.category)
    for category in categories:
        wanted = coerce_category(category)
        if employee.category == category or (wanted is not None and wanted is resolved):
            return True
    return False


def matches_filter(record: Any, flt: LicenseFilter) -> bool:
    if flt.employee_ids and record.employee_id not in flt.employee_ids:
        return False
    if flt.categories and not matches_category(record.employee, flt.categories):
        return False
    if flt.license_type is not None and record.license_type != flt.license_type.value:
        return False
    if flt.year is not None and record.license_date.year != flt.year:
        return False
    if flt.months and record.license_date.month not in flt.months:
        return False
    if flt.date_from is not None and record.license_date < flt.date_from:
        return False
    if flt.date_to is not None and record.license_date > flt.date_to:
        return False
    if flt.search and not matches_search(record.employee, flt.search):
        return False
    return True


def filter_licenses(records: Iterable[Any], flt: LicenseFilter) -> list[Any]:
    return [record for record in records if matches_filter(record, flt)]


def group_by_employee(
    records: Iterable[Any], weights: ReportingHourWeights = DEFAULT_WEIGHTS
) -> list[EmployeeReportRow]:
    rows: dict[Any, EmployeeReportRow] = {}
    for record in records:
        if record.employee is None:
            continue
        row = rows.get(record.employee_id)
        if row is None:
            row = EmployeeReportRow(employee=record.employee)
            rows[record.employee_id] = row
        if is_partial_day(record):
            row.half_days += 1
            row.total_hours += weights.partial_day
        else:
            row.full_days += 1
            row.total_hours += weights.full_day
    return sort_by_employee(rows.values())


def report_totals(rows: Iterable[EmployeeReportRow]) -> ReportTotals:
    totals = ReportTotals()
    for row in rows:
        totals.employees += 1
        totals.full_days += row.full_days
        totals.half_days += row.half_days
        totals.total_hours += row.total_hours
    totals.licenses = totals.full_days + totals.half_days
    return totals


def _months_text(months: list[int]) -> str:
    if not months:
        return ""
    if len(months) == 1:
        return f"لشهر {arabic_month_name(months[0])}"
    if len(set(months)) == 12:
        return "لجميع أشهر السنة"
    return "لأشهر " + " و ".join(arabic_month_name(month) for month in months)


def _categories_text(categories: list[str]) -> str:
    if not categories:
        return ""
    names = []
    for category in categories:
        resolved = coerce_category(category)
        names.append(CATEGORY_PLURALS[resolved] if resolved else category)
    return f"( {' / '.join(names)} )"


def build_report_title(
    year: int | None = None,
    months: list[int] | None = None,
    categories: list[str] | None = None,
) -> tuple[str, str]:
    title = REPORT_TITLE
    if year:
        title += f" لسنة {year}"
    parts = [_months_text(months or []), _categories_text(categories or [])]
    return title, " ".join(part for part in parts if part)


def summary_report(
    records: Iterable[Any],
    flt: LicenseFilter,
    weights: ReportingHourWeights = DEFAULT_WEIGHTS,
) -> SummaryReportResponse:
    rows = group_by_employee(filter_licenses(records, flt), weights)
    title, subtitle = build_report_title(flt.year, flt.months, flt.categories)
    return SummaryReportResponse(
        title=title,
        subtitle=subtitle,
        rows=rows,
        totals=report_totals(rows),
    )


def _limit_row(employee: Any, records: list[Any], year: int, month: int, limits: MonthlyLimits) -> MonthlyLimitRow:
    stats = monthly_stats(employee.id, year, month, records, limits)
    warnings: list[str] = []
    warnings_en: list[str] = []
    over = False
    at = False

    axes = (
        (stats.full_day_count, limits.full_day_licenses, "الاستئذانات الطويلة", "full-day licenses"),
        (stats.partial_day_count, limits.short_licenses, "الاستئذانات القصيرة", "short licenses"),
        (stats.total_partial_hours, limits.max_hours_per_month, "الساعات الشهرية", "monthly hours"),
    )
    for used, limit, label_ar, label_en in axes:
        if used > limit:
            warnings.append(f"تجاوز حد {label_ar} ({used}/{limit})")
            warnings_en.append(f"Over the {label_en} limit ({used}/{limit})")
            over = True
        elif used == limit:
            at = True

    return MonthlyLimitRow(
        employee=employee,
        full_day_count=stats.full_day_count,
        partial_day_count=stats.partial_day_count,
        total_partial_hours=stats.total_partial_hours,
        remaining_full_days=stats.remaining_full_days,
        remaining_short_licenses=stats.remaining_short_licenses,
        remaining_hours=stats.remaining_hours,
        is_over_limit=over,
        is_at_limit=at,
        warnings=warnings,
        warnings_en=warnings_en,
    )


def monthly_limit_report(
    employees: Iterable[Any],
    records: Iterable[Any],
    year: int,
    month: int,
    limits: MonthlyLimits = DEFAULT_LIMITS,
) -> MonthlyLimitReportResponse:
    in_period = [record for record in records if in_month(record, year, month)]
    active_ids = {record.employee_id for record in in_period}
    rows = [
        _limit_row(employee, in_period, year, month, limits)
        for employee in employees
        if employee.id in active_ids
    ]
    return MonthlyLimitReportResponse(
        year=year,
        month=month,
        full_day_limit=limits.full_day_licenses,
        short_license_limit=limits.short_licenses,
        hours_limit=limits.max_hours_per_month,
        rows=sort_by_employee(rows),
    )


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _write_csv(header: list[str], rows: Iterable[list[Any]]) -> str:
    buffer = StringIO()
    buffer.write("\ufeff")
    writer = csv.writer(buffer, lineterminator="\r\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def licenses_csv(records: Iterable[Any]) -> str:
    """CSV export of licenses in the given order, numbered from 1."""
    rows = []
    for index, record in enumerate(records, start=1):
        employee = record.employee
        rows.append(
            [
                index,
                employee.rank if employee else "",
                employee.full_name if employee else "",
                employee.file_number if employee else "",
                record.license_type,
                format_date(record.license_date),
                record.hours or "",
                record.month,
                record.year,
            ]
        )
    return _write_csv(LICENSE_CSV_HEADER, rows)


def summary_csv(report: SummaryReportResponse) -> str:
    rows: list[list[Any]] = [
        [
            index,
            row.employee.rank,
            row.employee.full_name,
            row.employee.file_number,
            row.employee.category,
            row.full_days,
            row.half_days,
            row.total_hours,
        ]
        for index, row in enumerate(report.rows, start=1)
    ]
    rows.append(
        [
            "",
            "",
            "الإجمالي",
            "",
            "",
            report.totals.full_days,
            report.totals.half_days,
            report.totals.total_hours,
        ]
    )
    return _write_csv(SUMMARY_CSV_HEADER, rows)
