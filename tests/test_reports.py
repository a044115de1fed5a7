from datetime import date

from app.schemas.licenses import LicenseFilter
from app.services.policy import Category, LicenseType, ReportingHourWeights
from app.services.report_service import (
    build_report_title,
    filter_licenses,
    group_by_employee,
    licenses_csv,
    monthly_limit_report,
    summary_csv,
    summary_report,
)
from app.services.sorting import sort_employees


def test_group_by_employee_counts_and_weights(make_employee, make_license):
    employee = make_employee("أحمد", "رائد")
    records = [
        make_license(employee, date(2024, 3, 1)),
        make_license(employee, date(2024, 3, 2)),
        make_license(employee, date(2024, 3, 3), hours=1),
    ]

    rows = group_by_employee(records)

    assert len(rows) == 1
    assert rows[0].full_days == 2
    assert rows[0].half_days == 1
    assert rows[0].total_hours == 20


def test_group_by_employee_uses_configured_weights(make_employee, make_license):
    employee = make_employee()
    records = [
        make_license(employee, date(2024, 3, 1)),
        make_license(employee, date(2024, 3, 2), hours=3),
    ]

    rows = group_by_employee(records, ReportingHourWeights(full_day=7, partial_day=3))

    assert rows[0].total_hours == 10


def test_group_by_employee_drops_records_without_employee(make_employee, make_license):
    employee = make_employee()
    records = [make_license(None, date(2024, 3, 1)), make_license(employee, date(2024, 3, 2))]

    rows = group_by_employee(records)

    assert [row.employee.id for row in rows] == [employee.id]


def test_group_order_matches_employee_sort(make_employee, make_license):
    sergeant = make_employee("ماجد", "رقيب", Category.NCO.value)
    corporal = make_employee("بدر", "عريف", Category.NCO.value)
    captain_b = make_employee("يعقوب", "نقيب", Category.OFFICER.value)
    captain_a = make_employee("أنور", "نقيب", Category.OFFICER.value)
    employees = [sergeant, corporal, captain_b, captain_a]
    records = [
        make_license(employee, date(2024, 3, index + 1))
        for index, employee in enumerate(employees)
    ]

    rows = group_by_employee(records)

    assert [row.employee.id for row in rows] == [
        employee.id for employee in sort_employees(employees)
    ]
    assert [row.employee.full_name for row in rows] == ["أنور", "يعقوب", "ماجد", "بدر"]


def test_filter_licenses_by_month_category_type_and_search(make_employee, make_license):
    officer = make_employee("أحمد الكندري", "رائد", Category.OFFICER.value, "10001")
    civilian = make_employee("سارة", "باحث", Category.CIVILIAN.value, "40001")
    march = make_license(officer, date(2024, 3, 5))
    april = make_license(officer, date(2024, 4, 5), hours=2)
    civil = make_license(civilian, date(2024, 3, 6))
    records = [march, april, civil]

    assert filter_licenses(records, LicenseFilter(months=[3])) == [march, civil]
    assert filter_licenses(records, LicenseFilter(categories=["officer"])) == [march, april]
    assert filter_licenses(
        records, LicenseFilter(license_type=LicenseType.PARTIAL_DAY.value)
    ) == [april]
    assert filter_licenses(records, LicenseFilter(search="احمد")) == [march, april]
    assert filter_licenses(records, LicenseFilter(search="40001")) == [civil]
    assert filter_licenses(
        records, LicenseFilter(date_from=date(2024, 3, 6), date_to=date(2024, 4, 1))
    ) == [civil]
    assert filter_licenses(records, LicenseFilter(year=2023)) == []


def test_report_title_variants():
    assert build_report_title() == ("تقرير متابعة موظفي إدارة السجل العام", "")

    title, subtitle = build_report_title(2025, [3], ["ضابط"])
    assert title == "تقرير متابعة موظفي إدارة السجل العام لسنة 2025"
    assert subtitle == "لشهر مارس ( ضباط )"

    _, subtitle = build_report_title(2025, list(range(1, 13)), ["ضابط", "ضابط صف"])
    assert subtitle == "لجميع أشهر السنة ( ضباط / ضباط صف )"

    _, subtitle = build_report_title(2025, [1, 2], ["متعاقد"])
    assert subtitle == "لأشهر يناير و فبراير ( متعاقد )"


def test_summary_report_totals(make_employee, make_license):
    first = make_employee("أ", "رائد")
    second = make_employee("ب", "نقيب")
    records = [
        make_license(first, date(2025, 1, 1)),
        make_license(first, date(2025, 1, 2), hours=2),
        make_license(second, date(2025, 1, 3)),
        make_license(second, date(2025, 2, 3)),
    ]

    report = summary_report(records, LicenseFilter(year=2025, months=[1]))

    assert report.title.endswith("لسنة 2025")
    assert report.subtitle == "لشهر يناير"
    assert report.totals.employees == 2
    assert report.totals.licenses == 3
    assert report.totals.full_days == 2
    assert report.totals.half_days == 1
    assert report.totals.total_hours == 20


def test_monthly_limit_report_flags(make_employee, make_license):
    over = make_employee("أ", "رائد")
    at = make_employee("ب", "نقيب")
    quiet = make_employee("ج", "ملازم")
    idle = make_employee("د", "ملازم")
    records = [make_license(over, date(2024, 3, day)) for day in (1, 2, 3, 4)]
    records += [make_license(at, date(2024, 3, day), hours=1) for day in (1, 2, 3, 4)]
    records.append(make_license(quiet, date(2024, 3, 1), hours=2))
    records.append(make_license(idle, date(2024, 2, 1)))

    report = monthly_limit_report([idle, quiet, at, over], records, 2024, 3)

    assert [row.employee.id for row in report.rows] == [over.id, at.id, quiet.id]
    over_row, at_row, quiet_row = report.rows
    assert over_row.is_over_limit is True
    assert over_row.warnings == ["تجاوز حد الاستئذانات الطويلة (4/3)"]
    assert at_row.is_over_limit is False
    assert at_row.is_at_limit is True
    assert quiet_row.is_at_limit is False
    assert quiet_row.remaining_hours == 10


def test_licenses_csv_format(make_employee, make_license):
    employee = make_employee("أحمد", "رائد", file_number="10001")
    records = [
        make_license(employee, date(2024, 3, 5), hours=2),
        make_license(employee, date(2024, 1, 9)),
    ]

    content = licenses_csv(records)

    assert content.startswith("\ufeff")
    lines = content[1:].split("\r\n")
    assert lines[0] == "م,الرتبة,اسم الموظف,رقم الملف,نوع الرخصة,تاريخ الرخصة,الساعات,الشهر,السنة"
    assert lines[1] == "1,رائد,أحمد,10001,نصف يوم,05/03/2024,2,3,2024"
    assert lines[2] == "2,رائد,أحمد,10001,يوم كامل,09/01/2024,,1,2024"
    assert lines[3] == ""


def test_summary_csv_ends_with_totals(make_employee, make_license):
    employee = make_employee("أحمد", "رائد", file_number="10001")
    report = summary_report([make_license(employee, date(2024, 3, 5))], LicenseFilter())

    lines = summary_csv(report)[1:].split("\r\n")

    assert lines[1] == "1,رائد,أحمد,10001,ضابط,1,0,8"
    assert lines[2] == ",,الإجمالي,,,1,0,8"
