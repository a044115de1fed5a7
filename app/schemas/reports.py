from pydantic import BaseModel, Field

from app.schemas.employees import EmployeeResponse
from app.schemas.licenses import LicenseResponse


class EmployeeReportRow(BaseModel):
    employee: EmployeeResponse
    full_days: int = 0
    half_days: int = 0
    total_hours: int = 0


class ReportTotals(BaseModel):
    employees: int = 0
    licenses: int = 0
    full_days: int = 0
    half_days: int = 0
    total_hours: int = 0


class SummaryReportResponse(BaseModel):
    title: str
    subtitle: str
    rows: list[EmployeeReportRow]
    totals: ReportTotals


class MonthlyLimitRow(BaseModel):
    employee: EmployeeResponse
    full_day_count: int
    partial_day_count: int
    total_partial_hours: int
    remaining_full_days: int
    remaining_short_licenses: int
    remaining_hours: int
    is_over_limit: bool
    is_at_limit: bool
    warnings: list[str] = Field(default_factory=list)
    warnings_en: list[str] = Field(default_factory=list)


class MonthlyLimitReportResponse(BaseModel):
    year: int
    month: int
    full_day_limit: int
    short_license_limit: int
    hours_limit: int
    rows: list[MonthlyLimitRow]


class EmployeeActivity(BaseModel):
    employee: EmployeeResponse
    license_count: int


class DashboardStats(BaseModel):
    total_employees: int
    total_licenses: int
    full_day_licenses: int
    partial_day_licenses: int
    total_hours: int
    most_active_month: str | None = None
    most_active_employee: EmployeeActivity | None = None
    this_month_count: int = 0
    this_month_top_employee: EmployeeActivity | None = None
    employee_counts: dict[str, int] = Field(default_factory=dict)
    recent_licenses: list[LicenseResponse] = Field(default_factory=list)
