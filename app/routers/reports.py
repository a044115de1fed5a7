from datetime import date

from fastapi import APIRouter, Depends, Query, Response

from app.routers.licenses import license_filter
from app.schemas.licenses import LicenseFilter
from app.schemas.reports import DashboardStats, MonthlyLimitReportResponse, SummaryReportResponse
from app.services.data_source import DataSource, get_data_source
from app.services.policy import (
    MonthlyLimits,
    ReportingHourWeights,
    get_monthly_limits,
    get_report_weights,
)
from app.services.report_service import monthly_limit_report, summary_csv, summary_report
from app.services.stats_service import dashboard_stats

router = APIRouter(tags=["reports"])


@router.get(
    "/reports/summary",
    response_model=SummaryReportResponse,
)
def get_summary_report(
    flt: LicenseFilter = Depends(license_filter),
    source: DataSource = Depends(get_data_source),
    weights: ReportingHourWeights = Depends(get_report_weights),
) -> SummaryReportResponse:
    return summary_report(source.list_licenses(), flt, weights)


@router.get("/reports/summary.csv")
def export_summary_report(
    flt: LicenseFilter = Depends(license_filter),
    source: DataSource = Depends(get_data_source),
    weights: ReportingHourWeights = Depends(get_report_weights),
) -> Response:
    report = summary_report(source.list_licenses(), flt, weights)
    return Response(
        content=summary_csv(report),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="summary-report.csv"'},
    )


@router.get(
    "/reports/monthly-limits",
    response_model=MonthlyLimitReportResponse,
)
def get_monthly_limit_report(
    year: int | None = Query(default=None, ge=1900, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    source: DataSource = Depends(get_data_source),
    limits: MonthlyLimits = Depends(get_monthly_limits),
) -> MonthlyLimitReportResponse:
    today = date.today()
    return monthly_limit_report(
        source.list_employees(),
        source.list_licenses(),
        year or today.year,
        month or today.month,
        limits,
    )


@router.get(
    "/stats",
    response_model=DashboardStats,
)
def get_dashboard_stats(
    source: DataSource = Depends(get_data_source),
) -> DashboardStats:
    return dashboard_stats(source.list_employees(), source.list_licenses())
