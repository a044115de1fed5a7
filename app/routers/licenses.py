from datetime import date
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas.licenses import (
    DuplicateCheckResponse,
    LicenseCandidate,
    LicenseCreateRequest,
    LicenseDecision,
    LicenseFilter,
    LicenseResponse,
    LicenseSubmissionResponse,
    LicenseUpdateRequest,
)
from app.services.data_source import DataSource, get_data_source
from app.services.license_service import preview_license, revise_license, submit_license
from app.services.license_validator import build_candidate
from app.services.policy import MonthlyLimits, get_monthly_limits
from app.services.report_service import filter_licenses, licenses_csv
from app.services.sorting import sort_licenses, sort_recent

router = APIRouter(prefix="/licenses", tags=["licenses"])


def license_filter(
    employee_id: list[UUID] | None = Query(default=None),
    category: list[str] | None = Query(default=None),
    license_type: str | None = None,
    year: int | None = None,
    month: list[int] | None = Query(default=None),
    date_from: date | None = None,
    date_to: date | None = None,
    q: str | None = None,
) -> LicenseFilter:
    try:
        return LicenseFilter(
            employee_ids=employee_id,
            categories=category,
            license_type=license_type,
            year=year,
            months=month,
            date_from=date_from,
            date_to=date_to,
            search=q,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


def _candidate(payload: LicenseCreateRequest) -> LicenseCandidate:
    return LicenseCandidate.model_validate(payload.model_dump(exclude={"confirm_warnings"}))


@router.get(
    "",
    response_model=list[LicenseResponse],
)
def list_licenses(
    flt: LicenseFilter = Depends(license_filter),
    order: Literal["sorted", "recent"] = "sorted",
    source: DataSource = Depends(get_data_source),
) -> list[LicenseResponse]:
    records = filter_licenses(source.list_licenses(), flt)
    if order == "recent":
        return sort_recent(records)
    return sort_licenses(records)


@router.post(
    "",
    response_model=LicenseSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_license(
    payload: dict[str, Any],
    source: DataSource = Depends(get_data_source),
    limits: MonthlyLimits = Depends(get_monthly_limits),
) -> LicenseSubmissionResponse:
    request = build_candidate(payload, LicenseCreateRequest)
    return submit_license(source, _candidate(request), request.confirm_warnings, limits)


@router.post(
    "/validate",
    response_model=LicenseDecision,
)
def validate_license(
    payload: dict[str, Any],
    exclude_id: UUID | None = None,
    source: DataSource = Depends(get_data_source),
    limits: MonthlyLimits = Depends(get_monthly_limits),
) -> LicenseDecision:
    candidate = build_candidate(payload)
    return preview_license(source, candidate, limits, exclude_id=exclude_id)


@router.get("/export.csv")
def export_licenses(
    flt: LicenseFilter = Depends(license_filter),
    source: DataSource = Depends(get_data_source),
) -> Response:
    records = sort_licenses(filter_licenses(source.list_licenses(), flt))
    return Response(
        content=licenses_csv(records),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="licenses.csv"'},
    )


@router.get(
    "/check-duplicate/{employee_id}/{license_date}",
    response_model=DuplicateCheckResponse,
)
def check_duplicate(
    employee_id: UUID,
    license_date: date,
    exclude_id: UUID | None = None,
    source: DataSource = Depends(get_data_source),
) -> DuplicateCheckResponse:
    duplicates = [
        record
        for record in source.list_licenses(employee_id)
        if record.license_date == license_date and record.id != exclude_id
    ]
    return DuplicateCheckResponse(has_duplicate=bool(duplicates), duplicates=duplicates)


@router.get(
    "/{license_id}",
    response_model=LicenseResponse,
)
def get_license(
    license_id: UUID,
    source: DataSource = Depends(get_data_source),
) -> LicenseResponse:
    record = source.get_license(license_id)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="License not found.",
        )
    return record


@router.put(
    "/{license_id}",
    response_model=LicenseSubmissionResponse,
)
def update_license(
    license_id: UUID,
    payload: dict[str, Any],
    source: DataSource = Depends(get_data_source),
    limits: MonthlyLimits = Depends(get_monthly_limits),
) -> LicenseSubmissionResponse:
    request = build_candidate(payload, LicenseUpdateRequest)
    result = revise_license(
        source, license_id, _candidate(request), request.confirm_warnings, limits
    )
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="License not found.",
        )
    return result


@router.delete(
    "/{license_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_license(
    license_id: UUID,
    source: DataSource = Depends(get_data_source),
) -> None:
    if not source.delete_license(license_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="License not found.",
        )
