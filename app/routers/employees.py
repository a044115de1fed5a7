from datetime import date
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas.employees import (
    EmployeeCreateRequest,
    EmployeeCsvImportRequest,
    EmployeeImportResponse,
    EmployeeResponse,
    EmployeeUpdateRequest,
)
from app.schemas.licenses import LicenseResponse, MonthlyStats
from app.services.data_source import DataSource, DuplicateFileNumberError, get_data_source
from app.services.employee_import import (
    CSV_TEMPLATE,
    EmptyImportError,
    import_employees,
    parse_employee_csv,
)
from app.services.monthly_stats import monthly_stats
from app.services.policy import MonthlyLimits, get_monthly_limits
from app.services.report_service import matches_category, matches_search
from app.services.sorting import sort_employees, sort_licenses

router = APIRouter(prefix="/employees", tags=["employees"])


def _get_employee_or_404(source: DataSource, employee_id: UUID) -> EmployeeResponse:
    employee = source.get_employee(employee_id)
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found.",
        )
    return employee


def _file_number_conflict(exc: DuplicateFileNumberError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"File number already exists: {exc.file_number}.",
    )


@router.get(
    "",
    response_model=list[EmployeeResponse],
)
def list_employees(
    q: str | None = None,
    category: list[str] | None = Query(default=None),
    source: DataSource = Depends(get_data_source),
) -> list[EmployeeResponse]:
    employees = source.list_employees()
    if q:
        employees = [employee for employee in employees if matches_search(employee, q)]
    if category:
        employees = [employee for employee in employees if matches_category(employee, category)]
    return sort_employees(employees)


@router.post(
    "",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_employee(
    payload: EmployeeCreateRequest,
    source: DataSource = Depends(get_data_source),
) -> EmployeeResponse:
    try:
        return source.create_employee(payload)
    except DuplicateFileNumberError as exc:
        raise _file_number_conflict(exc) from exc


@router.get("/template")
def employee_template() -> Response:
    return Response(content=CSV_TEMPLATE, media_type="text/csv")


@router.post(
    "/bulk",
    response_model=EmployeeImportResponse,
    status_code=status.HTTP_201_CREATED,
)
def bulk_create_employees(
    payload: list[dict[str, Any]],
    source: DataSource = Depends(get_data_source),
) -> EmployeeImportResponse:
    try:
        return import_employees(source, payload)
    except EmptyImportError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.post(
    "/import-csv",
    response_model=EmployeeImportResponse,
)
def import_employees_csv(
    payload: EmployeeCsvImportRequest,
    source: DataSource = Depends(get_data_source),
) -> EmployeeImportResponse:
    try:
        return import_employees(source, parse_employee_csv(payload.csv_text))
    except EmptyImportError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
def get_employee(
    employee_id: UUID,
    source: DataSource = Depends(get_data_source),
) -> EmployeeResponse:
    return _get_employee_or_404(source, employee_id)


def _apply_update(
    source: DataSource, employee_id: UUID, changes: dict[str, Any]
) -> EmployeeResponse:
    _get_employee_or_404(source, employee_id)
    try:
        employee = source.update_employee(employee_id, changes)
    except DuplicateFileNumberError as exc:
        raise _file_number_conflict(exc) from exc
    if not employee:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found.",
        )
    return employee


@router.put(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
def replace_employee(
    employee_id: UUID,
    payload: EmployeeCreateRequest,
    source: DataSource = Depends(get_data_source),
) -> EmployeeResponse:
    return _apply_update(source, employee_id, payload.model_dump())


@router.patch(
    "/{employee_id}",
    response_model=EmployeeResponse,
)
def update_employee(
    employee_id: UUID,
    payload: EmployeeUpdateRequest,
    source: DataSource = Depends(get_data_source),
) -> EmployeeResponse:
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None
    }
    return _apply_update(source, employee_id, changes)


@router.delete(
    "/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def delete_employee(
    employee_id: UUID,
    source: DataSource = Depends(get_data_source),
) -> None:
    if not source.delete_employee(employee_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found.",
        )


@router.get(
    "/{employee_id}/licenses",
    response_model=list[LicenseResponse],
)
def list_employee_licenses(
    employee_id: UUID,
    source: DataSource = Depends(get_data_source),
) -> list[LicenseResponse]:
    _get_employee_or_404(source, employee_id)
    return sort_licenses(source.list_licenses(employee_id))


@router.get(
    "/{employee_id}/monthly-stats",
    response_model=MonthlyStats,
)
def employee_monthly_stats(
    employee_id: UUID,
    year: int | None = Query(default=None, ge=1900, le=9999),
    month: int | None = Query(default=None, ge=1, le=12),
    source: DataSource = Depends(get_data_source),
    limits: MonthlyLimits = Depends(get_monthly_limits),
) -> MonthlyStats:
    _get_employee_or_404(source, employee_id)
    today = date.today()
    return monthly_stats(
        employee_id,
        year or today.year,
        month or today.month,
        source.list_licenses(employee_id),
        limits,
    )
