import csv
import logging
from io import StringIO
from typing import Any

from pydantic import ValidationError

from app.schemas.employees import (
    EmployeeCreateRequest,
    EmployeeImportError,
    EmployeeImportResponse,
    EmployeeImportResults,
)
from app.services.data_source import DataSource, DuplicateFileNumberError

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("full_name", "rank", "file_number", "category")
CSV_TEMPLATE = "full_name,rank,file_number,category\r\nأحمد محمد,نقيب,12345,ضابط\r\n"

MISSING_DATA = "بيانات مفقودة"
DUPLICATE_FILE_NUMBER = "رقم الملف موجود مسبقاً"
INVALID_DATA = "بيانات غير صالحة"


class EmptyImportError(ValueError):
    def __init__(self) -> None:
        super().__init__("يجب إرسال مصفوفة من الموظفين")


def _clean(raw: dict[str, Any]) -> dict[str, str]:
    return {
        field: str(raw.get(field) if raw.get(field) is not None else "").strip()
        for field in CSV_COLUMNS
    }


def import_employees(source: DataSource, rows: list[dict[str, Any]]) -> EmployeeImportResponse:
    if not rows:
        raise EmptyImportError()

    results = EmployeeImportResults()
    taken = {employee.file_number for employee in source.list_employees()}

    for raw in rows:
        values = _clean(raw)
        if not all(values.values()):
            results.errors.append(EmployeeImportError(employee=raw, error=MISSING_DATA))
            continue
        if values["file_number"] in taken:
            results.errors.append(EmployeeImportError(employee=raw, error=DUPLICATE_FILE_NUMBER))
            continue
        try:
            payload = EmployeeCreateRequest.model_validate(values)
        except ValidationError as exc:
            reason = "; ".join(error["msg"] for error in exc.errors())
            results.errors.append(
                EmployeeImportError(employee=raw, error=f"{INVALID_DATA}: {reason}")
            )
            continue
        try:
            created = source.create_employee(payload)
        except DuplicateFileNumberError:
            results.errors.append(EmployeeImportError(employee=raw, error=DUPLICATE_FILE_NUMBER))
            continue
        taken.add(created.file_number)
        results.success.append(created)

    logger.info(
        "Employee import finished: %d created, %d rejected",
        len(results.success),
        len(results.errors),
    )
    return EmployeeImportResponse(
        message=f"تم إضافة {len(results.success)} موظف بنجاح",
        success_count=len(results.success),
        error_count=len(results.errors),
        results=results,
    )


def parse_employee_csv(csv_text: str) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    reader = csv.reader(StringIO(csv_text.lstrip("\ufeff")))
    for row in reader:
        if not row or not any(cell.strip() for cell in row):
            continue
        if [cell.strip().lower() for cell in row[: len(CSV_COLUMNS)]] == list(CSV_COLUMNS):
            continue
        padded = list(row) + [""] * (len(CSV_COLUMNS) - len(row))
        rows.append(dict(zip(CSV_COLUMNS, padded)))
    return rows
