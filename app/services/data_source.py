import json
import logging
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Protocol

from fastapi import Depends, FastAPI, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.models.employees import Employee
from app.models.licenses import License
from app.schemas.employees import EmployeeCreateRequest, EmployeeResponse
from app.schemas.licenses import LicenseCandidate, LicenseResponse
from app.services.policy import Category
from db import get_db
from models import utcnow

logger = logging.getLogger(__name__)

DEFAULT_FIXTURE_PATH = Path(__file__).resolve().parent.parent / "fixtures" / "sample_data.json"
DATA_SOURCE_MODES = {"database", "fixture"}


class DataSourceError(Exception):
    pass


class DuplicateFileNumberError(DataSourceError):
    def __init__(self, file_number: str) -> None:
        super().__init__(f"File number already exists: {file_number}.")
        self.file_number = file_number


class DuplicateLicenseDateError(DataSourceError):
    def __init__(self, employee_id: uuid.UUID, license_date: Any) -> None:
        super().__init__(f"Employee {employee_id} already has a license on {license_date}.")
        self.employee_id = employee_id
        self.license_date = license_date


class MissingEmployeeError(DataSourceError):
    def __init__(self, employee_id: uuid.UUID) -> None:
        super().__init__(f"Employee not found: {employee_id}.")
        self.employee_id = employee_id


class DataSource(Protocol):
    def list_employees(self) -> list[EmployeeResponse]: ...

    def get_employee(self, employee_id: uuid.UUID) -> EmployeeResponse | None: ...

    def create_employee(self, payload: EmployeeCreateRequest) -> EmployeeResponse: ...

    def update_employee(
        self, employee_id: uuid.UUID, changes: dict[str, Any]
    ) -> EmployeeResponse | None: ...

    def delete_employee(self, employee_id: uuid.UUID) -> bool: ...

    def list_licenses(self, employee_id: uuid.UUID | None = None) -> list[LicenseResponse]: ...

    def get_license(self, license_id: uuid.UUID) -> LicenseResponse | None: ...

    def create_license(self, candidate: LicenseCandidate) -> LicenseResponse: ...

    def update_license(
        self, license_id: uuid.UUID, candidate: LicenseCandidate
    ) -> LicenseResponse | None: ...

    def delete_license(self, license_id: uuid.UUID) -> bool: ...


def _employee_values(changes: dict[str, Any]) -> dict[str, Any]:
    values = dict(changes)
    if isinstance(values.get("category"), Category):
        values["category"] = values["category"].value
    return values


def _license_values(candidate: LicenseCandidate) -> dict[str, Any]:
    return {
        "employee_id": candidate.employee_id,
        "license_type": candidate.license_type.value,
        "license_date": candidate.license_date,
        "hours": candidate.hours,
        "month": candidate.license_date.month,
        "year": candidate.license_date.year,
    }


class DatabaseDataSource:
    def __init__(self, db: Session) -> None:
        self.db = db

    def _employee_row(self, employee_id: uuid.UUID) -> Employee | None:
        return self.db.scalar(select(Employee).where(Employee.id == employee_id))

    def _license_row(self, license_id: uuid.UUID) -> License | None:
        return self.db.scalar(
            select(License)
            .options(selectinload(License.employee))
            .where(License.id == license_id)
        )

    def list_employees(self) -> list[EmployeeResponse]:
        rows = self.db.scalars(select(Employee).order_by(Employee.created_at)).all()
        return [EmployeeResponse.model_validate(row) for row in rows]

    def get_employee(self, employee_id: uuid.UUID) -> EmployeeResponse | None:
        row = self._employee_row(employee_id)
        return EmployeeResponse.model_validate(row) if row else None

    def create_employee(self, payload: EmployeeCreateRequest) -> EmployeeResponse:
        row = Employee(**_employee_values(payload.model_dump()))
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateFileNumberError(payload.file_number) from exc
        self.db.refresh(row)
        return EmployeeResponse.model_validate(row)

    def update_employee(
        self, employee_id: uuid.UUID, changes: dict[str, Any]
    ) -> EmployeeResponse | None:
        row = self._employee_row(employee_id)
        if not row:
            return None
        for field, value in _employee_values(changes).items():
            setattr(row, field, value)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateFileNumberError(changes.get("file_number", row.file_number)) from exc
        self.db.refresh(row)
        return EmployeeResponse.model_validate(row)

    def delete_employee(self, employee_id: uuid.UUID) -> bool:
        row = self._employee_row(employee_id)
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    def list_licenses(self, employee_id: uuid.UUID | None = None) -> list[LicenseResponse]:
        stmt = select(License).options(selectinload(License.employee))
        if employee_id is not None:
            stmt = stmt.where(License.employee_id == employee_id)
        rows = self.db.scalars(stmt.order_by(License.created_at)).all()
        return [LicenseResponse.model_validate(row) for row in rows]

    def get_license(self, license_id: uuid.UUID) -> LicenseResponse | None:
        row = self._license_row(license_id)
        return LicenseResponse.model_validate(row) if row else None

    def _commit_license(self, license_id: uuid.UUID, candidate: LicenseCandidate) -> LicenseResponse:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            clash = self.db.scalar(
                select(License.id).where(
                    License.employee_id == candidate.employee_id,
                    License.license_date == candidate.license_date,
                    License.id != license_id,
                )
            )
            if clash:
                raise DuplicateLicenseDateError(
                    candidate.employee_id, candidate.license_date
                ) from exc
            if not self._employee_row(candidate.employee_id):
                raise MissingEmployeeError(candidate.employee_id) from exc
            raise
        return LicenseResponse.model_validate(self._license_row(license_id))

    def create_license(self, candidate: LicenseCandidate) -> LicenseResponse:
        license_id = uuid.uuid4()
        self.db.add(License(id=license_id, **_license_values(candidate)))
        return self._commit_license(license_id, candidate)

    def update_license(
        self, license_id: uuid.UUID, candidate: LicenseCandidate
    ) -> LicenseResponse | None:
        row = self.db.scalar(select(License).where(License.id == license_id))
        if not row:
            return None
        for field, value in _license_values(candidate).items():
            setattr(row, field, value)
        return self._commit_license(license_id, candidate)

    def delete_license(self, license_id: uuid.UUID) -> bool:
        row = self.db.scalar(select(License).where(License.id == license_id))
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True


class FixtureDataSource:
    """In-memory store for offline and demo use; writes last for the process lifetime."""

    def __init__(
        self,
        employees: list[dict[str, Any]] | None = None,
        licenses: list[dict[str, Any]] | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._employees: dict[uuid.UUID, EmployeeResponse] = {}
        self._licenses: dict[uuid.UUID, LicenseResponse] = {}
        for raw in employees or []:
            employee = EmployeeResponse.model_validate(
                {"created_at": utcnow(), "updated_at": utcnow(), **raw}
            )
            try:
                self._check_file_number(employee.file_number)
            except DuplicateFileNumberError as exc:
                raise ValueError(f"Fixture employee {employee.id}: {exc}") from exc
            self._employees[employee.id] = employee
        for raw in licenses or []:
            record = LicenseResponse.model_validate(
                {"created_at": utcnow(), "updated_at": utcnow(), "month": 0, "year": 0, **raw}
            )
            record = record.model_copy(
                update={
                    "month": record.license_date.month,
                    "year": record.license_date.year,
                    "employee": None,
                }
            )
            try:
                self._check_license_date(record)
            except DataSourceError as exc:
                raise ValueError(f"Fixture license {record.id}: {exc}") from exc
            self._licenses[record.id] = record

    @classmethod
    def from_file(cls, path: str | Path) -> "FixtureDataSource":
        with open(path, encoding="utf-8") as handle:
            payload = json.load(handle)
        source = cls(payload.get("employees", []), payload.get("licenses", []))
        logger.info(
            "Loaded fixture %s: %d employees, %d licenses",
            path,
            len(source._employees),
            len(source._licenses),
        )
        return source

    def _attach(self, record: LicenseResponse) -> LicenseResponse:
        return record.model_copy(update={"employee": self._employees.get(record.employee_id)})

    def _check_file_number(self, file_number: str, exclude_id: uuid.UUID | None = None) -> None:
        for employee in self._employees.values():
            if employee.file_number == file_number and employee.id != exclude_id:
                raise DuplicateFileNumberError(file_number)

    def _check_license_date(
        self,
        candidate: LicenseCandidate | LicenseResponse,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        if candidate.employee_id not in self._employees:
            raise MissingEmployeeError(candidate.employee_id)
        for record in self._licenses.values():
            if (
                record.employee_id == candidate.employee_id
                and record.license_date == candidate.license_date
                and record.id != exclude_id
            ):
                raise DuplicateLicenseDateError(candidate.employee_id, candidate.license_date)

    def list_employees(self) -> list[EmployeeResponse]:
        with self._lock:
            return list(self._employees.values())

    def get_employee(self, employee_id: uuid.UUID) -> EmployeeResponse | None:
        with self._lock:
            return self._employees.get(employee_id)

    def create_employee(self, payload: EmployeeCreateRequest) -> EmployeeResponse:
        with self._lock:
            self._check_file_number(payload.file_number)
            now = utcnow()
            employee = EmployeeResponse(
                id=uuid.uuid4(),
                created_at=now,
                updated_at=now,
                **_employee_values(payload.model_dump()),
            )
            self._employees[employee.id] = employee
            return employee

    def update_employee(
        self, employee_id: uuid.UUID, changes: dict[str, Any]
    ) -> EmployeeResponse | None:
        with self._lock:
            current = self._employees.get(employee_id)
            if not current:
                return None
            values = _employee_values(changes)
            if "file_number" in values:
                self._check_file_number(values["file_number"], exclude_id=employee_id)
            updated = current.model_copy(update={**values, "updated_at": utcnow()})
            self._employees[employee_id] = updated
            return updated

    def delete_employee(self, employee_id: uuid.UUID) -> bool:
        with self._lock:
            if self._employees.pop(employee_id, None) is None:
                return False
            owned = [key for key, record in self._licenses.items() if record.employee_id == employee_id]
            for key in owned:
                del self._licenses[key]
            return True

    def list_licenses(self, employee_id: uuid.UUID | None = None) -> list[LicenseResponse]:
        with self._lock:
            return [
                self._attach(record)
                for record in self._licenses.values()
                if employee_id is None or record.employee_id == employee_id
            ]

    def get_license(self, license_id: uuid.UUID) -> LicenseResponse | None:
        with self._lock:
            record = self._licenses.get(license_id)
            return self._attach(record) if record else None

    def create_license(self, candidate: LicenseCandidate) -> LicenseResponse:
        with self._lock:
            self._check_license_date(candidate)
            now = utcnow()
            record = LicenseResponse(
                id=uuid.uuid4(),
                created_at=now,
                updated_at=now,
                **_license_values(candidate),
            )
            self._licenses[record.id] = record
            return self._attach(record)

    def update_license(
        self, license_id: uuid.UUID, candidate: LicenseCandidate
    ) -> LicenseResponse | None:
        with self._lock:
            current = self._licenses.get(license_id)
            if not current:
                return None
            self._check_license_date(candidate, exclude_id=license_id)
            updated = current.model_copy(
                update={**_license_values(candidate), "updated_at": utcnow()}
            )
            self._licenses[license_id] = updated
            return self._attach(updated)

    def delete_license(self, license_id: uuid.UUID) -> bool:
        with self._lock:
            return self._licenses.pop(license_id, None) is not None


def _data_source_mode() -> str:
    mode = os.getenv("LICENSE_DATA_SOURCE", "database").strip().lower() or "database"
    if mode not in DATA_SOURCE_MODES:
        raise RuntimeError(
            f"LICENSE_DATA_SOURCE must be one of {sorted(DATA_SOURCE_MODES)}, got {mode!r}."
        )
    return mode


def configure_data_source(app: FastAPI) -> str:
    mode = _data_source_mode()
    if mode == "fixture":
        path = os.getenv("LICENSE_FIXTURE_PATH", "").strip() or DEFAULT_FIXTURE_PATH
        app.state.fixture_source = FixtureDataSource.from_file(path)
        logger.warning("LICENSE_DATA_SOURCE=fixture -> serving in-memory data from %s", path)
    else:
        app.state.fixture_source = None
        logger.info("LICENSE_DATA_SOURCE=database -> using SQLAlchemy session per request")
    app.state.data_source_mode = mode
    return mode


def get_data_source(
    request: Request, db: Session = Depends(get_db)
) -> DataSource:
    fixture = getattr(request.app.state, "fixture_source", None)
    if fixture is not None:
        return fixture
    return DatabaseDataSource(db)
