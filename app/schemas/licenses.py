from datetime import date, datetime
from typing import Any, Literal
import uuid

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from app.schemas.employees import EmployeeResponse
from app.services.policy import LicenseType, parse_license_type

DecisionStatus = Literal["accepted", "warned", "blocked"]
BlockReason = Literal["duplicate_date", "monthly_limit_exceeded"]
LimitAxis = Literal["full_days", "short_licenses", "hours"]


class LicenseCandidate(BaseModel):
    employee_id: uuid.UUID
    license_type: LicenseType
    license_date: date
    hours: int | None = None

    @field_validator("license_type", mode="before")
    @classmethod
    def _parse_license_type(cls, value: Any) -> Any:
        return parse_license_type(value)

    @field_validator("license_date", mode="before")
    @classmethod
    def _strip_time(cls, value: Any) -> Any:
        # Dates arrive with a time part from some clients; only the calendar day counts.
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
            return value[:10]
        return value

    @model_validator(mode="after")
    def _check_hours(self) -> "LicenseCandidate":
        if self.license_type is LicenseType.PARTIAL_DAY:
            if self.hours is None or self.hours <= 0:
                raise ValueError("Partial-day licenses require a positive number of hours.")
        elif self.hours:
            raise ValueError("Full-day licenses must not carry hours.")
        else:
            self.hours = None
        return self


class LicenseCreateRequest(LicenseCandidate):
    confirm_warnings: bool = False


class LicenseUpdateRequest(LicenseCreateRequest):
    pass


class LicenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    license_type: str
    license_date: date
    hours: int | None = None
    month: int
    year: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    employee: EmployeeResponse | None = None


class MonthlyStats(BaseModel):
    employee_id: uuid.UUID
    year: int
    month: int
    full_day_count: int = 0
    partial_day_count: int = 0
    total_partial_hours: int = 0
    remaining_full_days: int
    remaining_short_licenses: int
    remaining_hours: int
    full_day_limit: int
    short_license_limit: int
    hours_limit: int


class LimitNotice(BaseModel):
    axis: LimitAxis
    critical: bool
    limit: int
    used: int
    requested: int
    excess: int | None = None
    message: str
    message_ar: str


class LicenseDecision(BaseModel):
    status: DecisionStatus
    reason: BlockReason | None = None
    notices: list[LimitNotice] = Field(default_factory=list)
    conflicts: list[LicenseResponse] = Field(default_factory=list)
    stats: MonthlyStats

    @computed_field
    @property
    def allowed(self) -> bool:
        return self.status != "blocked"

    @computed_field
    @property
    def requires_confirmation(self) -> bool:
        return self.status == "warned"

    @property
    def messages(self) -> list[str]:
        return [notice.message for notice in self.notices]


class LicenseSubmissionResponse(BaseModel):
    license: LicenseResponse
    decision: LicenseDecision


class DuplicateCheckResponse(BaseModel):
    has_duplicate: bool
    duplicates: list[LicenseResponse]


class LicenseFilter(BaseModel):
    employee_ids: list[uuid.UUID] | None = None
    categories: list[str] | None = None
    license_type: LicenseType | None = None
    year: int | None = None
    months: list[int] | None = None
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = None

    @field_validator("license_type", mode="before")
    @classmethod
    def _parse_license_type(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return parse_license_type(value)

    @field_validator("months")
    @classmethod
    def _check_months(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return value
        for month in value:
            if month < 1 or month > 12:
                raise ValueError(f"Month out of range: {month}.")
        return value
