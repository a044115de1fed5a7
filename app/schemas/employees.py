from datetime import datetime
from typing import Any
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.services.policy import Category, parse_category


class EmployeeBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str | None = Field(default=None, min_length=1, max_length=255)
    rank: str | None = Field(default=None, min_length=1, max_length=100)
    file_number: str | None = Field(default=None, min_length=1, max_length=50)
    category: Category | None = None

    @field_validator("category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> Any:
        if value is None:
            return value
        return parse_category(value)


class EmployeeCreateRequest(EmployeeBase):
    full_name: str = Field(..., min_length=1, max_length=255)
    rank: str = Field(..., min_length=1, max_length=100)
    file_number: str = Field(..., min_length=1, max_length=50)
    category: Category


class EmployeeUpdateRequest(EmployeeBase):
    pass


class EmployeeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    full_name: str
    rank: str
    file_number: str
    # Stored value, kept verbatim so legacy labels survive a round trip.
    category: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EmployeeImportError(BaseModel):
    employee: dict[str, Any]
    error: str


class EmployeeImportResults(BaseModel):
    success: list[EmployeeResponse] = Field(default_factory=list)
    errors: list[EmployeeImportError] = Field(default_factory=list)


class EmployeeImportResponse(BaseModel):
    message: str
    success_count: int
    error_count: int
    results: EmployeeImportResults


class EmployeeCsvImportRequest(BaseModel):
    csv_text: str
