import itertools
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.schemas.employees import EmployeeResponse
from app.schemas.licenses import LicenseResponse
from app.services.data_source import DatabaseDataSource, FixtureDataSource, get_data_source
from app.services.policy import Category, LicenseType
from db import build_engine
from main import app
from models import Base

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def db_source(db_session) -> DatabaseDataSource:
    return DatabaseDataSource(db_session)


@pytest.fixture
def fixture_source() -> FixtureDataSource:
    return FixtureDataSource()


@pytest.fixture(params=["db_source", "fixture_source"])
def source(request):
    return request.getfixturevalue(request.param)


@pytest.fixture
def client(db_source):
    app.dependency_overrides[get_data_source] = lambda: db_source
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_employee():
    counter = itertools.count(1)

    def factory(
        full_name: str = "موظف",
        rank: str = "نقيب",
        category: str = Category.OFFICER.value,
        file_number: str | None = None,
    ) -> EmployeeResponse:
        number = next(counter)
        return EmployeeResponse(
            id=uuid.uuid4(),
            full_name=full_name,
            rank=rank,
            file_number=file_number or f"F{number:04d}",
            category=category,
            created_at=BASE_TIME + timedelta(minutes=number),
        )

    return factory


@pytest.fixture
def make_license():
    counter = itertools.count(1)

    def factory(
        employee: EmployeeResponse | None,
        license_date: date,
        hours: int | None = None,
        license_type: str | None = None,
        employee_id: uuid.UUID | None = None,
    ) -> LicenseResponse:
        number = next(counter)
        if license_type is None:
            license_type = (
                LicenseType.PARTIAL_DAY.value if hours else LicenseType.FULL_DAY.value
            )
        return LicenseResponse(
            id=uuid.uuid4(),
            employee_id=employee_id or (employee.id if employee else uuid.uuid4()),
            license_type=license_type,
            license_date=license_date,
            hours=hours,
            month=license_date.month,
            year=license_date.year,
            created_at=BASE_TIME + timedelta(hours=number),
            employee=employee,
        )

    return factory
