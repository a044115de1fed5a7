import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.services.data_source import FixtureDataSource, configure_data_source, get_data_source
from app.services.policy import MonthlyLimits, ReportingHourWeights


def test_limits_default_when_unset(monkeypatch):
    for name in ("LICENSE_MAX_FULL_DAYS", "LICENSE_MAX_SHORT_LICENSES", "LICENSE_MAX_HOURS_PER_MONTH"):
        monkeypatch.delenv(name, raising=False)

    assert MonthlyLimits.from_env() == MonthlyLimits(3, 4, 12)


def test_limits_read_from_environment(monkeypatch):
    monkeypatch.setenv("LICENSE_MAX_HOURS_PER_MONTH", "16")
    monkeypatch.setenv("REPORT_PARTIAL_DAY_HOURS", "3")

    assert MonthlyLimits.from_env().max_hours_per_month == 16
    assert ReportingHourWeights.from_env().partial_day == 3


@pytest.mark.parametrize("value", ["abc", "0", "-2"])
def test_bad_limit_values_fail_fast(monkeypatch, value):
    monkeypatch.setenv("LICENSE_MAX_FULL_DAYS", value)

    with pytest.raises(RuntimeError, match="LICENSE_MAX_FULL_DAYS"):
        MonthlyLimits.from_env()


def test_fixture_mode_serves_bundled_data(monkeypatch):
    monkeypatch.setenv("LICENSE_DATA_SOURCE", "fixture")
    monkeypatch.delenv("LICENSE_FIXTURE_PATH", raising=False)
    demo = FastAPI()

    @demo.get("/count")
    def count(source=Depends(get_data_source)) -> dict:
        return {"employees": len(source.list_employees())}

    assert configure_data_source(demo) == "fixture"
    assert isinstance(demo.state.fixture_source, FixtureDataSource)
    assert TestClient(demo).get("/count").json() == {"employees": 7}


def test_unknown_data_source_mode_is_rejected(monkeypatch):
    monkeypatch.setenv("LICENSE_DATA_SOURCE", "memory")

    with pytest.raises(RuntimeError, match="LICENSE_DATA_SOURCE"):
        configure_data_source(FastAPI())
