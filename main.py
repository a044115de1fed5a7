import logging
import os

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.routers.employees import router as employees_router
from app.routers.licenses import router as licenses_router
from app.routers.reports import router as reports_router
from app.services.data_source import configure_data_source
from app.services.license_service import LicenseBlockedError, LicenseConfirmationRequired
from app.services.license_validator import InvalidLicenseInput
from app.services.policy import get_monthly_limits, get_report_weights
from db import engine
from models import Base

logger = logging.getLogger("license-registry-api")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())


def _build_cors_origins() -> list[str]:
    required = {
        "http://localhost:3000",
        "http://localhost:5173",
    }
    extra = os.getenv("CORS_ORIGINS", "")
    if extra:
        for origin in extra.split(","):
            stripped = origin.strip()
            if stripped:
                required.add(stripped)
    return sorted(required)


app = FastAPI(title="License Registry API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_build_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(employees_router, prefix="/api")
app.include_router(licenses_router, prefix="/api")
app.include_router(reports_router, prefix="/api")


@app.exception_handler(InvalidLicenseInput)
def handle_invalid_license_input(
    request: Request, exc: InvalidLicenseInput
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "invalid_input", "detail": str(exc)},
    )


@app.exception_handler(LicenseBlockedError)
def handle_license_blocked(request: Request, exc: LicenseBlockedError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "blocked",
            "reason": exc.decision.reason,
            "decision": exc.decision.model_dump(mode="json"),
        },
    )


@app.exception_handler(LicenseConfirmationRequired)
def handle_confirmation_required(
    request: Request, exc: LicenseConfirmationRequired
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "confirmation_required",
            "decision": exc.decision.model_dump(mode="json"),
        },
    )


@app.exception_handler(OperationalError)
def handle_data_source_unavailable(request: Request, exc: OperationalError) -> JSONResponse:
    logger.exception("Data store unavailable while serving %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"error": "data_source_unavailable"},
    )


def _should_create_schema() -> bool:
    """
    Safety switch. Keep OFF in Cloud Run.
    Only use for local/dev bootstrap.
    """
    return os.getenv("AUTO_CREATE_SCHEMA", "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }


@app.on_event("startup")
def on_startup() -> None:
    limits = get_monthly_limits()
    weights = get_report_weights()
    logger.info(
        "Monthly limits: %d full days, %d short licenses, %d hours; report weights %d/%d",
        limits.full_day_licenses,
        limits.short_licenses,
        limits.max_hours_per_month,
        weights.full_day,
        weights.partial_day,
    )
    mode = configure_data_source(app)
    if mode != "database":
        return
    if _should_create_schema():
        logger.warning("AUTO_CREATE_SCHEMA is enabled -> running Base.metadata.create_all()")
        Base.metadata.create_all(bind=engine)
    else:
        logger.info("AUTO_CREATE_SCHEMA is disabled -> NOT running create_all()")


@app.get("/")
def root() -> dict:
    return {"ok": True, "service": "license-registry-api", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict:
    return {"ok": True, "data_source": getattr(app.state, "data_source_mode", None)}
