import logging
import uuid

from app.schemas.licenses import LicenseCandidate, LicenseDecision, LicenseSubmissionResponse
from app.services.data_source import DataSource, DuplicateLicenseDateError, MissingEmployeeError
from app.services.license_validator import InvalidLicenseInput, evaluate_license
from app.services.policy import DEFAULT_LIMITS, MonthlyLimits

logger = logging.getLogger(__name__)


class LicenseBlockedError(Exception):
    def __init__(self, decision: LicenseDecision) -> None:
        super().__init__(f"License blocked: {decision.reason}.")
        self.decision = decision


class LicenseConfirmationRequired(Exception):
    def __init__(self, decision: LicenseDecision) -> None:
        super().__init__("License requires confirmation of quota warnings.")
        self.decision = decision


def preview_license(
    source: DataSource,
    candidate: LicenseCandidate,
    limits: MonthlyLimits = DEFAULT_LIMITS,
    exclude_id: uuid.UUID | None = None,
) -> LicenseDecision:
    employee = source.get_employee(candidate.employee_id)
    records = [
        record
        for record in source.list_licenses(candidate.employee_id)
        if record.id != exclude_id
    ]
    return evaluate_license(candidate, records, [employee] if employee else [], limits)


def _admit(decision: LicenseDecision, candidate: LicenseCandidate, confirm_warnings: bool) -> None:
    if decision.status == "blocked":
        logger.info(
            "Blocked license for employee %s on %s: %s",
            candidate.employee_id,
            candidate.license_date,
            decision.reason,
        )
        raise LicenseBlockedError(decision)
    if decision.requires_confirmation and not confirm_warnings:
        logger.info(
            "License for employee %s on %s needs confirmation: %s",
            candidate.employee_id,
            candidate.license_date,
            "; ".join(decision.messages),
        )
        raise LicenseConfirmationRequired(decision)


def _duplicate_block(
    source: DataSource,
    candidate: LicenseCandidate,
    decision: LicenseDecision,
    exclude_id: uuid.UUID | None = None,
) -> LicenseDecision:
    conflicts = [
        record
        for record in source.list_licenses(candidate.employee_id)
        if record.license_date == candidate.license_date and record.id != exclude_id
    ]
    return decision.model_copy(
        update={"status": "blocked", "reason": "duplicate_date", "conflicts": conflicts}
    )


def submit_license(
    source: DataSource,
    candidate: LicenseCandidate,
    confirm_warnings: bool = False,
    limits: MonthlyLimits = DEFAULT_LIMITS,
) -> LicenseSubmissionResponse:
    decision = preview_license(source, candidate, limits)
    _admit(decision, candidate, confirm_warnings)
    try:
        stored = source.create_license(candidate)
    except DuplicateLicenseDateError as exc:
        logger.warning(
            "Storage rejected duplicate license for employee %s on %s",
            candidate.employee_id,
            candidate.license_date,
        )
        raise LicenseBlockedError(_duplicate_block(source, candidate, decision)) from exc
    except MissingEmployeeError as exc:
        raise InvalidLicenseInput(str(exc)) from exc
    return LicenseSubmissionResponse(license=stored, decision=decision)


def revise_license(
    source: DataSource,
    license_id: uuid.UUID,
    candidate: LicenseCandidate,
    confirm_warnings: bool = False,
    limits: MonthlyLimits = DEFAULT_LIMITS,
) -> LicenseSubmissionResponse | None:
    if source.get_license(license_id) is None:
        return None
    decision = preview_license(source, candidate, limits, exclude_id=license_id)
    _admit(decision, candidate, confirm_warnings)
    try:
        stored = source.update_license(license_id, candidate)
    except DuplicateLicenseDateError as exc:
        logger.warning(
            "Storage rejected duplicate license for employee %s on %s",
            candidate.employee_id,
            candidate.license_date,
        )
        raise LicenseBlockedError(
            _duplicate_block(source, candidate, decision, exclude_id=license_id)
        ) from exc
    except MissingEmployeeError as exc:
        raise InvalidLicenseInput(str(exc)) from exc
    if stored is None:
        return None
    return LicenseSubmissionResponse(license=stored, decision=decision)
