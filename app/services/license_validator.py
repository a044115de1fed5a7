from typing import Any, Iterable, Mapping, TypeVar

from pydantic import ValidationError

from app.schemas.licenses import (
    LicenseCandidate,
    LicenseDecision,
    LicenseResponse,
    LimitNotice,
    MonthlyStats,
)
from app.services.monthly_stats import monthly_stats
from app.services.policy import DEFAULT_LIMITS, LicenseType, MonthlyLimits


CandidateT = TypeVar("CandidateT", bound=LicenseCandidate)


class InvalidLicenseInput(ValueError):
    pass


def build_candidate(
    raw: Mapping[str, Any], model: type[CandidateT] = LicenseCandidate
) -> CandidateT:
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'license'}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidLicenseInput(details) from exc


def find_conflicts(candidate: LicenseCandidate, records: Iterable[Any]) -> list[Any]:
    return [
        record
        for record in records
        if record.employee_id == candidate.employee_id
        and record.license_date == candidate.license_date
    ]


def _full_day_notices(stats: MonthlyStats) -> list[LimitNotice]:
    limit = stats.full_day_limit
    used = stats.full_day_count
    if stats.remaining_full_days <= 0:
        return [
            LimitNotice(
                axis="full_days",
                critical=True,
                limit=limit,
                used=used,
                requested=1,
                excess=used + 1 - limit,
                message=f"Full-day license limit reached for this month ({used}/{limit}).",
                message_ar=f"تم استنفاد حد الاستئذانات الطويلة لهذا الشهر ({used}/{limit})",
            )
        ]
    if stats.remaining_full_days == 1:
        return [
            LimitNotice(
                axis="full_days",
                critical=False,
                limit=limit,
                used=used,
                requested=1,
                message=f"Only one full-day license remains this month ({used}/{limit} used).",
                message_ar=f"متبقي استئذان طويل واحد فقط لهذا الشهر ({used}/{limit})",
            )
        ]
    return []


def _short_license_notices(stats: MonthlyStats) -> list[LimitNotice]:
    limit = stats.short_license_limit
    used = stats.partial_day_count
    if stats.remaining_short_licenses <= 0:
        return [
            LimitNotice(
                axis="short_licenses",
                critical=True,
                limit=limit,
                used=used,
                requested=1,
                excess=used + 1 - limit,
                message=f"Short license limit reached for this month ({used}/{limit}).",
                message_ar=f"تم استنفاد حد الاستئذانات القصيرة لهذا الشهر ({used}/{limit})",
            )
        ]
    if stats.remaining_short_licenses == 1:
        return [
            LimitNotice(
                axis="short_licenses",
                critical=False,
                limit=limit,
                used=used,
                requested=1,
                message=f"Only one short license remains this month ({used}/{limit} used).",
                message_ar=f"متبقي استئذان قصير واحد فقط لهذا الشهر ({used}/{limit})",
            )
        ]
    return []


def _hours_notices(stats: MonthlyStats, hours: int) -> list[LimitNotice]:
    limit = stats.hours_limit
    used = stats.total_partial_hours
    new_total = used + hours
    if new_total > limit:
        excess = new_total - limit
        return [
            LimitNotice(
                axis="hours",
                critical=True,
                limit=limit,
                used=used,
                requested=hours,
                excess=excess,
                message=(
                    f"Monthly hours would exceed the limit by {excess} "
                    f"({new_total}/{limit})."
                ),
                message_ar=f"تجاوز حد الساعات الشهرية بمقدار {excess} ساعة ({new_total}/{limit})",
            )
        ]
    if new_total == limit:
        return [
            LimitNotice(
                axis="hours",
                critical=True,
                limit=limit,
                used=used,
                requested=hours,
                message=f"Monthly hours would reach the limit ({new_total}/{limit}).",
                message_ar=f"الوصول إلى حد الساعات الشهرية ({new_total}/{limit})",
            )
        ]
    # Below the cap the candidate always fits in the remaining hours, so no advisory applies.
    return []


def evaluate_license(
    candidate: LicenseCandidate,
    records: Iterable[Any],
    employees: Iterable[Any],
    limits: MonthlyLimits = DEFAULT_LIMITS,
) -> LicenseDecision:
    """Decides whether ``candidate`` may be stored next to ``records``.

    Returns a blocked, warned or accepted decision. Quota notices are
    computed even when a same-date record already blocks the candidate.
    Raises InvalidLicenseInput when the employee does not resolve.
    """
    if not any(employee.id == candidate.employee_id for employee in employees):
        raise InvalidLicenseInput(f"Unknown employee: {candidate.employee_id}.")

    records = list(records)
    conflicts = find_conflicts(candidate, records)
    stats = monthly_stats(
        candidate.employee_id,
        candidate.license_date.year,
        candidate.license_date.month,
        records,
        limits,
    )

    if candidate.license_type is LicenseType.FULL_DAY:
        notices = _full_day_notices(stats)
    else:
        notices = _short_license_notices(stats) + _hours_notices(stats, candidate.hours)

    if conflicts:
        status, reason = "blocked", "duplicate_date"
    elif any(notice.critical for notice in notices):
        status, reason = "blocked", "monthly_limit_exceeded"
    elif notices:
        status, reason = "warned", None
    else:
        status, reason = "accepted", None

    return LicenseDecision(
        status=status,
        reason=reason,
        notices=notices,
        conflicts=[
            LicenseResponse.model_validate(record, from_attributes=True)
            for record in conflicts
        ],
        stats=stats,
    )
