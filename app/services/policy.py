import enum
import os
from dataclasses import dataclass
from functools import lru_cache


class Category(str, enum.Enum):
    OFFICER = "ضابط"
    NCO = "ضابط صف"
    PROFESSIONAL = "مهني"
    CIVILIAN = "مدني"


class LicenseType(str, enum.Enum):
    FULL_DAY = "يوم كامل"
    PARTIAL_DAY = "نصف يوم"


CATEGORY_ALIASES: dict[str, Category] = {
    "officer": Category.OFFICER,
    "nco": Category.NCO,
    "non-commissioned officer": Category.NCO,
    "professional": Category.PROFESSIONAL,
    "civilian": Category.CIVILIAN,
}

LICENSE_TYPE_ALIASES: dict[str, LicenseType] = {
    "full_day": LicenseType.FULL_DAY,
    "full day": LicenseType.FULL_DAY,
    "full": LicenseType.FULL_DAY,
    "partial_day": LicenseType.PARTIAL_DAY,
    "partial day": LicenseType.PARTIAL_DAY,
    "half_day": LicenseType.PARTIAL_DAY,
    "half day": LicenseType.PARTIAL_DAY,
    "partial": LicenseType.PARTIAL_DAY,
    "half": LicenseType.PARTIAL_DAY,
}

UNKNOWN_ORDER = 99

CATEGORY_ORDER: dict[Category, int] = {
    Category.OFFICER: 1,
    Category.NCO: 2,
    Category.PROFESSIONAL: 3,
    Category.CIVILIAN: 4,
}

OFFICER_RANK_ORDER: dict[str, int] = {
    "مقدم": 1,
    "رائد": 2,
    "نقيب": 3,
    "ملازم أول": 4,
    "ملازم": 5,
}

# Legal-branch officers carry this qualifier after the rank title.
OFFICER_RANK_SUFFIX = " حقوقي"

NCO_RANK_ORDER: dict[str, int] = {
    "و.أ.ضابط": 1,
    "و.ضابط": 2,
    "رقيب أول": 3,
    "رقيب": 4,
    "عريف": 5,
    "و.عريف": 6,
}

CATEGORY_PLURALS: dict[Category, str] = {
    Category.OFFICER: "ضباط",
    Category.NCO: "ضباط صف",
    Category.PROFESSIONAL: "مهنيين",
    Category.CIVILIAN: "مدنيين",
}

ARABIC_MONTHS = (
    "يناير",
    "فبراير",
    "مارس",
    "أبريل",
    "مايو",
    "يونيو",
    "يوليو",
    "أغسطس",
    "سبتمبر",
    "أكتوبر",
    "نوفمبر",
    "ديسمبر",
)


def parse_category(value: "Category | str") -> Category:
    if isinstance(value, Category):
        return value
    text = str(value).strip()
    try:
        return Category(text)
    except ValueError:
        pass
    alias = CATEGORY_ALIASES.get(text.lower())
    if alias is None:
        raise ValueError(f"Unknown category: {value!r}.")
    return alias


def parse_license_type(value: "LicenseType | str") -> LicenseType:
    if isinstance(value, LicenseType):
        return value
    text = str(value).strip()
    try:
        return LicenseType(text)
    except ValueError:
        pass
    alias = LICENSE_TYPE_ALIASES.get(text.lower())
    if alias is None:
        raise ValueError(f"Unknown license type: {value!r}.")
    return alias


def coerce_category(value: str | None) -> Category | None:
    """Lenient lookup for stored values; legacy strings map to None."""
    if value is None:
        return None
    try:
        return parse_category(value)
    except ValueError:
        return None


def arabic_month_name(month: int) -> str:
    return ARABIC_MONTHS[month - 1]


def _positive_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive, got {value}.")
    return value


@dataclass(frozen=True)
class MonthlyLimits:
    full_day_licenses: int = 3
    short_licenses: int = 4
    max_hours_per_month: int = 12

    @classmethod
    def from_env(cls) -> "MonthlyLimits":
        return cls(
            full_day_licenses=_positive_int_env("LICENSE_MAX_FULL_DAYS", 3),
            short_licenses=_positive_int_env("LICENSE_MAX_SHORT_LICENSES", 4),
            max_hours_per_month=_positive_int_env("LICENSE_MAX_HOURS_PER_MONTH", 12),
        )


@dataclass(frozen=True)
class ReportingHourWeights:
    """Fixed per-type hour estimates used by summary reports, not the recorded hours."""

    full_day: int = 8
    partial_day: int = 4

    @classmethod
    def from_env(cls) -> "ReportingHourWeights":
        return cls(
            full_day=_positive_int_env("REPORT_FULL_DAY_HOURS", 8),
            partial_day=_positive_int_env("REPORT_PARTIAL_DAY_HOURS", 4),
        )


DEFAULT_LIMITS = MonthlyLimits()
DEFAULT_WEIGHTS = ReportingHourWeights()


@lru_cache
def get_monthly_limits() -> MonthlyLimits:
    return MonthlyLimits.from_env()


@lru_cache
def get_report_weights() -> ReportingHourWeights:
    return ReportingHourWeights.from_env()
