import unicodedata
from typing import Any, Iterable, TypeVar

from app.services.policy import (
    CATEGORY_ORDER,
    NCO_RANK_ORDER,
    OFFICER_RANK_ORDER,
    OFFICER_RANK_SUFFIX,
    UNKNOWN_ORDER,
    Category,
    coerce_category,
)

T = TypeVar("T")

_NAME_FOLDS = str.maketrans({"ٱ": "ا", "ـ": None})


def name_key(name: str | None) -> tuple[str, str]:
    """Collation key for display names.

    Approximates Arabic locale collation rather than implementing it:
    decomposes, drops combining marks (harakat, hamza and madda on alef,
    Latin accents) and tatweel, then casefolds. Forms such as أحمد and
    احمد therefore fold to the same primary key, and the raw name is the
    secondary key that orders them deterministically.
    """
    raw = name or ""
    decomposed = unicodedata.normalize("NFKD", raw)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    folded = stripped.translate(_NAME_FOLDS).casefold()
    return folded, raw


def category_order(category: str | None) -> int:
    resolved = coerce_category(category)
    if resolved is None:
        return UNKNOWN_ORDER
    return CATEGORY_ORDER[resolved]


def normalize_officer_rank(rank: str | None) -> str:
    return (rank or "").replace(OFFICER_RANK_SUFFIX, "").strip()


def rank_order(category: str | None, rank: str | None) -> int:
    """Rank priority within officer and NCO categories; 0 where no rank order applies."""
    resolved = coerce_category(category)
    if resolved is Category.OFFICER:
        return OFFICER_RANK_ORDER.get(normalize_officer_rank(rank), UNKNOWN_ORDER)
    if resolved is Category.NCO:
        return NCO_RANK_ORDER.get(rank or "", UNKNOWN_ORDER)
    return 0


def _position_key(employee: Any) -> tuple[int, int]:
    if employee is None:
        return UNKNOWN_ORDER, 0
    return category_order(employee.category), rank_order(employee.category, employee.rank)


def employee_sort_key(employee: Any) -> tuple:
    return (*_position_key(employee), name_key(employee.full_name))


def license_sort_key(license_record: Any) -> tuple:
    # Most recent license_date first within the same category and rank.
    return (
        *_position_key(license_record.employee),
        -license_record.license_date.toordinal(),
    )


def sort_employees(employees: Iterable[T]) -> list[T]:
    return sorted(employees, key=employee_sort_key)


def sort_licenses(licenses: Iterable[T]) -> list[T]:
    return sorted(licenses, key=license_sort_key)


def _created_key(record: Any) -> tuple[bool, float]:
    created = record.created_at
    return created is not None, created.timestamp() if created is not None else 0.0


def sort_recent(records: Iterable[T]) -> list[T]:
    """Newest created first; records without a creation time go last."""
    return sorted(records, key=_created_key, reverse=True)


def sort_by_employee(rows: Iterable[T], attr: str = "employee") -> list[T]:
    """Orders report rows by the employee comparator of the row's ``attr``."""
    return sorted(rows, key=lambda row: employee_sort_key(getattr(row, attr)))
