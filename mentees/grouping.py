from __future__ import annotations

import unicodedata
from typing import Any, Dict, Iterable, List, Tuple

FALLBACK_CLASS = "Unassigned"
UNKNOWN_CLASS = "unknown"

# Letters NFKD leaves whole.
_BASE_LETTERS = str.maketrans({"đ": "d", "ø": "o", "ł": "l", "ß": "ss", "æ": "ae", "œ": "oe"})


def class_code(student: Any) -> str:
    """Class code of a card, student dict or object; empty when it has none."""
    course_class = student.get("class") if isinstance(student, dict) else getattr(student, "course_class", None)
    if course_class is None:
        return ""
    if isinstance(course_class, dict):
        return course_class.get("code") or ""
    return getattr(course_class, "code", "") or ""


def _sort_key(value: str) -> Tuple[str, str, str]:
    folded = value.casefold()
    decomposed = unicodedata.normalize("NFKD", folded.translate(_BASE_LETTERS))
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base, folded, value


def sort_keys(keys: Iterable[str]) -> List[str]:
    """Case-insensitive, accent-insensitive order; ties fall back to the raw string."""
    return sorted(keys, key=_sort_key)


def group_students_by_class(students: Iterable[Any]) -> Dict[str, List[Any]]:
    """
    Bucket students by class code, keys in case-insensitive alphabetical order.

    Students without a class land under ``FALLBACK_CLASS``; input order is
    kept inside each bucket.
    """
    grouped: Dict[str, List[Any]] = {}
    for student in students:
        grouped.setdefault(class_code(student) or FALLBACK_CLASS, []).append(student)
    return {key: grouped[key] for key in sort_keys(grouped)}


def group_columns_by_class(columns: Dict[str, List[Any]]) -> Dict[str, Dict[str, List[Any]]]:
    return {category: group_students_by_class(cards) for category, cards in columns.items()}


def should_group_by_class(students: Iterable[Any]) -> bool:
    return len({class_code(s) or UNKNOWN_CLASS for s in students}) > 1
