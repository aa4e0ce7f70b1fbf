"""
Input normalization shared by the write-side services.
"""

from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from app.services.errors import ValidationError

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value, field_name: str) -> E:
    """
    Coerce value to a member of enum_cls (case-insensitive).

    Raises ValidationError("invalid <field_name>") for anything else.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    raise ValidationError(f"invalid {field_name}")


def require_length(value: Optional[str], field_name: str, min_len: int, max_len: int) -> str:
    """Trim and check length bounds (inclusive)."""
    value = (value or "").strip()
    if not min_len <= len(value) <= max_len:
        raise ValidationError(f"invalid {field_name}")
    return value


def unique_ids(ids: Optional[Iterable[str]]) -> List[str]:
    """Trimmed, non-empty ids with duplicates dropped, first occurrence kept."""
    cleaned = [(i or "").strip() for i in ids or []]
    return list(dict.fromkeys(i for i in cleaned if i))
