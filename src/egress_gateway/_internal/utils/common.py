from datetime import datetime, timezone
from typing import Optional, TypeVar

T = TypeVar("T")


def get_current_datetime() -> datetime:
    return datetime.now(tz=timezone.utc)


def get_or_error(v: Optional[T]) -> T:
    """
    Unpacks an optional value. Used to denote that None is not possible in the current context.
    """
    if v is None:
        raise ValueError("Optional value is None")
    return v


def equal_fold(a: Optional[str], b: Optional[str]) -> bool:
    """
    Case-insensitive comparison that treats None as an empty string.
    Azure resource IDs and names are case-insensitive.
    """
    return (a or "").lower() == (b or "").lower()


def fnv64a(data: bytes) -> int:
    h = 0xCBF29CE484222325
    for byte in data:
        h ^= byte
        h = (h * 0x100000001B3) & 0xFFFFFFFFFFFFFFFF
    return h
