"""Coercion of raw string inputs (CLI, env, action inputs) into typed values."""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from utils.errors import ConfigurationError


def split_csv(value: Union[str, Iterable[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        if not value:
            return []
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


def split_csv_ints(value: Union[str, Iterable[object], None], name: str = "value") -> List[int]:
    numbers: List[int] = []
    for item in split_csv(value):
        try:
            numbers.append(int(item))
        except ValueError:
            raise ConfigurationError(f"{name} must be a comma-separated list of integers, got {item!r}") from None
    return numbers


def to_bool(value: Union[str, bool, None], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def to_positive_int(value: Union[str, int, None], default: Optional[int], name: str = "value") -> Optional[int]:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None
    if number <= 0:
        raise ConfigurationError(f"{name} must be greater than zero, got {number}")
    return number
