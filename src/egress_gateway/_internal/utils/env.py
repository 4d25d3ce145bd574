import os
from collections.abc import Mapping
from enum import Enum
from typing import Optional, TypeVar, overload

_E = TypeVar("_E", bound=Enum)

_TRUE_VALUES = ("1", "true", "on", "yes")
_FALSE_VALUES = ("0", "false", "off", "no")


class Environ:
    """
    Typed accessors over an environment mapping.
    Unset variables return the default; malformed values raise `ValueError`
    that names the offending variable.
    """

    def __init__(self, environ: Mapping[str, str]):
        self._environ = environ

    def get_str(self, name: str, *, default: Optional[str] = None) -> Optional[str]:
        value = self._environ.get(name)
        if value is None:
            return default
        value = value.strip()
        if value == "":
            return default
        return value

    @overload
    def get_bool(self, name: str, *, default: None = None) -> Optional[bool]: ...

    @overload
    def get_bool(self, name: str, *, default: bool) -> bool: ...

    def get_bool(self, name: str, *, default: Optional[bool] = None) -> Optional[bool]:
        if name not in self._environ:
            return default
        raw_value = self._environ[name]
        value = raw_value.strip().lower()
        if value in _TRUE_VALUES:
            return True
        if value in _FALSE_VALUES:
            return False
        raise ValueError(f"Invalid bool value: {name}={raw_value}")

    @overload
    def get_int(self, name: str, *, default: None = None) -> Optional[int]: ...

    @overload
    def get_int(self, name: str, *, default: int) -> int: ...

    def get_int(self, name: str, *, default: Optional[int] = None) -> Optional[int]:
        if name not in self._environ:
            return default
        raw_value = self._environ[name]
        try:
            return int(raw_value)
        except ValueError as e:
            raise ValueError(f"Invalid int value: {e}: {name}={raw_value}") from e

    def get_enum(self, name: str, enum_cls: type[_E], *, default: _E) -> _E:
        if name not in self._environ:
            return default
        raw_value = self._environ[name]
        try:
            return enum_cls(raw_value.strip().lower())
        except ValueError as e:
            raise ValueError(f"Invalid {enum_cls.__name__} value: {name}={raw_value}") from e


environ = Environ(os.environ)
