"""
coreorm/converters/enum.py
--------------------------
Stores an Enum member as its value (default) or its name.
"""

from enum import Enum
from typing import Any

from coreorm.converters.base import Converter


class EnumConverter(Converter):
    """
    Enum <-> value or name.

    Args:
        enum_type: The Enum class.
        by_name: Store ``member.name`` instead of ``member.value``.
    """

    def __init__(self, enum_type: type[Enum], by_name: bool = False) -> None:
        self.enum_type = enum_type
        self.by_name = by_name

    def to_db(self, value: Any) -> Any:
        if not isinstance(value, self.enum_type):
            value = self.from_db(value)
        return value.name if self.by_name else value.value

    def from_db(self, raw: Any) -> Enum:
        if isinstance(raw, self.enum_type):
            return raw
        if self.by_name:
            try:
                return self.enum_type[raw]
            except KeyError:
                raise ValueError(f"{raw!r} is not a {self.enum_type.__name__} name") from None
        return self.enum_type(raw)

    def __repr__(self) -> str:
        return f"EnumConverter({self.enum_type.__name__}, by_name={self.by_name})"
