"""
coreorm/converters/base.py
--------------------------
Converter contract: a stateless, bidirectional transform between an
application value and the value handed to (or received from) the driver.
"""

from typing import Any


class Converter:
    """
    Base converter. Subclasses override `to_db` and `from_db`.

    Both directions raise ValueError or TypeError when a value cannot be
    converted; callers wrap those into ConversionError. ``None`` never
    reaches a converter.
    """

    def to_db(self, value: Any) -> Any:
        return value

    def from_db(self, raw: Any) -> Any:
        return raw

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
