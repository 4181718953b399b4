"""
coreorm/converters/json_value.py
--------------------------------
Stores lists/dicts as JSON text, for drivers without native array or
JSON column support (e.g. sqlite3).
"""

import json
from typing import Any

from coreorm.converters.base import Converter


class JSONConverter(Converter):
    """Python structure <-> JSON text."""

    def to_db(self, value: Any) -> str:
        return json.dumps(value)

    def from_db(self, raw: Any) -> Any:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        if not isinstance(raw, str):
            # Already decoded by the driver (psycopg2 json/jsonb columns).
            return raw
        return json.loads(raw)
