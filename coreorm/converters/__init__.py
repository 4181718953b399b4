"""
coreorm/converters/ - Value Converters
======================================
Bidirectional transforms between application values and stored values.
"""

from coreorm.converters.base import Converter
from coreorm.converters.enum import EnumConverter
from coreorm.converters.json_value import JSONConverter

__all__ = ["Converter", "EnumConverter", "JSONConverter"]
