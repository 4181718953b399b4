"""
db/ - Database Layer
====================
The driver seam (connection checkout, execution, commit/rollback) and the
SQL compiler. This layer knows nothing about repositories.
"""

from coreorm.db.compiler import compile_insert, compile_query
from coreorm.db.connection import Database, ExecResult

__all__ = ["Database", "ExecResult", "compile_insert", "compile_query"]
