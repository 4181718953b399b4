"""
repositories/ - Data Access Layer
==================================
The generic repository executes compiled or raw SQL and turns rows back
into records, resolving joined associations from the same result set.
"""

from coreorm.repositories.materializer import materialize
from coreorm.repositories.repository import Repository

__all__ = ["Repository", "materialize"]
