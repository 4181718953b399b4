"""
coreorm/utils/ - Shared helpers (logging).
"""
