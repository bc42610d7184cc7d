"""
nabudb Utilities Module.

Configuration profiles and testing helpers.
"""

from nabudb.utils.defaults import DEFAULT_COMPAT, DEFAULT_STRICT, DefaultsProfile

__all__ = [
    "DefaultsProfile",
    "DEFAULT_STRICT",
    "DEFAULT_COMPAT",
]
