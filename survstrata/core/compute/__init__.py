"""
Shared compute infrastructure for survstrata.

Submodules:
    timing: Execution timing utilities
"""

from survstrata.core.compute.timing import Timer, timed

__all__ = [
    "Timer",
    "timed",
]
