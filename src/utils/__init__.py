"""
Utility modules for Coinlens.
"""

from .clock import Clock, ManualClock, SystemClock
from .logging import get_logger, setup_logging

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "get_logger",
    "setup_logging",
]
