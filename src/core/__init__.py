"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- The shared strict-then-relax fallback helper
- Common utilities
"""

from core.logging import configure_logging, get_logger, request_context
from core.fallback import DegradeResult, Stage, degrade_until_min_keep
from core.utils import clamp, get_field, lc, mean, pick

__all__ = [
    "configure_logging",
    "get_logger",
    "request_context",
    "DegradeResult",
    "Stage",
    "degrade_until_min_keep",
    "clamp",
    "get_field",
    "lc",
    "mean",
    "pick",
]
