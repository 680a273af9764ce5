"""Utility modules."""

from .glob_patterns import PatternSet, expand_braces, translate_glob
from .logger_setup import get_logger, LoggerManager
from .retry import backoff_delay, run_with_backoff, wait

__all__ = [
    # Glob matching
    "PatternSet",
    "expand_braces",
    "translate_glob",
    # Logging utilities
    "get_logger",
    "LoggerManager",
    # Retry plumbing
    "backoff_delay",
    "run_with_backoff",
    "wait",
]
