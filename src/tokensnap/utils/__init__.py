"""Utility functions for tokensnap."""

from .logging import StructuredLogger, configure_logging, get_logger

__all__ = ["configure_logging", "get_logger", "StructuredLogger"]
