"""Monitoring package: structured logging for the pay station."""
from .logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
