"""Configuration package for the pay station."""
from .settings import get_settings, Settings

__all__ = ["Settings", "get_settings"]
