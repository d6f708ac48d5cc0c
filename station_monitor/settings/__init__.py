"""Application settings loading."""

from .app import DEFAULT_API_BASE, AppSettings, get_settings


__all__ = ["DEFAULT_API_BASE", "AppSettings", "get_settings"]
