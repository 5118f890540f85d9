"""Settings normalization."""

from .config_resolver import DEFAULT_SETTINGS, merge_settings, parse_clock, resolve_settings

__all__ = ["DEFAULT_SETTINGS", "merge_settings", "parse_clock", "resolve_settings"]
