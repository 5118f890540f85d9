"""Quick-add capture parsing."""

from .quick_add import QuickAddResult, parse_quick_add

__all__ = ["QuickAddResult", "parse_quick_add"]
