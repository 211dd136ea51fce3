"""Count Expander."""

from .count_expander import CountExpander, expand

__all__ = ["CountExpander", "expand"]
