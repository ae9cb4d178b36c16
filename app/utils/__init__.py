"""Utility modules."""

from app.utils.normalization import localized_text, slugify

__all__ = ["localized_text", "slugify"]
