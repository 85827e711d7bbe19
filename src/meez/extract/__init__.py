"""HTML content extraction (no model calls)."""

from .extractor import extract

__all__ = ["extract"]
