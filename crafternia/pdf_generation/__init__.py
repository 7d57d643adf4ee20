"""
Printable PDF export for breakdown packages.
"""

from .builder import BreakdownPDFBuilder, PageLayoutConfig

__all__ = ["BreakdownPDFBuilder", "PageLayoutConfig"]
