"""Markdown helpers used when composing the merged report."""

from .markers import MarkerManager, SectionContent
from .toc import TableOfContentsBuilder

__all__ = ["MarkerManager", "SectionContent", "TableOfContentsBuilder"]
