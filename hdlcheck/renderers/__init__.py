"""Renderer implementations for analysis reports.

This package contains the output formats:
- text: compiler-style lines plus a summary
- csv: one row per finding
- markdown: GitHub Flavoured Markdown tables

All renderers are automatically registered via decorators.
"""

from .base import ReportRenderer, format_finding, renderer_registry
from .text import TextReportRenderer
from .csv import CsvReportRenderer
from .markdown import MarkdownReportRenderer

__all__ = [
    "ReportRenderer",
    "format_finding",
    "renderer_registry",
    "TextReportRenderer",
    "CsvReportRenderer",
    "MarkdownReportRenderer",
]
