"""Base renderer class and registry.

This module defines the abstract ReportRenderer interface and the
renderer_registry for plugin-style registration of concrete
implementations, plus the formatting helpers they share.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Tuple

from ..diagnostics import ElaborationFailure, Finding, Report
from ..model import SourceLocation
from ..registry import Registry

# Registry for renderer implementations
renderer_registry = Registry("renderer")


def format_location(loc: Optional[SourceLocation]) -> str:
    return str(loc) if loc is not None else "<unknown>"


def format_scope(top: str, path: Tuple[str, ...]) -> str:
    """``top[path]``, e.g. ``adder_tree[gen_add(3).u_add]``."""
    return f"{top}[{'.'.join(path)}]"


def format_finding(finding: Finding) -> str:
    """Render one finding as a single line.

    ``<severity>: <rule>: <top>[<path>]: <process>/<signal>: <message> (<location>)``
    """
    return (
        f"{finding.severity.value}: {finding.rule}: {format_scope(finding.top, finding.path)}: "
        f"{finding.subject}: {finding.message} ({format_location(finding.loc)})"
    )


def format_failure(failure: ElaborationFailure) -> str:
    return (
        f"{failure.severity.value}: {failure.category}: {failure.top}: "
        f"{failure.message} ({format_location(failure.loc)})"
    )


class ReportRenderer(ABC):
    """Abstract base class for rendering an analysis report."""

    @abstractmethod
    def render(self, report: Report) -> str:
        """Render ``report``.

        Args:
            report: The deduplicated, sorted :class:`Report`.

        Returns:
            A string containing the formatted output.
        """
        raise NotImplementedError
