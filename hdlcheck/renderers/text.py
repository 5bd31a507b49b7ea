"""Plain text renderer: one line per failure or finding, then a summary."""

from __future__ import annotations

from typing import List

from ..diagnostics import Report
from .base import ReportRenderer, format_failure, format_finding, format_scope, renderer_registry


@renderer_registry.register("text")
class TextReportRenderer(ReportRenderer):
    """Render the report in the compiler-style line format.

    Findings merged from several elaboration paths are followed by an
    indented ``also at`` line per additional path.
    """

    def __init__(self, show_occurrences: bool = True) -> None:
        self.show_occurrences = show_occurrences

    def render(self, report: Report) -> str:
        lines: List[str] = [format_failure(f) for f in report.failures]
        for finding in report.findings:
            lines.append(format_finding(finding))
            if self.show_occurrences:
                for path in finding.occurrences:
                    if path != finding.path:
                        lines.append(f"    also at {format_scope(finding.top, path)}")
        lines.append(self._summary(report))
        return "\n".join(lines)

    def _summary(self, report: Report) -> str:
        if not report.findings and not report.failures:
            return "no findings"
        parts = [f"{count} {severity}(s)" for severity, count in report.counts_by_severity.items()]
        if report.failures:
            parts.insert(0, f"{len(report.failures)} elaboration failure(s)")
        rules = ", ".join(f"{rule}={count}" for rule, count in report.counts_by_rule.items())
        summary = "summary: " + ", ".join(parts)
        return f"{summary} [{rules}]" if rules else summary
