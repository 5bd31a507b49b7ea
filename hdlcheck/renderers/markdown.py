"""GitHub Flavoured Markdown renderer."""

from __future__ import annotations

from typing import List

from ..diagnostics import Report
from .base import ReportRenderer, format_location, renderer_registry


def _table(headers: List[str], rows: List[List[str]]) -> List[str]:
    header_line = "| " + " | ".join(headers) + " |"
    align_line = "|" + "|".join([":" + "-" * (len(h) + 1) for h in headers]) + "|"
    return [header_line, align_line] + ["| " + " | ".join(row) + " |" for row in rows]


def _cell(text: str) -> str:
    return text.replace("|", "\\|")


@renderer_registry.register("markdown")
class MarkdownReportRenderer(ReportRenderer):
    """Render failures and findings as Markdown tables plus a rule summary."""

    def render(self, report: Report) -> str:
        sections: List[str] = []
        if report.failures:
            rows = [
                [f.top, f.category, _cell(f.message), format_location(f.loc)]
                for f in report.failures
            ]
            sections.append("\n".join(["## Elaboration failures", ""] + _table(["Top", "Category", "Message", "Location"], rows)))

        if report.findings:
            rows = []
            for f in report.findings:
                rows.append([
                    f.severity.value,
                    f.rule,
                    f"{f.top}[{'.'.join(f.path)}]",
                    _cell(f.subject),
                    _cell(f.message),
                    format_location(f.loc),
                    str(len(f.occurrences) or 1),
                ])
            headers = ["Severity", "Rule", "Instance", "Subject", "Message", "Location", "Occurrences"]
            sections.append("\n".join(["## Findings", ""] + _table(headers, rows)))
        else:
            sections.append("## Findings\n\nNo findings.")

        summary = [[rule, str(count)] for rule, count in report.counts_by_rule.items()]
        summary += [[severity, str(count)] for severity, count in report.counts_by_severity.items()]
        if summary:
            sections.append("\n".join(["## Summary", ""] + _table(["Rule / Severity", "Count"], summary)))
        return "\n\n".join(sections)
