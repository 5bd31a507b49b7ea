"""CSV renderer.

One row per finding.  Elaboration failures are written first, with the
category in the ``Rule`` column and empty process columns.
"""

from __future__ import annotations

import csv
import io

from ..diagnostics import Report
from .base import ReportRenderer, renderer_registry

HEADERS = [
    "Severity",
    "Rule",
    "Top",
    "Path",
    "Process",
    "Signal",
    "Message",
    "File",
    "Line",
    "Column",
    "Occurrences",
]


@renderer_registry.register("csv")
class CsvReportRenderer(ReportRenderer):
    """Render the report as CSV.

    Example output::

        Severity,Rule,Top,Path,Process,Signal,Message,File,Line,Column,Occurrences
        error,LATCH_INFERRED,top,u0,p_comb,y,...,top.json,14,0,u0;u1
    """

    def render(self, report: Report) -> str:
        output = io.StringIO()
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(HEADERS)
        for failure in report.failures:
            loc = failure.loc
            writer.writerow([
                failure.severity.value,
                failure.category,
                failure.top,
                "",
                "",
                "",
                failure.message,
                loc.file if loc else "",
                loc.line if loc else "",
                loc.column if loc else "",
                "",
            ])
        for finding in report.findings:
            loc = finding.loc
            writer.writerow([
                finding.severity.value,
                finding.rule,
                finding.top,
                ".".join(finding.path),
                finding.process,
                finding.signal or "",
                finding.message,
                loc.file if loc else "",
                loc.line if loc else "",
                loc.column if loc else "",
                ";".join(".".join(p) for p in finding.occurrences),
            ])
        return output.getvalue().rstrip("\n")
