import csv
import io
import unittest

from hdlcheck.diagnostics import (
    CLOCKED_PROCESS_IMPURE,
    LATCH_INFERRED,
    ElaborationFailure,
    Finding,
    Reporter,
    Severity,
)
from hdlcheck.errors import UnknownUnitError
from hdlcheck.model import SourceLocation
from hdlcheck.renderers import CsvReportRenderer, MarkdownReportRenderer, TextReportRenderer, format_finding


def sample_report(with_failure=True):
    reporter = Reporter()
    for i in range(3):
        reporter.add(Finding(
            rule=LATCH_INFERRED,
            severity=Severity.ERROR,
            top="top",
            path=(f"gen({i})", "u"),
            process="p_mux",
            signal="y",
            message="signal 'y' is unassigned when sel=false",
            loc=SourceLocation("cell.json", 12, 3),
            source_key="cell(rtl):p_mux",
        ))
    reporter.add(Finding(
        rule=CLOCKED_PROCESS_IMPURE,
        severity=Severity.WARNING,
        top="top",
        path=(),
        process="p_reg",
        signal="q",
        message="signal 'q' is assigned outside the rising_edge(clk) branch",
        loc=SourceLocation("top.json", 30),
        source_key="top(rtl):p_reg",
    ))
    if with_failure:
        reporter.add_failure(ElaborationFailure.from_error("other", UnknownUnitError("unknown unit 'ghost'")))
    return reporter.report()


class TestFormatFinding(unittest.TestCase):
    def test_line_format(self):
        finding = sample_report().findings[0]
        self.assertEqual(
            format_finding(finding),
            "warning: CLOCKED_PROCESS_IMPURE: top[]: p_reg/q: "
            "signal 'q' is assigned outside the rising_edge(clk) branch (top.json:30)",
        )


class TestTextRenderer(unittest.TestCase):
    def test_render(self):
        lines = TextReportRenderer().render(sample_report()).splitlines()
        self.assertEqual(lines[0], "error: UNKNOWN_UNIT: other: unknown unit 'ghost' (<unknown>)")
        self.assertTrue(lines[1].startswith("warning: CLOCKED_PROCESS_IMPURE: top[]"))
        self.assertTrue(lines[2].startswith("error: LATCH_INFERRED: top[gen(0).u]: p_mux/y:"))
        self.assertTrue(lines[2].endswith("(cell.json:12:3)"))
        self.assertEqual(lines[3:5], ["    also at top[gen(1).u]", "    also at top[gen(2).u]"])
        self.assertEqual(
            lines[5],
            "summary: 1 elaboration failure(s), 1 error(s), 1 warning(s) "
            "[CLOCKED_PROCESS_IMPURE=1, LATCH_INFERRED=1]",
        )

    def test_without_occurrences(self):
        text = TextReportRenderer(show_occurrences=False).render(sample_report())
        self.assertNotIn("also at", text)

    def test_empty_report(self):
        self.assertEqual(TextReportRenderer().render(Reporter().report()), "no findings")


class TestCsvRenderer(unittest.TestCase):
    def setUp(self):
        result = CsvReportRenderer().render(sample_report())
        self.rows = list(csv.reader(io.StringIO(result)))

    def test_headers(self):
        self.assertEqual(self.rows[0][:3], ["Severity", "Rule", "Top"])
        self.assertEqual(self.rows[0][-1], "Occurrences")

    def test_failure_row_comes_first(self):
        self.assertEqual(self.rows[1][:3], ["error", "UNKNOWN_UNIT", "other"])
        self.assertEqual(self.rows[1][4], "")

    def test_finding_rows(self):
        self.assertEqual(len(self.rows), 4)
        latch = self.rows[3]
        self.assertEqual(latch[1], "LATCH_INFERRED")
        self.assertEqual(latch[3], "gen(0).u")
        self.assertEqual(latch[4:6], ["p_mux", "y"])
        self.assertEqual(latch[7:10], ["cell.json", "12", "3"])
        self.assertEqual(latch[10], "gen(0).u;gen(1).u;gen(2).u")


class TestMarkdownRenderer(unittest.TestCase):
    def test_sections(self):
        result = MarkdownReportRenderer().render(sample_report())
        self.assertIn("## Elaboration failures", result)
        self.assertIn("## Findings", result)
        self.assertIn("## Summary", result)
        self.assertIn("| top[gen(0).u] |", result)
        self.assertIn("| LATCH_INFERRED | 1 |", result)

    def test_occurrence_count_column(self):
        result = MarkdownReportRenderer().render(sample_report(with_failure=False))
        latch_row = [line for line in result.splitlines() if "p_mux/y" in line][0]
        self.assertTrue(latch_row.endswith("| 3 |"))
        self.assertNotIn("Elaboration failures", result)

    def test_empty_report(self):
        result = MarkdownReportRenderer().render(Reporter().report())
        self.assertEqual(result, "## Findings\n\nNo findings.")


if __name__ == "__main__":
    unittest.main()
