import unittest

from hdlcheck.analyzer import analyze
from hdlcheck.checkers import InstanceContext, LatchChecker, RegisterChecker, SensitivityChecker, checker_registry
from hdlcheck.config import AnalysisConfig
from hdlcheck.diagnostics import (
    CLOCKED_PROCESS_IMPURE,
    LATCH_INFERRED,
    REGISTER_DUAL_DRIVEN,
    SENSITIVITY_INCOMPLETE,
    Severity,
)
from hdlcheck.elaborator import Elaborator
from hdlcheck.flow import extract_flow
from hdlcheck.parser import DesignParser


def process(label, sensitivity, *body):
    return {"kind": "process", "label": label, "sensitivity": list(sensitivity), "body": list(body)}


def assign(target, value):
    return {"kind": "assign", "target": target, "value": value}


def if_(*branches, else_body=None):
    stmt = {"kind": "if", "branches": [{"condition": c, "body": list(b)} for c, b in branches]}
    if else_body is not None:
        stmt["else"] = list(else_body)
    return stmt


def single_unit(*statements, signals=("reg",)):
    """A unit ``top`` with inputs a, b, sel, clock and output c."""
    ports = [{"name": n, "direction": "in"} for n in ("a", "b", "sel", "clock")]
    ports.append({"name": "c", "direction": "out"})
    return DesignParser().parse_data(
        {
            "units": [{"name": "top", "ports": ports}],
            "architectures": [
                {"entity": "top", "signals": [{"name": s} for s in signals], "statements": list(statements)}
            ],
        },
        "top.json",
    )


def context_for(design, top="top"):
    root = Elaborator(design).elaborate(top).root
    return InstanceContext.build(top, root, (extract_flow(p) for p in root.processes))


class TestScenarios(unittest.TestCase):
    def test_a_missing_signal_in_sensitivity_list(self):
        report = analyze(single_unit(process("p", ["a"], assign("c", "a or b"))))
        self.assertEqual(len(report.findings), 1)
        finding = report.findings[0]
        self.assertEqual(finding.rule, SENSITIVITY_INCOMPLETE)
        self.assertEqual(finding.signal, "b")
        self.assertEqual(finding.process, "p")
        self.assertIs(finding.severity, Severity.ERROR)

    def test_b_if_without_else_infers_latch(self):
        design = single_unit(process("p", ["a", "b", "sel"], if_(("sel", [assign("c", "a or b")]))))
        report = analyze(design)
        self.assertEqual(len(report.findings), 1)
        finding = report.findings[0]
        self.assertEqual(finding.rule, LATCH_INFERRED)
        self.assertEqual(finding.signal, "c")
        self.assertIn("unassigned when sel=false", finding.message)

        summary = context_for(design).summaries[0]
        self.assertEqual([p.describe() for p in summary.unassigned_paths("c")], ["sel=false"])

    def test_c_else_branch_removes_latch(self):
        design = single_unit(
            process("p", ["a", "b", "sel"], if_(("sel", [assign("c", "a or b")]), else_body=[assign("c", "'0'")]))
        )
        self.assertEqual(analyze(design).findings, ())

    def test_d_clocked_process_is_clean_and_classifies_register(self):
        design = single_unit(process("p", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a")]))))
        self.assertEqual(analyze(design).findings, ())
        self.assertIn("reg", context_for(design).registers)

    def test_e_register_assigned_by_combinational_process(self):
        design = single_unit(
            process("p", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a")]))),
            process("q", ["b"], assign("reg", "b")),
        )
        report = analyze(design)
        self.assertEqual(len(report.findings), 1)
        finding = report.findings[0]
        self.assertEqual(finding.rule, REGISTER_DUAL_DRIVEN)
        self.assertEqual(finding.signal, "reg")
        self.assertEqual(finding.process, "q")
        self.assertIn("clocked in p", finding.message)

    def test_f_generate_copies_are_deduplicated(self):
        design = DesignParser().parse_data(
            {
                "units": [
                    {"name": "top", "ports": [
                        {"name": "x", "width": 32},
                        {"name": "z", "width": 32},
                        {"name": "w", "direction": "out", "width": 32},
                    ]},
                    {"name": "cell", "ports": [
                        {"name": "a"},
                        {"name": "b"},
                        {"name": "y", "direction": "out"},
                    ]},
                ],
                "architectures": [
                    {"entity": "top", "statements": [
                        {"kind": "generate_for", "label": "gen", "variable": "i", "low": 0, "high": 31, "body": [
                            {"kind": "instance", "label": "u", "unit": "cell",
                             "port_map": {"a": "x(i)", "b": "z(i)", "y": "w(i)"}},
                        ]},
                    ]},
                    {"entity": "cell", "statements": [process("p", ["a"], assign("y", "a or b"))]},
                ],
            },
            "gen.json",
        )
        report = analyze(design)
        self.assertEqual(len(report.findings), 1)
        finding = report.findings[0]
        self.assertEqual(finding.rule, SENSITIVITY_INCOMPLETE)
        self.assertEqual(finding.signal, "b")
        self.assertEqual(len(finding.occurrences), 32)
        self.assertEqual(finding.path, ("gen(0)", "u"))
        self.assertEqual(finding.occurrences[1], ("gen(1)", "u"))
        self.assertEqual(finding.occurrences[-1], ("gen(31)", "u"))
        self.assertEqual(report.counts_by_rule, {SENSITIVITY_INCOMPLETE: 1})

    def test_analysis_is_idempotent(self):
        design = single_unit(
            process("p", ["a"], if_(("sel", [assign("c", "a or b")]))),
            process("q", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a")])), assign("c", "b")),
        )
        first = analyze(design)
        second = analyze(design)
        self.assertEqual(first.findings, second.findings)
        self.assertEqual(
            [f.occurrences for f in first.findings],
            [f.occurrences for f in second.findings],
        )
        self.assertEqual(first.counts_by_rule, second.counts_by_rule)


class TestSensitivityChecker(unittest.TestCase):
    def test_reported_at_first_read(self):
        design = single_unit(process("p", ["a"], if_(("sel", [assign("c", "a")]), else_body=[assign("c", "b")])))
        findings = list(SensitivityChecker().check(context_for(design)))
        self.assertEqual([f.signal for f in findings], ["sel", "b"])
        self.assertIn("first read as condition at body[0].then", findings[0].message)

    def test_empty_sensitivity_list(self):
        design = single_unit(process("p", [], assign("c", "a")))
        (finding,) = SensitivityChecker().check(context_for(design))
        self.assertEqual(finding.signal, "a")
        self.assertIn("the sensitivity list is empty", finding.message)

    def test_clocked_processes_are_exempt(self):
        design = single_unit(process("p", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a and b")]))))
        self.assertEqual(list(SensitivityChecker().check(context_for(design))), [])

    def test_target_index_counts_as_read(self):
        design = single_unit(process("p", ["a"], assign("reg(sel)", "a")))
        (finding,) = SensitivityChecker().check(context_for(design))
        self.assertEqual(finding.signal, "sel")
        self.assertIn("target index", finding.message)


class TestLatchChecker(unittest.TestCase):
    def test_case_without_others(self):
        case = {
            "kind": "case",
            "selector": "sel",
            "alternatives": [
                {"choices": ["'0'"], "body": [assign("c", "a")]},
                {"choices": ["'1'"], "body": [assign("c", "b")]},
            ],
        }
        (finding,) = LatchChecker().check(context_for(single_unit(process("p", ["a", "b", "sel"], case))))
        self.assertEqual(finding.signal, "c")
        self.assertIn("sel=others", finding.message)

    def test_case_with_assigning_others(self):
        case = {
            "kind": "case",
            "selector": "sel",
            "alternatives": [{"choices": ["'0'"], "body": [assign("c", "a")]}],
            "others": [assign("c", "b")],
        }
        self.assertEqual(list(LatchChecker().check(context_for(single_unit(process("p", ["a", "b", "sel"], case))))), [])

    def test_nested_paths_listed(self):
        body = if_(("sel", [if_(("a", [assign("c", "b")]))]), else_body=[assign("c", "b")])
        (finding,) = LatchChecker().check(context_for(single_unit(process("p", ["a", "b", "sel"], body))))
        self.assertIn("sel=true, a=false", finding.message)

    def test_listed_paths_are_capped(self):
        conditions = ["a", "b", "a = b", "a and b", "a or b"]
        body = [if_((cond, [assign("reg", "b")])) for cond in conditions]
        body.append(if_(("sel", [assign("c", "a")])))
        findings = LatchChecker().check(context_for(single_unit(process("p", ["a", "b", "sel"], *body))))
        (finding,) = [f for f in findings if f.signal == "c"]
        self.assertEqual(finding.message.count("sel=false"), LatchChecker.max_listed_paths)
        self.assertTrue(finding.message.endswith("; ..."))

    def test_edge_outside_sensitivity_is_combinational(self):
        design = single_unit(process("p", ["a"], if_(("rising_edge(clock)", [assign("reg", "a")]))))
        report = analyze(design)
        self.assertEqual(
            sorted((f.rule, f.signal) for f in report.findings),
            [(LATCH_INFERRED, "reg"), (SENSITIVITY_INCOMPLETE, "clock")],
        )


class TestRegisterChecker(unittest.TestCase):
    def test_assignment_next_to_guard_is_impure(self):
        design = single_unit(
            process("p", ["clock", "a"], if_(("rising_edge(clock)", [assign("reg", "a")])), assign("c", "a"))
        )
        report = analyze(design)
        self.assertEqual(len(report.findings), 1)
        finding = report.findings[0]
        self.assertEqual(finding.rule, CLOCKED_PROCESS_IMPURE)
        self.assertEqual(finding.signal, "c")
        self.assertIs(finding.severity, Severity.WARNING)
        self.assertEqual(report.exit_status, 0)

    def test_elsif_of_guard_is_impure(self):
        body = if_(("rising_edge(clock)", [assign("reg", "a")]), ("sel", [assign("c", "b")]))
        findings = list(RegisterChecker().check(context_for(single_unit(process("p", ["clock", "sel"], body)))))
        self.assertEqual([(f.rule, f.signal) for f in findings], [(CLOCKED_PROCESS_IMPURE, "c")])

    def test_impure_signal_reported_once_per_process(self):
        body = [
            if_(("rising_edge(clock)", [assign("reg", "a")]), else_body=[assign("c", "a")]),
            assign("c", "b"),
        ]
        findings = list(RegisterChecker().check(context_for(single_unit(process("p", ["clock"], *body)))))
        self.assertEqual([f.signal for f in findings], ["c"])

    def test_register_in_generate_scope(self):
        gen = {
            "kind": "generate_for", "label": "g", "variable": "i", "low": 0, "high": 0,
            "body": [process("p", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a")])))],
        }
        design = single_unit(gen, process("q", ["b"], assign("reg", "b")))
        findings = list(RegisterChecker().check(context_for(design)))
        self.assertEqual([(f.rule, f.signal, f.process) for f in findings], [(REGISTER_DUAL_DRIVEN, "reg", "q")])

    def test_two_clocked_processes_are_not_dual_driven(self):
        design = single_unit(
            process("p", ["clock"], if_(("rising_edge(clock)", [assign("reg", "a")]))),
            process("q", ["clock"], if_(("falling_edge(clock)", [assign("reg", "b")]))),
        )
        self.assertEqual(analyze(design).findings, ())


class TestConfiguration(unittest.TestCase):
    def test_disabled_rule(self):
        design = single_unit(process("p", ["a", "b", "sel"], if_(("sel", [assign("c", "a or b")]))))
        config = AnalysisConfig.build(disable=["LATCH_INFERRED"])
        self.assertEqual(analyze(design, config=config).findings, ())

    def test_severity_override(self):
        design = single_unit(process("p", ["a"], assign("c", "a or b")))
        config = AnalysisConfig.build(severity=["SENSITIVITY_INCOMPLETE=warning"])
        report = analyze(design, config=config)
        self.assertIs(report.findings[0].severity, Severity.WARNING)
        self.assertEqual(report.exit_status, 0)

    def test_checkers_registered_in_order(self):
        self.assertEqual(checker_registry.keys(), ["sensitivity", "latch", "register"])

    def test_inactive_checker(self):
        checker = LatchChecker(config=AnalysisConfig.build(disable=["LATCH_INFERRED"]))
        self.assertFalse(checker.active)
        self.assertTrue(RegisterChecker(config=AnalysisConfig.build(disable=["REGISTER_DUAL_DRIVEN"])).active)


if __name__ == "__main__":
    unittest.main()
