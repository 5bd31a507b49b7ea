import unittest

from hdlcheck.elaborator import Elaborator
from hdlcheck.expr import Edge
from hdlcheck.flow import ProcessKind, classify_registers, detect_clock_guard, extract_flow
from hdlcheck.parser import DesignParser

SIGNALS = ["a", "b", "c", "d", "sel", "en", "clk", "q", "r"]


def summaries(*statements):
    """Elaborate one unit holding ``statements`` and summarise its processes."""
    design = DesignParser().parse_data(
        {
            "units": [{"name": "m"}],
            "architectures": [
                {"entity": "m", "signals": [{"name": s} for s in SIGNALS], "statements": list(statements)}
            ],
        },
        "flow.json",
    )
    root = Elaborator(design).elaborate("m").root
    return [extract_flow(p) for p in root.processes]


def process(sensitivity, *body, label="p"):
    return {"kind": "process", "label": label, "sensitivity": list(sensitivity), "body": list(body)}


def assign(target, value, line=None):
    stmt = {"kind": "assign", "target": target, "value": value}
    if line is not None:
        stmt["line"] = line
    return stmt


def if_(*branches, else_body=None):
    stmt = {"kind": "if", "branches": [{"condition": c, "body": list(b)} for c, b in branches]}
    if else_body is not None:
        stmt["else"] = list(else_body)
    return stmt


class TestWritePaths(unittest.TestCase):
    def test_if_without_else_has_implicit_path(self):
        (summary,) = summaries(process(["a", "sel"], if_(("sel", [assign("c", "a")]))))
        self.assertEqual([p.describe() for p in summary.paths()], ["sel=true", "sel=false"])
        self.assertEqual(summary.always_written, frozenset())
        self.assertEqual(summary.sometimes_written, {"c"})
        self.assertEqual([p.describe() for p in summary.unassigned_paths("c")], ["sel=false"])

    def test_elsif_chain_negates_previous_conditions(self):
        (summary,) = summaries(
            process(
                ["a", "b", "sel", "en"],
                if_(("sel", [assign("c", "a")]), ("en", [assign("c", "b")]), else_body=[assign("c", "'0'")]),
            )
        )
        self.assertEqual(
            [p.describe() for p in summary.paths()],
            ["sel=true", "sel=false, en=true", "sel=false, en=false"],
        )
        self.assertEqual(summary.always_written, {"c"})
        self.assertEqual(summary.sometimes_written, frozenset())

    def test_sequence_is_cross_product(self):
        (summary,) = summaries(
            process(
                ["a", "sel", "en"],
                if_(("sel", [assign("c", "a")])),
                if_(("en", [assign("d", "a")])),
                assign("q", "a"),
            )
        )
        self.assertEqual(len(summary.paths()), 4)
        self.assertEqual(summary.always_written, {"q"})
        self.assertEqual(summary.sometimes_written, {"c", "d"})

    def test_default_assignment_before_if(self):
        (summary,) = summaries(process(["a", "sel"], assign("c", "'0'"), if_(("sel", [assign("c", "a")]))))
        self.assertEqual(summary.always_written, {"c"})

    def test_case_paths(self):
        case = {
            "kind": "case",
            "selector": "sel",
            "alternatives": [
                {"choices": ["'0'"], "body": [assign("c", "a")]},
                {"choices": ["'1'", "'H'"], "body": [assign("c", "b")]},
            ],
        }
        (summary,) = summaries(process(["a", "b", "sel"], case))
        self.assertEqual(
            [p.describe() for p in summary.paths()],
            ["sel='0'", "sel='1' | 'H'", "sel=others"],
        )
        self.assertEqual(summary.sometimes_written, {"c"})

    def test_straight_line_process_has_one_path(self):
        (summary,) = summaries(process(["a"], assign("c", "a"), {"kind": "null"}))
        self.assertEqual([p.describe() for p in summary.paths()], ["<unconditional>"])


class TestManySequentialIfs(unittest.TestCase):
    """Write sets compose per statement, so long decoders stay cheap."""

    COUNT = 30

    def decoder(self, with_else):
        signals = [f"s{i}" for i in range(self.COUNT)]
        body = []
        for i, name in enumerate(signals):
            branch = (f"sel = {i}", [assign(name, "a")])
            body.append(if_(branch, else_body=[assign(name, "b")] if with_else else None))
        design = DesignParser().parse_data(
            {
                "units": [{"name": "m", "ports": [{"name": "a"}, {"name": "b"}, {"name": "sel"}]}],
                "architectures": [
                    {"entity": "m", "signals": [{"name": s} for s in signals],
                     "statements": [process(["a", "b", "sel"], *body)]}
                ],
            },
            "decoder.json",
        )
        (proc,) = Elaborator(design).elaborate("m").root.processes
        return extract_flow(proc), signals

    def test_defaulted_ifs_write_everything(self):
        summary, signals = self.decoder(with_else=True)
        self.assertEqual(summary.always_written, frozenset(signals))
        self.assertEqual(summary.sometimes_written, frozenset())
        self.assertEqual(summary.unassigned_paths("s0"), ())

    def test_unassigned_paths_are_produced_lazily(self):
        summary, signals = self.decoder(with_else=False)
        self.assertEqual(summary.sometimes_written, frozenset(signals))
        paths = summary.unassigned_paths("s29", limit=3)
        self.assertEqual(len(paths), 3)
        for path in paths:
            self.assertNotIn("s29", path.writes)
            self.assertEqual(path.steps[-1], "sel = 29=false")
        self.assertEqual(len(summary.paths(limit=5)), 5)


class TestReadSites(unittest.TestCase):
    def test_read_set_and_roles(self):
        (summary,) = summaries(
            process(
                ["a"],
                if_(("en", [assign("d(sel)", "a or b")])),
            )
        )
        self.assertEqual(summary.read_set, {"en", "sel", "a", "b"})
        self.assertEqual(summary.read_site("en").role, "condition")
        self.assertEqual(summary.read_site("en").statement_path, "body[0].then")
        self.assertEqual(summary.read_site("sel").role, "target index")
        self.assertEqual(summary.read_site("b").role, "right-hand side")
        self.assertEqual(summary.read_site("b").statement_path, "body[0].then[0]")
        self.assertNotIn("d", summary.read_set)

    def test_case_roles(self):
        case = {"kind": "case", "selector": "sel", "alternatives": [{"choices": ["en"], "body": []}], "others": []}
        (summary,) = summaries(process(["sel", "en"], case))
        self.assertEqual(summary.read_site("sel").role, "case selector")
        self.assertEqual(summary.read_site("en").role, "case choice")

    def test_first_write_location(self):
        (summary,) = summaries(process(["a"], assign("c", "a", line=7), assign("c", "b", line=9)))
        self.assertEqual(summary.first_write("c").loc.line, 7)
        self.assertEqual(summary.first_write("c").statement_path, "body[0]")


class TestClockGuard(unittest.TestCase):
    def test_clocked_process_with_single_guard(self):
        (summary,) = summaries(process(["clk"], if_(("rising_edge(clk)", [assign("q", "a")]))))
        self.assertIs(summary.kind, ProcessKind.CLOCKED)
        self.assertEqual(summary.clock_guard.signal, "clk")
        self.assertEqual(summary.clock_guard.edge, Edge.RISING)
        self.assertEqual(str(summary.clock_guard), "rising_edge(clk)")
        self.assertEqual(summary.guarded_writes, {"q"})
        self.assertEqual(summary.unguarded_assignments, ())

    def test_event_attribute_guard(self):
        (summary,) = summaries(process(["clk"], if_(("clk'event and clk = '0'", [assign("q", "a")]))))
        self.assertEqual(summary.clock_guard.edge, Edge.FALLING)

    def test_guard_signal_must_be_in_sensitivity_list(self):
        (summary,) = summaries(process(["a"], if_(("rising_edge(clk)", [assign("q", "a")]))))
        self.assertIs(summary.kind, ProcessKind.COMBINATIONAL)
        self.assertEqual(summary.guarded_writes, frozenset())

    def test_assignment_before_guard_makes_process_combinational(self):
        (summary,) = summaries(
            process(["clk", "a"], assign("c", "a"), if_(("rising_edge(clk)", [assign("q", "a")])))
        )
        self.assertIs(summary.kind, ProcessKind.COMBINATIONAL)
        self.assertEqual(summary.sometimes_written, {"q"})

    def test_non_assigning_statement_before_guard(self):
        (summary,) = summaries(
            process(["clk"], {"kind": "null"}, if_(("rising_edge(clk)", [assign("q", "a")])))
        )
        self.assertIs(summary.kind, ProcessKind.CLOCKED)

    def test_impure_clocked_process(self):
        (summary,) = summaries(
            process(
                ["clk", "sel"],
                if_(("rising_edge(clk)", [assign("q", "a")]), ("sel", [assign("r", "b")])),
                assign("c", "a"),
            )
        )
        self.assertIs(summary.kind, ProcessKind.CLOCKED)
        self.assertEqual(summary.guarded_writes, {"q"})
        self.assertEqual([w.signal for w in summary.unguarded_assignments], ["r", "c"])

    def test_nested_if_inside_guard_is_guarded(self):
        (summary,) = summaries(
            process(["clk"], if_(("rising_edge(clk)", [if_(("en", [assign("q", "a")]), else_body=[assign("r", "b")])])))
        )
        self.assertEqual(summary.guarded_writes, {"q", "r"})

    def test_detect_clock_guard_returns_guarding_if(self):
        design = DesignParser().parse_data(
            {
                "units": [{"name": "m", "ports": [{"name": "clk"}, {"name": "q", "direction": "out"}]}],
                "architectures": [{"entity": "m", "statements": [
                    process(["clk"], if_(("rising_edge(clk)", [assign("q", "'1'")])))
                ]}],
            }
        )
        proc = Elaborator(design).elaborate("m").root.processes[0]
        guard, guard_if = detect_clock_guard(proc)
        self.assertEqual(guard.signal, "clk")
        self.assertIs(guard_if, proc.body[0])


class TestRegisters(unittest.TestCase):
    def test_registers_are_union_of_guarded_writes(self):
        found = summaries(
            process(["clk"], if_(("rising_edge(clk)", [assign("q", "a")])), label="p1"),
            process(["clk"], if_(("falling_edge(clk)", [assign("r", "a")])), label="p2"),
            process(["a"], assign("c", "a"), label="p3"),
        )
        self.assertEqual(classify_registers(found), {"q", "r"})
        self.assertEqual(classify_registers(reversed(found)), {"q", "r"})
        self.assertEqual(classify_registers([]), frozenset())


if __name__ == "__main__":
    unittest.main()
