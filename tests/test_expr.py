import unittest

from hdlcheck.errors import ElaborationError, UnresolvedReferenceError
from hdlcheck.expr import Edge, edge_of, evaluate, evaluate_int, ref_names, render, substitute
from hdlcheck.model import BinaryOp, Call, Const, Index, Ref
from hdlcheck.parser import parse_expression


class TestEvaluate(unittest.TestCase):
    """Static evaluation of generic, width and bound expressions."""

    def test_arithmetic(self):
        self.assertEqual(evaluate(parse_expression("2**WIDTH - 1"), {"WIDTH": 4}), 15)
        self.assertEqual(evaluate(parse_expression("N / 2 + N mod 3"), {"N": 7}), 4)

    def test_division_truncates_toward_zero(self):
        self.assertEqual(evaluate(parse_expression("-7 / 2"), {}), -3)
        self.assertEqual(evaluate(parse_expression("-7 rem 2"), {}), -1)

    def test_functions(self):
        self.assertEqual(evaluate(parse_expression("clog2(DEPTH)"), {"DEPTH": 17}), 5)
        self.assertEqual(evaluate(parse_expression("max(A, 3)"), {"A": 1}), 3)

    def test_relational_and_boolean(self):
        self.assertIs(evaluate(parse_expression("A > 2 and not B"), {"A": 3, "B": False}), True)

    def test_unresolved_name(self):
        with self.assertRaises(UnresolvedReferenceError):
            evaluate(parse_expression("WIDTH + 1"), {})

    def test_signal_attribute_is_not_static(self):
        with self.assertRaises(ElaborationError):
            evaluate(parse_expression("clk'event"), {"clk": 1})

    def test_division_by_zero(self):
        with self.assertRaises(ElaborationError):
            evaluate(parse_expression("4 / N"), {"N": 0})

    def test_evaluate_int_rejects_booleans(self):
        self.assertIsNone(evaluate_int(Const(True), {}))
        self.assertEqual(evaluate_int(Const(3), {}), 3)


class TestSubstituteAndRefs(unittest.TestCase):
    def test_substitute_replaces_constants_only(self):
        expr = parse_expression("d(i) and en")
        bound = substitute(expr, {"i": 3})
        self.assertEqual(render(bound), "d(3) and en")
        self.assertEqual(ref_names(bound), ("d", "en"))

    def test_substitute_shares_unchanged_subtrees(self):
        expr = parse_expression("a or (b and c)")
        self.assertIs(substitute(expr, {"x": 1}), expr)

    def test_ref_names_first_use_order_without_duplicates(self):
        self.assertEqual(ref_names(parse_expression("b or a or b")), ("b", "a"))

    def test_call_name_is_not_a_reference(self):
        self.assertEqual(ref_names(parse_expression("rising_edge(clk)")), ("clk",))


class TestRender(unittest.TestCase):
    def test_nested_binary_is_parenthesized(self):
        expr = BinaryOp("and", Ref("a"), BinaryOp("or", Ref("b"), Ref("c")))
        self.assertEqual(render(expr), "a and (b or c)")

    def test_literals(self):
        self.assertEqual(render(Const("1")), "'1'")
        self.assertEqual(render(Const("0101")), '"0101"')
        self.assertEqual(render(Const(False)), "false")
        self.assertEqual(render(Index(Ref("d"), Const(2))), "d(2)")


class TestEdgeOf(unittest.TestCase):
    def test_rising_and_falling_edge_functions(self):
        self.assertEqual(edge_of(parse_expression("rising_edge(clk)")), ("clk", Edge.RISING))
        self.assertEqual(edge_of(parse_expression("falling_edge(clk)")), ("clk", Edge.FALLING))

    def test_event_attribute_form_in_either_order(self):
        self.assertEqual(edge_of(parse_expression("clk'event and clk = '1'")), ("clk", Edge.RISING))
        self.assertEqual(edge_of(parse_expression("clk = '0' and clk'event")), ("clk", Edge.FALLING))

    def test_not_solely_an_edge(self):
        self.assertIsNone(edge_of(parse_expression("rising_edge(clk) and en")))
        self.assertIsNone(edge_of(parse_expression("clk'event and other = '1'")))
        self.assertIsNone(edge_of(parse_expression("clk = '1'")))

    def test_edge_of_non_signal_argument(self):
        self.assertIsNone(edge_of(Call("rising_edge", (Index(Ref("clk"), Const(0)),))))


if __name__ == "__main__":
    unittest.main()
