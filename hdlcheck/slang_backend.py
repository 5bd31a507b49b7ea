"""Slang-backed SystemVerilog front end.

This module defines a :class:`SlangBackend` class that uses the
``pyslang`` Python bindings to parse SystemVerilog source files and
converts the syntax trees into the design model of :mod:`hdlcheck.model`.

Only syntax trees are used.  Parameters, generate loops and the module
hierarchy are left unelaborated here because the elaborator resolves them
itself, per instance.

Mapping:

* ``module`` becomes a :class:`DesignUnit` (parameters and ports) plus an
  :class:`Architecture` named ``rtl`` (``logic``/``wire`` declarations,
  ``localparam`` constants and the concurrent statements).
* ``always @(posedge clk)`` and ``always_ff`` become a process whose body
  is wrapped in a single ``rising_edge(clk)`` (or ``falling_edge``) guard.
  With an asynchronous reset (``@(posedge clk or posedge rst)``) the
  body must start with an ``if`` testing the reset; the remaining edge is
  the clock.
* ``always @*``, ``always_comb`` and ``always_latch`` take the signals
  their body reads as the sensitivity list.
* ``assign`` becomes a one-statement process sensitive to what it reads.
* Module instantiations and ``for`` generate loops map onto
  :class:`Instantiation` and :class:`GenerateFor`.
* Procedural loops and other statements that may assign are rejected with
  :class:`FrontEndError`; task and system calls are ignored.

Because this backend depends on compiled extensions, it raises an
:class:`ImportError` if the ``pyslang`` package cannot be imported.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import FrontEndError
from .expr import ref_names
from .model import (
    Architecture,
    Assignment,
    BinaryOp,
    Branch,
    Call,
    Case,
    CaseAlternative,
    Const,
    Constant,
    Design,
    DesignUnit,
    Direction,
    Expr,
    Generic,
    GenerateFor,
    If,
    Index,
    Instantiation,
    Null,
    Port,
    Process,
    Ref,
    Signal,
    SourceLocation,
    Statement,
    StmtKind,
    UnaryOp,
)

# Attempt to import the pyslang package.  If unavailable we set
# imported symbols to None; calling :meth:`load_design` will raise an
# error when pyslang isn't installed.
try:
    import pyslang  # type: ignore[import]
    from pyslang import DiagnosticEngine  # type: ignore[import]
    from pyslang.parsing import Token  # type: ignore[import]
    from pyslang.syntax import SyntaxKind, SyntaxTree  # type: ignore[import]
    from pyslang import SourceManager  # type: ignore[import]
except ImportError:
    pyslang = None  # type: ignore
    DiagnosticEngine = SourceManager = SyntaxKind = SyntaxTree = Token = None  # type: ignore

logger = logging.getLogger(__name__)

_DIRECTIONS = {"input": Direction.IN, "output": Direction.OUT, "inout": Direction.INOUT}
_EDGE_FUNCTIONS = {"posedge": "rising_edge", "negedge": "falling_edge"}
_BINARY_OPS = {
    "&&": "and",
    "||": "or",
    "&": "and",
    "|": "or",
    "^": "xor",
    "==": "=",
    "===": "=",
    "!=": "/=",
    "!==": "/=",
    "%": "mod",
}
_UNARY_OPS = {"!": "not", "~": "not"}
_PROCEDURAL_BLOCKS = {"AlwaysBlock", "AlwaysCombBlock", "AlwaysFFBlock", "AlwaysLatchBlock"}
_ASSIGNMENTS = {"AssignmentExpression", "NonblockingAssignmentExpression"}


def _nodes(items) -> List:
    """Return the syntax nodes of a (separated) syntax list, without tokens."""
    if items is None:
        return []
    return [item for item in items if not isinstance(item, Token)]


def _text(token) -> str:
    return token.valueText if token is not None else ""


class _ModuleScope:
    """Names declared by the module being converted."""

    def __init__(self, unit: DesignUnit) -> None:
        self.unit = unit
        self.signals: List[Signal] = []
        self.constants: List[Constant] = []

    @property
    def signal_names(self) -> set:
        return {p.name for p in self.unit.ports} | {s.name for s in self.signals}


class SlangBackend:
    """Parse SystemVerilog sources with the slang front end.

    :meth:`load_design` (or :meth:`load_text`) must be called before
    :meth:`get_design` will return anything useful.  Syntax errors do not
    raise here; they are recorded and reported through
    :meth:`had_errors` and :meth:`get_error_messages` so the calling
    strategy decides what to do with them.
    """

    def __init__(self, include_dirs: Optional[List[str]] = None, defines: Optional[List[str]] = None) -> None:
        self.include_dirs = include_dirs or []
        self.defines = defines or []
        self._design = Design()
        self._error_messages: List[str] = []
        self._units: Dict[str, DesignUnit] = {}
        self._sm = None
        self._generate_count = 0

    # ------------------------------------------------------------------
    # Loading

    def load_design(self, files: List[str]) -> None:
        """Parse the given SystemVerilog source files.

        Raises:
            ImportError: If the ``pyslang`` package is not available.
            FrontEndError: If a construct cannot be mapped onto the model.
        """
        self._require_pyslang()
        self._sm = SourceManager()
        trees = [SyntaxTree.fromFile(path, self._sm) for path in files]
        self._convert(trees)

    def load_text(self, text: str, name: str = "source.sv") -> None:
        """Parse SystemVerilog source held in a string."""
        self._require_pyslang()
        self._sm = SourceManager()
        self._convert([SyntaxTree.fromText(text, self._sm, name)])

    def get_design(self) -> Design:
        """Return the design extracted by the most recent load."""
        return self._design

    def had_errors(self) -> bool:
        """Return True if the last parse reported any syntax errors."""
        return bool(self._error_messages)

    def get_error_messages(self) -> List[str]:
        return list(self._error_messages)

    def _require_pyslang(self) -> None:
        if pyslang is None:
            raise ImportError(
                "pyslang is required for the SlangBackend but is not installed. "
                "Install it via `pip install pyslang`."
            )

    def _convert(self, trees) -> None:
        self._error_messages = []
        for tree in trees:
            errors = [d for d in tree.diagnostics if d.isError()]
            if errors:
                self._error_messages.append(DiagnosticEngine.reportAll(self._sm, errors).strip())

        modules = []
        for tree in trees:
            root = tree.root
            # a file holding a single module has that module as its root
            members = [root] if root.kind.name == "ModuleDeclaration" else _nodes(getattr(root, "members", None))
            for member in members:
                if member.kind.name == "ModuleDeclaration":
                    modules.append(member)

        # headers first: instantiations need the ports and parameters of
        # modules declared later
        units = {}
        for module in modules:
            unit = self._convert_header(module)
            units[unit.name] = (unit, module)
        self._units = {name: unit for name, (unit, _) in units.items()}

        architectures = [self._convert_body(unit, module) for unit, module in units.values()]
        self._design = Design(tuple(self._units.values()), tuple(architectures))
        logger.debug("slang front end: %d module(s)", len(modules))

    def _loc(self, node) -> Optional[SourceLocation]:
        rng = getattr(node, "sourceRange", None)
        if rng is None or self._sm is None:
            return None
        start = rng.start
        return SourceLocation(
            str(self._sm.getFileName(start)),
            self._sm.getLineNumber(start),
            self._sm.getColumnNumber(start),
        )

    # ------------------------------------------------------------------
    # Module headers

    def _convert_header(self, module) -> DesignUnit:
        header = module.header
        name = _text(header.name)
        generics: List[Generic] = []
        if header.parameters is not None:
            for decl in _nodes(header.parameters.declarations):
                generics.extend(self._parameters(decl))
        ports: List[Port] = []
        port_list = header.ports
        if port_list is not None and port_list.kind.name == "AnsiPortList":
            direction = Direction.INOUT
            for port in _nodes(port_list.ports):
                port_header = getattr(port, "header", None)
                keyword = _text(getattr(port_header, "direction", None))
                if keyword:
                    direction = _DIRECTIONS[keyword]
                width = self._width(getattr(port_header, "dataType", None))
                ports.append(Port(_text(port.declarator.name), direction, width, loc=self._loc(port)))
        else:
            # non-ANSI: directions come from port declarations in the body
            for member in _nodes(module.members):
                if member.kind.name != "PortDeclaration":
                    continue
                direction = _DIRECTIONS[_text(member.header.direction)]
                width = self._width(getattr(member.header, "dataType", None))
                for decl in _nodes(member.declarators):
                    ports.append(Port(_text(decl.name), direction, width, loc=self._loc(decl)))
        return DesignUnit(name, tuple(generics), tuple(ports), loc=self._loc(module))

    def _parameters(self, decl) -> List[Generic]:
        generics = []
        for declarator in _nodes(getattr(decl, "declarators", None)):
            initializer = declarator.initializer
            default = self._expr(initializer.expr) if initializer is not None else None
            generics.append(Generic(_text(declarator.name), "parameter", default, loc=self._loc(declarator)))
        return generics

    def _width(self, data_type) -> Expr:
        dimensions = _nodes(getattr(data_type, "dimensions", None))
        if not dimensions:
            return Const(1)
        selector = getattr(dimensions[0].specifier, "selector", None)
        if selector is None or not hasattr(selector, "left"):
            raise FrontEndError("unsupported packed dimension", self._loc(dimensions[0]))
        left = self._expr(selector.left)
        right = self._expr(selector.right)
        if isinstance(left, Const) and isinstance(right, Const) and isinstance(left.value, int) and isinstance(right.value, int):
            return Const(abs(left.value - right.value) + 1)
        return BinaryOp("+", BinaryOp("-", left, right), Const(1))

    # ------------------------------------------------------------------
    # Module bodies

    def _convert_body(self, unit: DesignUnit, module) -> Architecture:
        scope = _ModuleScope(unit)
        self._generate_count = 0
        members = _nodes(module.members)
        # declarations first so sensitivity lists can be computed
        for member in members:
            self._declare(member, scope)
        statements = self._members(members, scope)
        return Architecture(
            "rtl",
            unit.name,
            tuple(scope.signals),
            tuple(scope.constants),
            tuple(statements),
            loc=self._loc(module),
        )

    def _declare(self, member, scope: _ModuleScope) -> None:
        kind = member.kind.name
        if kind in ("DataDeclaration", "NetDeclaration"):
            width = self._width(getattr(member, "type", None))
            for decl in _nodes(member.declarators):
                scope.signals.append(Signal(_text(decl.name), width, loc=self._loc(decl)))
        elif kind == "ParameterDeclarationStatement":
            for generic in self._parameters(member.parameter):
                if generic.default is None:
                    raise FrontEndError(f"localparam '{generic.name}' has no value", generic.loc)
                scope.constants.append(Constant(generic.name, generic.default, loc=generic.loc))
        elif kind == "GenerateRegion":
            for inner in _nodes(member.members):
                self._declare(inner, scope)

    def _members(self, members: Iterable, scope: _ModuleScope) -> List:
        statements = []
        for member in members:
            kind = member.kind.name
            if kind in _PROCEDURAL_BLOCKS:
                statements.append(self._procedural_block(member, scope))
            elif kind == "ContinuousAssign":
                for assignment in _nodes(member.assignments):
                    stmt = self._assignment(assignment)
                    statements.append(Process(self._reads((stmt,), scope), (stmt,), loc=self._loc(member)))
            elif kind == "HierarchyInstantiation":
                statements.extend(self._instantiations(member))
            elif kind == "LoopGenerate":
                statements.append(self._loop_generate(member, scope))
            elif kind == "GenerateRegion":
                statements.extend(self._members(_nodes(member.members), scope))
            elif kind == "GenerateBlock":
                statements.extend(self._members(_nodes(member.members), scope))
            elif kind in ("IfGenerate", "CaseGenerate", "InitialBlock", "FinalBlock"):
                logger.warning("%s: %s is not analyzed", self._loc(member), kind)
        return statements

    def _reads(self, body: Tuple[Statement, ...], scope: _ModuleScope) -> Tuple[str, ...]:
        """Signals ``body`` reads, in first-read order."""
        names: Dict[str, None] = {}
        declared = scope.signal_names

        def expr(e: Expr) -> None:
            for name in ref_names(e):
                if name in declared:
                    names.setdefault(name, None)

        def walk(stmts) -> None:
            for stmt in stmts or ():
                if stmt.kind is StmtKind.ASSIGN:
                    expr(stmt.value)
                    if isinstance(stmt.target, Index):
                        expr(stmt.target.index)
                elif stmt.kind is StmtKind.IF:
                    for branch in stmt.branches:
                        expr(branch.condition)
                        walk(branch.body)
                    walk(stmt.else_body)
                elif stmt.kind is StmtKind.CASE:
                    expr(stmt.selector)
                    for alt in stmt.alternatives:
                        for choice in alt.choices:
                            expr(choice)
                        walk(alt.body)
                    walk(stmt.others)

        walk(body)
        return tuple(names)

    # ------------------------------------------------------------------
    # Processes

    def _procedural_block(self, block, scope: _ModuleScope) -> Process:
        loc = self._loc(block)
        label = None
        statement = block.statement
        events: Optional[List[Tuple[str, str]]] = None
        if statement.kind.name == "TimingControlStatement":
            events = self._events(statement.timingControl)
            statement = statement.statement
        if statement.kind.name == "SequentialBlockStatement" and statement.blockName is not None:
            label = _text(statement.blockName.name)
        body = tuple(self._statement(statement))

        if block.kind.name in ("AlwaysCombBlock", "AlwaysLatchBlock") or not events:
            # always_comb, @* and a bare always read everything they use
            if events:
                sensitivity = tuple(signal for _, signal in events)
            else:
                sensitivity = self._reads(body, scope)
            return Process(sensitivity, body, label, loc=loc)

        edged = [(edge, signal) for edge, signal in events if edge]
        if not edged:
            return Process(tuple(signal for _, signal in events), body, label, loc=loc)
        if len(edged) != len(events):
            raise FrontEndError("event control mixes edge and level events", loc)
        edge, clock = self._clock_event(edged, body, loc)
        guard = Call(_EDGE_FUNCTIONS[edge], (Ref(clock, loc=loc),), loc=loc)
        wrapped = (If((Branch(guard, body),), loc=loc),)
        return Process(tuple(signal for _, signal in events), wrapped, label, loc=loc)

    def _clock_event(self, edged: List[Tuple[str, str]], body: Tuple[Statement, ...], loc) -> Tuple[str, str]:
        if len(edged) == 1:
            return edged[0]
        # posedge clk or posedge rst: the body tests the reset first
        first = body[0] if len(body) == 1 else None
        if first is not None and first.kind is StmtKind.IF:
            tested = set(ref_names(first.branches[0].condition))
            remaining = [(edge, signal) for edge, signal in edged if signal not in tested]
            if len(remaining) == 1 and len(edged) - len(remaining) == 1:
                return remaining[0]
        raise FrontEndError("more than one edge event and no asynchronous reset pattern", loc)

    def _events(self, timing) -> List[Tuple[str, str]]:
        """Return ``(edge, signal)`` pairs; an empty list means ``@*``."""
        kind = timing.kind.name
        if kind in ("ImplicitEventControl", "ParenImplicitEventControl"):
            return []
        if kind != "EventControlWithExpression":
            raise FrontEndError(f"unsupported timing control {kind}", self._loc(timing))
        events: List[Tuple[str, str]] = []

        def walk(node) -> None:
            node_kind = node.kind.name
            if node_kind == "ParenthesizedEventExpression":
                walk(node.expr)
            elif node_kind == "BinaryEventExpression":
                walk(node.left)
                walk(node.right)
            elif node_kind == "SignalEventExpression":
                names = ref_names(self._expr(node.expr))
                if len(names) != 1:
                    raise FrontEndError("event expression must name one signal", self._loc(node))
                events.append((_text(node.edge), names[0]))
            else:
                raise FrontEndError(f"unsupported event expression {node_kind}", self._loc(node))

        walk(timing.expr)
        return events

    def _statement(self, node) -> List[Statement]:
        kind = node.kind.name
        loc = self._loc(node)
        if kind == "SequentialBlockStatement":
            stmts: List[Statement] = []
            for item in _nodes(node.items):
                stmts.extend(self._statement(item))
            return stmts
        if kind == "ConditionalStatement":
            return [self._conditional(node)]
        if kind in ("CaseStatement", "UniqueCaseStatement"):
            return [self._case(node)]
        if kind == "ExpressionStatement":
            if node.expr.kind.name in _ASSIGNMENTS:
                return [self._assignment(node.expr)]
            # task and system calls such as $display assign nothing
            logger.debug("%s: %s ignored", loc, node.expr.kind.name)
            return []
        if kind == "EmptyStatement":
            return [Null(loc=loc)]
        if kind == "TimingControlStatement":
            logger.warning("%s: nested timing control ignored", loc)
            return self._statement(node.statement)
        # loops and other statements may assign; dropping them would hide
        # writes from the latch and register checks
        raise FrontEndError(f"unsupported procedural statement {kind}", loc)

    def _conditional(self, node) -> If:
        branches: List[Branch] = []
        else_body = None
        current = node
        while True:
            condition = self._expr(_nodes(current.predicate.conditions)[0].expr)
            branches.append(Branch(condition, tuple(self._statement(current.statement))))
            clause = current.elseClause
            if clause is None:
                break
            nested = clause.clause
            if nested.kind.name == "ConditionalStatement":
                current = nested
                continue
            else_body = tuple(self._statement(nested))
            break
        return If(tuple(branches), else_body, loc=self._loc(node))

    def _case(self, node) -> Case:
        alternatives: List[CaseAlternative] = []
        others = None
        for item in _nodes(node.items):
            if item.kind.name == "DefaultCaseItem":
                others = tuple(self._statement(item.clause))
            else:
                choices = tuple(self._expr(e) for e in _nodes(item.expressions))
                alternatives.append(CaseAlternative(choices, tuple(self._statement(item.clause))))
        return Case(self._expr(node.expr), tuple(alternatives), others, loc=self._loc(node))

    def _assignment(self, node) -> Assignment:
        return Assignment(self._expr(node.left), self._expr(node.right), loc=self._loc(node))

    # ------------------------------------------------------------------
    # Hierarchy

    def _instantiations(self, node) -> List[Instantiation]:
        unit_name = _text(node.type)
        child = self._units.get(unit_name)
        generic_map: List[Tuple[str, Expr]] = []
        if node.parameters is not None:
            for position, param in enumerate(_nodes(node.parameters.parameters)):
                if param.kind.name == "NamedParamAssignment":
                    generic_map.append((_text(param.name), self._expr(param.expr)))
                elif child is not None and position < len(child.generics):
                    generic_map.append((child.generics[position].name, self._expr(param.expr)))
                else:
                    raise FrontEndError(f"cannot bind positional parameter of '{unit_name}'", self._loc(param))

        instances = []
        for inst in _nodes(node.instances):
            port_map: List[Tuple[str, Expr]] = []
            for position, conn in enumerate(_nodes(inst.connections)):
                conn_kind = conn.kind.name
                if conn_kind == "NamedPortConnection":
                    if conn.expr is not None:
                        port_map.append((_text(conn.name), self._expr(conn.expr)))
                elif conn_kind == "OrderedPortConnection":
                    if child is None or position >= len(child.ports):
                        raise FrontEndError(f"cannot bind positional port of '{unit_name}'", self._loc(conn))
                    port_map.append((child.ports[position].name, self._expr(conn.expr)))
                elif conn_kind == "WildcardPortConnection" and child is not None:
                    bound = {formal for formal, _ in port_map}
                    port_map.extend((p.name, Ref(p.name)) for p in child.ports if p.name not in bound)
            instances.append(
                Instantiation(
                    _text(inst.decl.name),
                    unit_name,
                    tuple(generic_map),
                    tuple(port_map),
                    loc=self._loc(inst),
                )
            )
        return instances

    def _loop_generate(self, node, scope: _ModuleScope) -> GenerateFor:
        loc = self._loc(node)
        variable = _text(node.identifier)
        low = self._expr(node.initialExpr)
        stop = node.stopExpr
        op = _text(getattr(stop, "operatorToken", None))
        if op not in ("<", "<=") or ref_names(self._expr(stop.left)) != (variable,):
            raise FrontEndError("generate loop must count up with '<' or '<='", loc)
        bound = self._expr(stop.right)
        high = bound if op == "<=" else BinaryOp("-", bound, Const(1))

        block = node.block
        self._generate_count += 1
        label = f"genblk{self._generate_count}"
        if block.kind.name == "GenerateBlock":
            if block.beginName is not None:
                label = _text(block.beginName.name)
            members = _nodes(block.members)
        else:
            members = [block]
        for member in members:
            self._declare(member, scope)
        body = self._members(members, scope)
        return GenerateFor(label, variable, low, high, tuple(body), loc=loc)

    # ------------------------------------------------------------------
    # Expressions

    def _expr(self, node) -> Expr:
        kind = node.kind.name
        loc = self._loc(node)
        if kind == "IdentifierName":
            return Ref(_text(node.identifier), loc=loc)
        if kind == "IntegerLiteralExpression":
            return Const(int(_text(node.literal).replace("_", "")), loc=loc)
        if kind in ("IntegerVectorExpression", "UnbasedUnsizedLiteralExpression"):
            return Const(str(node).strip(), loc=loc)
        if kind == "ParenthesizedExpression":
            return self._expr(node.expression)
        if kind in ("SimplePropertyExpr", "SimpleSequenceExpr"):
            # port connections and call arguments are property expressions
            return self._expr(node.expr)
        if kind == "ElementSelectExpression":
            selector = node.select.selector
            if hasattr(selector, "left"):
                index: Expr = BinaryOp("downto", self._expr(selector.left), self._expr(selector.right))
            else:
                index = self._expr(selector.expr)
            return Index(self._expr(node.left), index, loc=loc)
        if kind == "InvocationExpression":
            name = str(node.left).strip().lstrip("$")
            args = ()
            if node.arguments is not None:
                args = tuple(self._expr(a.expr) for a in _nodes(node.arguments.parameters))
            return Call(name, args, loc=loc)
        if kind == "ConditionalExpression":
            condition = self._expr(_nodes(node.predicate.conditions)[0].expr)
            return Call("mux", (condition, self._expr(node.left), self._expr(node.right)), loc=loc)
        if kind in ("ConcatenationExpression", "MultipleConcatenationExpression"):
            return Call("concat", tuple(self._expr(e) for e in _nodes(getattr(node, "expressions", None))), loc=loc)
        if hasattr(node, "operatorToken") and hasattr(node, "left") and hasattr(node, "right"):
            op = _text(node.operatorToken)
            return BinaryOp(_BINARY_OPS.get(op, op), self._expr(node.left), self._expr(node.right), loc=loc)
        if hasattr(node, "operatorToken") and hasattr(node, "operand"):
            op = _text(node.operatorToken)
            return UnaryOp(_UNARY_OPS.get(op, op), self._expr(node.operand), loc=loc)
        return self._opaque(node, kind, loc)

    def _opaque(self, node, kind: str, loc) -> Expr:
        """Fallback for unsupported expressions: a call over the names it reads."""
        names: Dict[str, None] = {}

        def visit(obj) -> None:
            if not isinstance(obj, Token) and obj.kind == SyntaxKind.IdentifierName:
                names.setdefault(_text(obj.identifier), None)

        node.visit(visit)
        logger.debug("%s: %s treated as opaque", loc, kind)
        return Call(kind, tuple(Ref(n, loc=loc) for n in names), loc=loc)
