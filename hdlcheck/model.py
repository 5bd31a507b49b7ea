"""Structural model of process-based hardware designs.

The classes in this module are pure data: they describe design units,
architectures, processes and the expressions and statements inside them,
exactly as a front end delivered them.  Nothing here evaluates or
resolves anything; that is the job of :mod:`hdlcheck.elaborator` and
:mod:`hdlcheck.flow`.

Expressions and statements are tagged variants.  Every node class carries
a ``kind`` class attribute (:class:`ExprKind` or :class:`StmtKind`) and
traversals dispatch on that tag through a handler table rather than
through methods on the nodes, so adding a statement kind never touches
the checkers that do not care about it.

All nodes are frozen dataclasses holding tuples, which makes them hashable
and safe to share between elaborated instances.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Tuple, Union


@dataclass(frozen=True)
class SourceLocation:
    """Position of a construct in its source file (1-based)."""

    file: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


# ----------------------------------------------------------------------
# Expressions


class ExprKind(enum.Enum):
    REF = "ref"
    CONST = "const"
    BINARY = "binary"
    UNARY = "unary"
    CALL = "call"
    ATTRIBUTE = "attribute"
    INDEX = "index"


ConstValue = Union[int, bool, str]


@dataclass(frozen=True)
class Ref:
    """A bare name: a signal, port, generic, constant or loop variable."""

    kind: ClassVar[ExprKind] = ExprKind.REF
    name: str
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Const:
    """A literal.

    Integers and booleans are stored as such; character and bit-string
    literals (``'0'``, ``"0101"``) are stored without their quotes.
    """

    kind: ClassVar[ExprKind] = ExprKind.CONST
    value: ConstValue
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class BinaryOp:
    kind: ClassVar[ExprKind] = ExprKind.BINARY
    op: str
    left: "Expr"
    right: "Expr"
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class UnaryOp:
    kind: ClassVar[ExprKind] = ExprKind.UNARY
    op: str
    operand: "Expr"
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Call:
    """A function call such as ``rising_edge(clk)``.

    The function name is never resolved as a signal; only the arguments
    contribute to read sets.
    """

    kind: ClassVar[ExprKind] = ExprKind.CALL
    func: str
    args: Tuple["Expr", ...] = ()
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Attribute:
    """An attribute of a name, e.g. ``clk'event``."""

    kind: ClassVar[ExprKind] = ExprKind.ATTRIBUTE
    prefix: "Expr"
    attribute: str
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Index:
    """An indexed name, ``d(i)`` or ``d[i]``.  Analysis is done at
    whole-signal granularity, so the base name is what is read or written."""

    kind: ClassVar[ExprKind] = ExprKind.INDEX
    prefix: "Expr"
    index: "Expr"
    loc: Optional[SourceLocation] = field(default=None, compare=False)


Expr = Union[Ref, Const, BinaryOp, UnaryOp, Call, Attribute, Index]


def base_name(expr: Expr) -> Optional[str]:
    """Return the signal name an assignment target refers to."""
    while expr.kind is ExprKind.INDEX:
        expr = expr.prefix
    if expr.kind is ExprKind.REF:
        return expr.name
    return None


# ----------------------------------------------------------------------
# Statements


class StmtKind(enum.Enum):
    # sequential
    ASSIGN = "assign"
    IF = "if"
    CASE = "case"
    NULL = "null"
    # concurrent
    PROCESS = "process"
    INSTANCE = "instance"
    GENERATE_FOR = "generate_for"


@dataclass(frozen=True)
class Assignment:
    kind: ClassVar[StmtKind] = StmtKind.ASSIGN
    target: Expr
    value: Expr
    loc: Optional[SourceLocation] = field(default=None, compare=False)

    @property
    def target_name(self) -> Optional[str]:
        return base_name(self.target)


@dataclass(frozen=True)
class Branch:
    condition: Expr
    body: Tuple["Statement", ...] = ()


@dataclass(frozen=True)
class If:
    """``if c1 then ... elsif c2 then ... else ... end if``.

    ``else_body`` is ``None`` when there is no ``else``; an empty tuple
    means an explicit but empty ``else``.
    """

    kind: ClassVar[StmtKind] = StmtKind.IF
    branches: Tuple[Branch, ...]
    else_body: Optional[Tuple["Statement", ...]] = None
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class CaseAlternative:
    choices: Tuple[Expr, ...]
    body: Tuple["Statement", ...] = ()


@dataclass(frozen=True)
class Case:
    """``case sel is when ... => ...; when others => ...; end case``."""

    kind: ClassVar[StmtKind] = StmtKind.CASE
    selector: Expr
    alternatives: Tuple[CaseAlternative, ...]
    others: Optional[Tuple["Statement", ...]] = None
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Null:
    kind: ClassVar[StmtKind] = StmtKind.NULL
    loc: Optional[SourceLocation] = field(default=None, compare=False)


Statement = Union[Assignment, If, Case, Null]


@dataclass(frozen=True)
class Process:
    """A process with its declared sensitivity list and sequential body."""

    kind: ClassVar[StmtKind] = StmtKind.PROCESS
    sensitivity: Tuple[str, ...]
    body: Tuple[Statement, ...]
    label: Optional[str] = None
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Instantiation:
    """Instantiation of a design unit.

    ``generic_map`` and ``port_map`` are tuples of ``(formal, actual)``
    pairs.  Generic actuals are evaluated in the instantiating scope.
    """

    kind: ClassVar[StmtKind] = StmtKind.INSTANCE
    label: str
    unit: str
    generic_map: Tuple[Tuple[str, Expr], ...] = ()
    port_map: Tuple[Tuple[str, Expr], ...] = ()
    architecture: Optional[str] = None
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class GenerateFor:
    """``label: for variable in low to high generate ... end generate``."""

    kind: ClassVar[StmtKind] = StmtKind.GENERATE_FOR
    label: str
    variable: str
    low: Expr
    high: Expr
    body: Tuple["ConcurrentStatement", ...] = ()
    loc: Optional[SourceLocation] = field(default=None, compare=False)


ConcurrentStatement = Union[Process, Instantiation, GenerateFor]


# ----------------------------------------------------------------------
# Declarations


class Direction(enum.Enum):
    IN = "in"
    OUT = "out"
    INOUT = "inout"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Generic:
    """A compile-time parameter of a design unit."""

    name: str
    type: str = "integer"
    default: Optional[Expr] = None
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Port:
    name: str
    direction: Direction
    width: Expr = Const(1)
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Signal:
    """An architecture-internal signal."""

    name: str
    width: Expr = Const(1)
    loc: Optional[SourceLocation] = field(default=None, compare=False)

    @property
    def direction(self) -> Direction:
        return Direction.INTERNAL


@dataclass(frozen=True)
class Constant:
    """An architecture constant; resolved like a generic."""

    name: str
    value: Expr
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class DesignUnit:
    """An entity declaration: name, generics and ports."""

    name: str
    generics: Tuple[Generic, ...] = ()
    ports: Tuple[Port, ...] = ()
    loc: Optional[SourceLocation] = field(default=None, compare=False)

    def get_port(self, name: str) -> Optional[Port]:
        for p in self.ports:
            if p.name == name:
                return p
        return None

    def get_generic(self, name: str) -> Optional[Generic]:
        for g in self.generics:
            if g.name == name:
                return g
        return None


@dataclass(frozen=True)
class Architecture:
    """The body of a design unit, bound to it by ``entity`` name."""

    name: str
    entity: str
    signals: Tuple[Signal, ...] = ()
    constants: Tuple[Constant, ...] = ()
    statements: Tuple[ConcurrentStatement, ...] = ()
    loc: Optional[SourceLocation] = field(default=None, compare=False)


@dataclass(frozen=True)
class Design:
    """Everything a front end delivered: units and architectures."""

    units: Tuple[DesignUnit, ...] = ()
    architectures: Tuple[Architecture, ...] = ()

    def unit(self, name: str) -> Optional[DesignUnit]:
        for u in self.units:
            if u.name == name:
                return u
        return None

    def architecture_for(self, unit: str, name: Optional[str] = None) -> Optional[Architecture]:
        """Return the architecture bound to ``unit``.

        With no explicit ``name`` the last declared architecture wins,
        which is the default binding of the source language.
        """
        found = None
        for arch in self.architectures:
            if arch.entity != unit:
                continue
            if name is None or arch.name == name:
                found = arch
        return found

    def merged(self, other: "Design") -> "Design":
        return Design(self.units + other.units, self.architectures + other.architectures)
