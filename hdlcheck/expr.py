"""Operations over expression trees.

All helpers here dispatch on :attr:`Expr.kind` through small handler
tables.  They never mutate a tree; :func:`substitute` builds a new one.

* :func:`render` turns an expression back into readable text for
  messages and path labels.
* :func:`evaluate` computes the value of a static expression (generic
  defaults, widths, generate bounds) against an environment of resolved
  names.
* :func:`substitute` replaces names bound to compile-time constants by
  their values.
* :func:`iter_refs` yields every name read by an expression.
* :func:`edge_of` recognises clock-edge predicates.
"""

from __future__ import annotations

import enum
import math
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple

from .errors import ElaborationError, UnresolvedReferenceError
from .model import (
    Attribute,
    BinaryOp,
    Call,
    Const,
    ConstValue,
    Expr,
    ExprKind,
    Index,
    Ref,
    UnaryOp,
)


class Edge(enum.Enum):
    RISING = "rising"
    FALLING = "falling"


# ----------------------------------------------------------------------
# Rendering

_WORD_OPS = {"and", "or", "xor", "nand", "nor", "xnor", "mod", "rem", "sll", "srl"}


def render_const(value: ConstValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if len(value) == 1:
        return f"'{value}'"
    return f'"{value}"'


def _render_operand(expr: Expr) -> str:
    text = render(expr)
    if expr.kind in (ExprKind.BINARY,):
        return f"({text})"
    return text


def _render_binary(expr: BinaryOp) -> str:
    return f"{_render_operand(expr.left)} {expr.op} {_render_operand(expr.right)}"


def _render_unary(expr: UnaryOp) -> str:
    sep = " " if expr.op.isalpha() else ""
    return f"{expr.op}{sep}{_render_operand(expr.operand)}"


_RENDER: Dict[ExprKind, Callable[..., str]] = {
    ExprKind.REF: lambda e: e.name,
    ExprKind.CONST: lambda e: render_const(e.value),
    ExprKind.BINARY: _render_binary,
    ExprKind.UNARY: _render_unary,
    ExprKind.CALL: lambda e: f"{e.func}({', '.join(render(a) for a in e.args)})",
    ExprKind.ATTRIBUTE: lambda e: f"{render(e.prefix)}'{e.attribute}",
    ExprKind.INDEX: lambda e: f"{render(e.prefix)}({render(e.index)})",
}


def render(expr: Expr) -> str:
    """Return source-like text for ``expr``."""
    return _RENDER[expr.kind](expr)


# ----------------------------------------------------------------------
# Static evaluation


def _div(a: int, b: int) -> int:
    # truncates toward zero
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _rem(a: int, b: int) -> int:
    return a - b * _div(a, b)


def _clog2(n: int) -> int:
    if n <= 1:
        return 0
    return math.ceil(math.log2(n))


_BINARY_OPS: Dict[str, Callable[[ConstValue, ConstValue], ConstValue]] = {
    "+": lambda a, b: a + b,
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": _div,
    "mod": lambda a, b: a % b,
    "rem": _rem,
    "**": lambda a, b: a ** b,
    "=": lambda a, b: a == b,
    "/=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "and": lambda a, b: a and b,
    "or": lambda a, b: a or b,
    "xor": lambda a, b: bool(a) != bool(b),
}

_UNARY_OPS: Dict[str, Callable[[ConstValue], ConstValue]] = {
    "-": lambda a: -a,
    "+": lambda a: +a,
    "not": lambda a: not a,
    "abs": abs,
}

_FUNCTIONS: Dict[str, Callable[..., ConstValue]] = {
    "clog2": _clog2,
    "log2": _clog2,
    "min": min,
    "max": max,
    "abs": abs,
}


def evaluate(expr: Expr, env: Mapping[str, ConstValue]) -> ConstValue:
    """Evaluate a static expression.

    Args:
        expr: Expression built from literals, names present in ``env``,
            arithmetic/relational/logical operators and the built-in
            functions ``clog2``, ``log2``, ``min``, ``max`` and ``abs``.
        env: Resolved names (generics, constants, loop variables).

    Raises:
        UnresolvedReferenceError: If a name is not in ``env``.
        ElaborationError: If the expression is not statically computable
            (signal attributes, unknown functions, type mismatches,
            division by zero).
    """
    kind = expr.kind
    if kind is ExprKind.CONST:
        return expr.value
    if kind is ExprKind.REF:
        if expr.name not in env:
            raise UnresolvedReferenceError(f"unresolved name '{expr.name}'", expr.loc)
        return env[expr.name]
    try:
        if kind is ExprKind.BINARY:
            fn = _BINARY_OPS.get(expr.op)
            if fn is None:
                raise ElaborationError(f"operator '{expr.op}' is not static", expr.loc)
            return fn(evaluate(expr.left, env), evaluate(expr.right, env))
        if kind is ExprKind.UNARY:
            fn = _UNARY_OPS.get(expr.op)
            if fn is None:
                raise ElaborationError(f"operator '{expr.op}' is not static", expr.loc)
            return fn(evaluate(expr.operand, env))
        if kind is ExprKind.CALL:
            fn = _FUNCTIONS.get(expr.func.lower())
            if fn is None:
                raise ElaborationError(f"function '{expr.func}' is not static", expr.loc)
            return fn(*(evaluate(a, env) for a in expr.args))
    except (TypeError, ValueError, ZeroDivisionError) as exc:
        raise ElaborationError(f"cannot evaluate '{render(expr)}': {exc}", expr.loc) from exc
    raise ElaborationError(f"'{render(expr)}' is not a static expression", expr.loc)


def evaluate_int(expr: Expr, env: Mapping[str, ConstValue]) -> Optional[int]:
    """Evaluate ``expr`` and return it if it is an integer, else ``None``."""
    value = evaluate(expr, env)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


# ----------------------------------------------------------------------
# Substitution


def substitute(expr: Expr, consts: Mapping[str, ConstValue]) -> Expr:
    """Return ``expr`` with every name bound in ``consts`` replaced by a
    :class:`Const`.  Unchanged subtrees are shared, not copied."""
    kind = expr.kind
    if kind is ExprKind.REF:
        if expr.name in consts:
            return Const(consts[expr.name], loc=expr.loc)
        return expr
    if kind is ExprKind.CONST:
        return expr
    if kind is ExprKind.BINARY:
        left = substitute(expr.left, consts)
        right = substitute(expr.right, consts)
        if left is expr.left and right is expr.right:
            return expr
        return BinaryOp(expr.op, left, right, loc=expr.loc)
    if kind is ExprKind.UNARY:
        operand = substitute(expr.operand, consts)
        if operand is expr.operand:
            return expr
        return UnaryOp(expr.op, operand, loc=expr.loc)
    if kind is ExprKind.CALL:
        args = tuple(substitute(a, consts) for a in expr.args)
        if all(a is b for a, b in zip(args, expr.args)):
            return expr
        return Call(expr.func, args, loc=expr.loc)
    if kind is ExprKind.ATTRIBUTE:
        prefix = substitute(expr.prefix, consts)
        if prefix is expr.prefix:
            return expr
        return Attribute(prefix, expr.attribute, loc=expr.loc)
    if kind is ExprKind.INDEX:
        prefix = substitute(expr.prefix, consts)
        index = substitute(expr.index, consts)
        if prefix is expr.prefix and index is expr.index:
            return expr
        return Index(prefix, index, loc=expr.loc)
    raise TypeError(f"unknown expression kind {kind!r}")


# ----------------------------------------------------------------------
# Reference collection


def _children(expr: Expr) -> Tuple[Expr, ...]:
    kind = expr.kind
    if kind is ExprKind.BINARY:
        return (expr.left, expr.right)
    if kind is ExprKind.UNARY:
        return (expr.operand,)
    if kind is ExprKind.CALL:
        return expr.args
    if kind is ExprKind.ATTRIBUTE:
        return (expr.prefix,)
    if kind is ExprKind.INDEX:
        return (expr.prefix, expr.index)
    return ()


def iter_refs(expr: Expr) -> Iterator[Ref]:
    """Yield every :class:`Ref` in ``expr``, left to right."""
    stack = [expr]
    while stack:
        node = stack.pop()
        if node.kind is ExprKind.REF:
            yield node
        else:
            stack.extend(reversed(_children(node)))


def ref_names(expr: Expr) -> Tuple[str, ...]:
    """Names read by ``expr`` in first-use order, without duplicates."""
    seen: Dict[str, None] = {}
    for ref in iter_refs(expr):
        seen.setdefault(ref.name, None)
    return tuple(seen)


# ----------------------------------------------------------------------
# Edge predicates

_EDGE_FUNCTIONS = {"rising_edge": Edge.RISING, "falling_edge": Edge.FALLING}
_EDGE_LEVELS = {"1": Edge.RISING, "0": Edge.FALLING}


def _event_signal(expr: Expr) -> Optional[str]:
    if expr.kind is ExprKind.ATTRIBUTE and expr.attribute.lower() == "event" and expr.prefix.kind is ExprKind.REF:
        return expr.prefix.name
    return None


def _level_test(expr: Expr) -> Optional[Tuple[str, Edge]]:
    if expr.kind is not ExprKind.BINARY or expr.op != "=":
        return None
    for name_side, value_side in ((expr.left, expr.right), (expr.right, expr.left)):
        if name_side.kind is ExprKind.REF and value_side.kind is ExprKind.CONST:
            edge = _EDGE_LEVELS.get(str(value_side.value))
            if edge is not None:
                return name_side.name, edge
    return None


def edge_of(expr: Expr) -> Optional[Tuple[str, Edge]]:
    """Return ``(signal, edge)`` if ``expr`` is solely an edge predicate.

    Recognised forms are ``rising_edge(s)``, ``falling_edge(s)`` and
    ``s'event and s = '1'`` (or ``'0'``), in either operand order.
    """
    if expr.kind is ExprKind.CALL:
        edge = _EDGE_FUNCTIONS.get(expr.func.lower())
        if edge is not None and len(expr.args) == 1 and expr.args[0].kind is ExprKind.REF:
            return expr.args[0].name, edge
        return None
    if expr.kind is ExprKind.BINARY and expr.op == "and":
        for event_side, level_side in ((expr.left, expr.right), (expr.right, expr.left)):
            signal = _event_signal(event_side)
            level = _level_test(level_side)
            if signal is not None and level is not None and level[0] == signal:
                return level
    return None
