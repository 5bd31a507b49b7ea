"""Elaboration of a design into a concrete instance tree.

The :class:`Elaborator` resolves generics, evaluates widths and generate
bounds and expands instantiations and ``for ... generate`` loops, starting
from a top-level design unit.  The result is an :class:`ElaboratedDesign`
whose :class:`Instance` objects carry only concrete values: every process
body has had its generic, constant and loop-variable references replaced
by literals, and every remaining name is known to be a port or signal of
the enclosing architecture.

Unit-to-unit instantiation is treated as a dependency graph.  It is
ordered with :class:`graphlib.TopologicalSorter` before anything is
expanded, which is also where instantiation cycles and unknown units are
detected.  Generic defaults inside a unit are ordered the same way, so a
default may refer to another generic of the same unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from graphlib import CycleError, TopologicalSorter
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Set, Tuple

from .errors import (
    ElaborationError,
    GenericValueError,
    InstantiationCycleError,
    NonIntegerBoundError,
    UnknownUnitError,
    UnresolvedGenericError,
    UnresolvedReferenceError,
)
from .expr import evaluate, evaluate_int, iter_refs, ref_names, render, substitute
from .model import (
    Architecture,
    Assignment,
    Branch,
    Case,
    CaseAlternative,
    ConcurrentStatement,
    ConstValue,
    Design,
    DesignUnit,
    Expr,
    GenerateFor,
    If,
    Instantiation,
    Process,
    SourceLocation,
    Statement,
    StmtKind,
    base_name,
)

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]


def format_path(path: Path) -> str:
    """Render an elaboration path, e.g. ``gen_add(3).u_add``."""
    return ".".join(path)


@dataclass(frozen=True)
class ElaboratedProcess:
    """A process bound to concrete values inside one instance.

    ``path`` is the elaboration path of the scope holding the process,
    including generate iterations.  ``source_key`` identifies the source
    process and is shared by every copy made through instantiation or
    generate expansion.
    """

    path: Path
    name: str
    source_key: str
    sensitivity: Tuple[str, ...]
    body: Tuple[Statement, ...]
    loc: Optional[SourceLocation] = None


@dataclass(frozen=True)
class Instance:
    """A design unit bound to resolved generics and a port mapping."""

    path: Path
    unit: DesignUnit
    architecture: Optional[str]
    generics: Tuple[Tuple[str, ConstValue], ...]
    widths: Tuple[Tuple[str, int], ...]
    port_map: Tuple[Tuple[str, str], ...]
    processes: Tuple[ElaboratedProcess, ...]
    children: Tuple["Instance", ...]

    def generic(self, name: str) -> ConstValue:
        return dict(self.generics)[name]

    def width(self, name: str) -> int:
        return dict(self.widths)[name]

    def walk(self) -> Iterator["Instance"]:
        """Yield this instance and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass(frozen=True)
class ElaboratedDesign:
    top: str
    root: Instance
    unit_order: Tuple[str, ...]

    def instances(self) -> Iterator[Instance]:
        return self.root.walk()


class _Scope:
    """Names visible while expanding one architecture."""

    def __init__(self, arch: Architecture, path: Path, signals: Set[str], consts: Dict[str, ConstValue]) -> None:
        self.arch = arch
        self.path = path
        self.signals = signals
        self.consts = consts
        self.processes: List[ElaboratedProcess] = []
        self.children: List[Instance] = []

    def describe(self) -> str:
        where = format_path(self.path) or "<top>"
        return f"architecture '{self.arch.name}' of '{self.arch.entity}' at {where}"


class Elaborator:
    """Expand a :class:`Design` into an instance tree for one top unit.

    An elaborator is stateless between calls to :meth:`elaborate`, so one
    object can serve several top units, also from several threads.
    """

    def __init__(self, design: Design) -> None:
        self.design = design
        self._concurrent: Dict[StmtKind, Callable[..., None]] = {
            StmtKind.PROCESS: self._elaborate_process,
            StmtKind.INSTANCE: self._elaborate_instantiation,
            StmtKind.GENERATE_FOR: self._elaborate_generate,
        }
        self._sequential: Dict[StmtKind, Callable[..., Statement]] = {
            StmtKind.ASSIGN: self._bind_assignment,
            StmtKind.IF: self._bind_if,
            StmtKind.CASE: self._bind_case,
            StmtKind.NULL: lambda stmt, scope: stmt,
        }

    # ------------------------------------------------------------------
    # Public API

    def elaborate(self, top: str, overrides: Optional[Mapping[str, ConstValue]] = None) -> ElaboratedDesign:
        """Elaborate ``top``.

        Args:
            top: Name of the top-level design unit.
            overrides: Values for the top unit's generics, taking
                precedence over their defaults.

        Raises:
            ElaborationError: On any fatal elaboration problem.
        """
        order = self.unit_order(top)
        logger.debug("elaborating '%s', unit order %s", top, ", ".join(order))
        unit = self.design.unit(top)
        root = self._elaborate_unit(unit, None, (), dict(overrides or {}), unit.loc)
        return ElaboratedDesign(top=top, root=root, unit_order=order)

    def unit_order(self, top: str) -> Tuple[str, ...]:
        """Return the units reachable from ``top``, parents before children.

        Raises:
            UnknownUnitError: If ``top`` or an instantiated unit is unknown.
            InstantiationCycleError: If the instantiation graph has a cycle.
        """
        if self.design.unit(top) is None:
            raise UnknownUnitError(f"unknown design unit '{top}'")
        sorter: TopologicalSorter = TopologicalSorter()
        pending = [top]
        seen: Set[str] = set()
        while pending:
            name = pending.pop()
            if name in seen:
                continue
            seen.add(name)
            children = []
            for inst in self._instantiations_of(name):
                if self.design.unit(inst.unit) is None:
                    raise UnknownUnitError(
                        f"'{name}' instantiates unknown design unit '{inst.unit}'", inst.loc
                    )
                children.append(inst.unit)
            # children must come after their parent, so the parent is a
            # predecessor of each child
            sorter.add(name)
            for child in children:
                sorter.add(child, name)
                pending.append(child)
        try:
            return tuple(sorter.static_order())
        except CycleError as exc:
            cycle = list(exc.args[1])
            raise InstantiationCycleError(cycle, self.design.unit(cycle[0]).loc) from exc

    # ------------------------------------------------------------------
    # Instances

    def _instantiations_of(self, unit: str) -> Iterator[Instantiation]:
        def walk(statements):
            for stmt in statements:
                if stmt.kind is StmtKind.INSTANCE:
                    yield stmt
                elif stmt.kind is StmtKind.GENERATE_FOR:
                    yield from walk(stmt.body)

        for arch in self.design.architectures:
            if arch.entity == unit:
                yield from walk(arch.statements)

    def _elaborate_unit(
        self,
        unit: DesignUnit,
        arch_name: Optional[str],
        path: Path,
        actuals: Dict[str, ConstValue],
        loc: Optional[SourceLocation],
    ) -> Instance:
        generics = self._resolve_generics(unit, actuals, loc)
        env: Dict[str, ConstValue] = dict(generics)
        widths: Dict[str, int] = {}
        for port in unit.ports:
            widths[port.name] = self._width(port.width, env, f"port '{port.name}' of '{unit.name}'", port.loc)

        arch = self.design.architecture_for(unit.name, arch_name)
        if arch is None:
            if arch_name is not None:
                raise UnknownUnitError(f"unit '{unit.name}' has no architecture '{arch_name}'", loc)
            logger.debug("unit '%s' has no architecture; treating it as a leaf", unit.name)
            return Instance(path, unit, None, tuple(generics.items()), tuple(widths.items()), (), (), ())

        for const in arch.constants:
            try:
                env[const.name] = evaluate(const.value, env)
            except UnresolvedReferenceError as exc:
                raise UnresolvedReferenceError(
                    f"constant '{const.name}' of '{arch.name}': {exc.message}", exc.loc or const.loc
                ) from exc
        for sig in arch.signals:
            widths[sig.name] = self._width(sig.width, env, f"signal '{sig.name}' of '{arch.name}'", sig.loc)

        signals = set(widths)
        consts = {name: value for name, value in env.items() if name not in signals}
        scope = _Scope(arch, path, signals, consts)
        self._expand(arch.statements, scope, path, ())
        return Instance(
            path=path,
            unit=unit,
            architecture=arch.name,
            generics=tuple(generics.items()),
            widths=tuple(widths.items()),
            port_map=(),
            processes=tuple(scope.processes),
            children=tuple(scope.children),
        )

    def _resolve_generics(
        self, unit: DesignUnit, actuals: Dict[str, ConstValue], loc: Optional[SourceLocation]
    ) -> Dict[str, ConstValue]:
        for name in actuals:
            if unit.get_generic(name) is None:
                raise UnresolvedReferenceError(f"unit '{unit.name}' has no generic '{name}'", loc)

        values: Dict[str, ConstValue] = dict(actuals)
        pending = {g.name: g for g in unit.generics if g.name not in values}
        sorter: TopologicalSorter = TopologicalSorter()
        for name, generic in pending.items():
            if generic.default is None:
                raise UnresolvedGenericError(
                    f"generic '{name}' of unit '{unit.name}' has no value and no default", loc or generic.loc
                )
            sorter.add(name, *(r for r in ref_names(generic.default) if r in pending))
        try:
            order = list(sorter.static_order())
        except CycleError as exc:
            raise UnresolvedGenericError(
                f"generic defaults of unit '{unit.name}' depend on each other: " + " -> ".join(exc.args[1]),
                unit.loc,
            ) from exc

        for name in order:
            generic = pending[name]
            try:
                values[name] = evaluate(generic.default, values)
            except UnresolvedReferenceError as exc:
                raise UnresolvedGenericError(
                    f"default of generic '{name}' of unit '{unit.name}': {exc.message}", exc.loc or generic.loc
                ) from exc

        resolved = {g.name: values[g.name] for g in unit.generics}
        for generic in unit.generics:
            _check_generic_type(unit, generic.name, generic.type, resolved[generic.name], loc or generic.loc)
        return resolved

    def _width(self, expr: Expr, env: Mapping[str, ConstValue], what: str, loc: Optional[SourceLocation]) -> int:
        value = evaluate_int(expr, env)
        if value is None:
            raise NonIntegerBoundError(f"width of {what} is not an integer: '{render(expr)}'", loc)
        return value

    # ------------------------------------------------------------------
    # Concurrent statements

    def _expand(self, statements: Tuple[ConcurrentStatement, ...], scope: _Scope, path: Path, pos: Tuple[int, ...]) -> None:
        for i, stmt in enumerate(statements):
            handler = self._concurrent.get(stmt.kind)
            if handler is None:
                raise ElaborationError(
                    f"{stmt.kind.value} statement is not allowed at architecture level", stmt.loc
                )
            handler(stmt, scope, path, pos + (i,))

    def _elaborate_process(self, proc: Process, scope: _Scope, path: Path, pos: Tuple[int, ...]) -> None:
        position = ".".join(str(p) for p in pos)
        name = proc.label or f"process_{position}"
        for signal in proc.sensitivity:
            if signal not in scope.signals:
                raise UnresolvedReferenceError(
                    f"sensitivity list of '{name}' names '{signal}', which is not a signal or port "
                    f"of {scope.describe()}",
                    proc.loc,
                )
        body = tuple(self._bind(stmt, scope) for stmt in proc.body)
        arch = scope.arch
        scope.processes.append(
            ElaboratedProcess(
                path=path,
                name=name,
                source_key=f"{arch.entity}({arch.name}):{proc.label or position}",
                sensitivity=proc.sensitivity,
                body=body,
                loc=proc.loc,
            )
        )

    def _elaborate_instantiation(self, inst: Instantiation, scope: _Scope, path: Path, pos: Tuple[int, ...]) -> None:
        unit = self.design.unit(inst.unit)
        if unit is None:
            raise UnknownUnitError(f"unknown design unit '{inst.unit}'", inst.loc)
        env = dict(scope.consts)
        actuals: Dict[str, ConstValue] = {}
        for formal, actual in inst.generic_map:
            try:
                actuals[formal] = evaluate(actual, env)
            except UnresolvedReferenceError as exc:
                raise UnresolvedGenericError(
                    f"generic map of '{inst.label}', '{formal}': {exc.message}", exc.loc or inst.loc
                ) from exc

        port_map: List[Tuple[str, str]] = []
        for formal, actual in inst.port_map:
            if unit.get_port(formal) is None:
                raise UnresolvedReferenceError(f"unit '{unit.name}' has no port '{formal}'", inst.loc)
            port_map.append((formal, render(self._bind_expr(actual, scope, inst.loc))))

        child_path = path + (inst.label,)
        logger.debug("instantiating '%s' as %s", unit.name, format_path(child_path))
        child = self._elaborate_unit(unit, inst.architecture, child_path, actuals, inst.loc)
        scope.children.append(replace(child, port_map=tuple(port_map)))

    def _elaborate_generate(self, gen: GenerateFor, scope: _Scope, path: Path, pos: Tuple[int, ...]) -> None:
        env = dict(scope.consts)
        bounds = []
        for expr in (gen.low, gen.high):
            try:
                value = evaluate_int(expr, env)
            except ElaborationError as exc:
                raise NonIntegerBoundError(
                    f"range of generate '{gen.label}' does not evaluate: {exc.message}", exc.loc or gen.loc
                ) from exc
            if value is None:
                raise NonIntegerBoundError(
                    f"range of generate '{gen.label}' is not an integer: '{render(expr)}'", gen.loc
                )
            bounds.append(value)
        low, high = bounds
        logger.debug("generate '%s' expands %d time(s)", gen.label, max(0, high - low + 1))
        outer = scope.consts
        try:
            for value in range(low, high + 1):
                scope.consts = {**outer, gen.variable: value}
                self._expand(gen.body, scope, path + (f"{gen.label}({value})",), pos)
        finally:
            scope.consts = outer

    # ------------------------------------------------------------------
    # Sequential statements

    def _bind(self, stmt: Statement, scope: _Scope) -> Statement:
        handler = self._sequential.get(stmt.kind)
        if handler is None:
            raise ElaborationError(f"{stmt.kind.value} statement is not allowed inside a process", stmt.loc)
        return handler(stmt, scope)

    def _bind_body(self, body: Optional[Tuple[Statement, ...]], scope: _Scope) -> Optional[Tuple[Statement, ...]]:
        if body is None:
            return None
        return tuple(self._bind(stmt, scope) for stmt in body)

    def _bind_expr(self, expr: Expr, scope: _Scope, loc: Optional[SourceLocation]) -> Expr:
        bound = substitute(expr, scope.consts)
        for ref in iter_refs(bound):
            if ref.name not in scope.signals:
                raise UnresolvedReferenceError(
                    f"'{ref.name}' is not a signal or port of {scope.describe()}", ref.loc or loc
                )
        return bound

    def _bind_assignment(self, stmt: Assignment, scope: _Scope) -> Statement:
        target = self._bind_expr(stmt.target, scope, stmt.loc)
        if base_name(target) is None:
            raise ElaborationError(f"assignment target '{render(stmt.target)}' is not a signal", stmt.loc)
        return Assignment(target, self._bind_expr(stmt.value, scope, stmt.loc), loc=stmt.loc)

    def _bind_if(self, stmt: If, scope: _Scope) -> Statement:
        branches = tuple(
            Branch(self._bind_expr(b.condition, scope, stmt.loc), self._bind_body(b.body, scope))
            for b in stmt.branches
        )
        return If(branches, self._bind_body(stmt.else_body, scope), loc=stmt.loc)

    def _bind_case(self, stmt: Case, scope: _Scope) -> Statement:
        alternatives = tuple(
            CaseAlternative(
                tuple(self._bind_expr(c, scope, stmt.loc) for c in alt.choices),
                self._bind_body(alt.body, scope),
            )
            for alt in stmt.alternatives
        )
        return Case(
            self._bind_expr(stmt.selector, scope, stmt.loc),
            alternatives,
            self._bind_body(stmt.others, scope),
            loc=stmt.loc,
        )


_INTEGER_TYPES = {"integer": None, "natural": 0, "positive": 1}


def _check_generic_type(
    unit: DesignUnit, name: str, type_name: str, value: ConstValue, loc: Optional[SourceLocation]
) -> None:
    type_name = type_name.lower()
    if type_name in _INTEGER_TYPES:
        minimum = _INTEGER_TYPES[type_name]
        if isinstance(value, bool) or not isinstance(value, int):
            raise GenericValueError(f"generic '{name}' of unit '{unit.name}' must be an integer, got {value!r}", loc)
        if minimum is not None and value < minimum:
            raise GenericValueError(f"generic '{name}' of unit '{unit.name}' must be {type_name}, got {value}", loc)
    elif type_name == "boolean" and not isinstance(value, bool):
        raise GenericValueError(f"generic '{name}' of unit '{unit.name}' must be boolean, got {value!r}", loc)
