"""Read/write-set extraction for elaborated processes.

:func:`extract_flow` turns one :class:`ElaboratedProcess` into a
:class:`FlowSummary`.  The computation is purely structural: it looks at
the shape of assignments and branches and never evaluates signal values.

The signals written on every control-flow path (``always_written``) and
on some but not all of them (``sometimes_written``) are computed per
statement, in time linear in the size of the process.  Paths themselves
are only enumerated on demand, lazily: an ``if`` without ``else`` and a
``case`` without ``others`` contribute an extra path on which none of
their branches is taken, and a sequence of statements composes as the
cross product of the paths of its members.

A process is classified once, by scanning its top-level statements in
order: the first top-level ``if`` whose first condition is solely an edge
predicate on a sensitivity-list signal makes it clocked, unless an
assignment was seen before it, in which case it is combinational.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from itertools import islice
from typing import Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple

from .elaborator import ElaboratedProcess
from .expr import Edge, edge_of, iter_refs, render
from .model import Expr, ExprKind, If, SourceLocation, Statement, StmtKind

logger = logging.getLogger(__name__)


class ProcessKind(enum.Enum):
    COMBINATIONAL = "combinational"
    CLOCKED = "clocked"


@dataclass(frozen=True)
class ClockGuard:
    signal: str
    edge: Edge
    loc: Optional[SourceLocation] = None

    def __str__(self) -> str:
        return f"{self.edge.value}_edge({self.signal})"


@dataclass(frozen=True)
class ReadSite:
    """Where a signal is first read: statement path, role and location."""

    signal: str
    statement_path: str
    role: str
    loc: Optional[SourceLocation] = None


@dataclass(frozen=True)
class WriteSite:
    signal: str
    statement_path: str
    loc: Optional[SourceLocation] = None


@dataclass(frozen=True)
class WritePath:
    """One path through the branch tree and the signals written on it."""

    steps: Tuple[str, ...]
    writes: FrozenSet[str]

    def describe(self) -> str:
        return ", ".join(self.steps) if self.steps else "<unconditional>"


@dataclass(frozen=True)
class FlowSummary:
    process: ElaboratedProcess
    read_set: FrozenSet[str]
    clock_guard: Optional[ClockGuard]
    always_written: FrozenSet[str]
    sometimes_written: FrozenSet[str]
    read_sites: Tuple[ReadSite, ...]
    first_writes: Tuple[WriteSite, ...]
    guarded_writes: FrozenSet[str]
    unguarded_assignments: Tuple[WriteSite, ...]

    @property
    def kind(self) -> ProcessKind:
        return ProcessKind.CLOCKED if self.clock_guard is not None else ProcessKind.COMBINATIONAL

    @property
    def written(self) -> FrozenSet[str]:
        return self.always_written | self.sometimes_written

    def read_site(self, signal: str) -> Optional[ReadSite]:
        for site in self.read_sites:
            if site.signal == signal:
                return site
        return None

    def first_write(self, signal: str) -> Optional[WriteSite]:
        for site in self.first_writes:
            if site.signal == signal:
                return site
        return None

    def paths(self, limit: Optional[int] = None) -> Tuple[WritePath, ...]:
        """The first ``limit`` control-flow paths of the process (all by default)."""
        return tuple(islice(_PathWalker().paths(self.process.body), limit))

    def unassigned_paths(self, signal: str, limit: Optional[int] = None) -> Tuple[WritePath, ...]:
        """The first ``limit`` paths on which ``signal`` is not written."""
        return tuple(islice(_PathWalker().paths(self.process.body, avoid=signal), limit))


# ----------------------------------------------------------------------
# Path analysis

_Steps = Tuple[str, ...]


def _alternatives(stmt) -> List[Tuple[_Steps, Optional[Tuple[Statement, ...]]]]:
    """The bodies of an ``if`` or ``case`` with the steps selecting each."""
    if stmt.kind is StmtKind.IF:
        result = []
        negated: _Steps = ()
        for branch in stmt.branches:
            cond = render(branch.condition)
            result.append((negated + (f"{cond}=true",), branch.body))
            negated += (f"{cond}=false",)
        # else_body of None is the implicit empty path
        result.append((negated, stmt.else_body))
        return result
    selector = render(stmt.selector)
    result = [
        ((f"{selector}={' | '.join(render(c) for c in alt.choices)}",), alt.body)
        for alt in stmt.alternatives
    ]
    result.append(((f"{selector}=others",), stmt.others))
    return result


class _PathWalker:
    """Write sets of a statement tree, without enumerating its paths.

    A sequence always writes what any of its statements always writes; a
    branching statement always writes what all of its alternatives always
    write.  Individual paths are produced lazily by :meth:`paths`.
    """

    def __init__(self) -> None:
        self._sets: Dict[int, Tuple[FrozenSet[str], FrozenSet[str]]] = {}

    def write_sets(self, body: Optional[Tuple[Statement, ...]]) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        """Return ``(always, union)`` for ``body``."""
        always: FrozenSet[str] = frozenset()
        union: FrozenSet[str] = frozenset()
        for stmt in body or ():
            stmt_always, stmt_union = self._statement_sets(stmt)
            always |= stmt_always
            union |= stmt_union
        return always, union

    def _statement_sets(self, stmt: Statement) -> Tuple[FrozenSet[str], FrozenSet[str]]:
        key = id(stmt)
        if key not in self._sets:
            if stmt.kind is StmtKind.ASSIGN:
                written = frozenset([stmt.target_name])
                self._sets[key] = (written, written)
            elif stmt.kind in (StmtKind.IF, StmtKind.CASE):
                sets = [self.write_sets(body) for _, body in _alternatives(stmt)]
                self._sets[key] = (
                    frozenset.intersection(*(a for a, _ in sets)),
                    frozenset().union(*(u for _, u in sets)),
                )
            else:
                self._sets[key] = (frozenset(), frozenset())
        return self._sets[key]

    def paths(self, body: Optional[Tuple[Statement, ...]], avoid: Optional[str] = None) -> Iterator[WritePath]:
        """Yield the paths through ``body`` in branch order.

        With ``avoid`` set, only paths that never write that signal are
        yielded.  Alternatives that always write it are pruned before
        descending, so every partial path extends to a complete one.
        """
        body = tuple(body or ())
        if avoid is not None and avoid in self.write_sets(body)[0]:
            return
        for steps, writes in self._sequence(body, 0, avoid):
            yield WritePath(steps, writes)

    def _sequence(self, body: Tuple[Statement, ...], start: int, avoid: Optional[str]) -> Iterator[Tuple[_Steps, FrozenSet[str]]]:
        if start == len(body):
            yield (), frozenset()
            return
        for steps, writes in self._statement(body[start], avoid):
            for rest, rest_writes in self._sequence(body, start + 1, avoid):
                yield steps + rest, writes | rest_writes

    def _statement(self, stmt: Statement, avoid: Optional[str]) -> Iterator[Tuple[_Steps, FrozenSet[str]]]:
        if stmt.kind is StmtKind.ASSIGN:
            yield (), frozenset([stmt.target_name])
        elif stmt.kind in (StmtKind.IF, StmtKind.CASE):
            for prefix, body in _alternatives(stmt):
                if avoid is not None and avoid in self.write_sets(body)[0]:
                    continue
                for steps, writes in self._sequence(tuple(body or ()), 0, avoid):
                    yield prefix + steps, writes
        else:
            yield (), frozenset()


# ----------------------------------------------------------------------
# Site collection


class _SiteCollector:
    """Walk a process body once, recording reads and writes in order."""

    def __init__(self, guard_if: Optional[If]) -> None:
        self.guard_if = guard_if
        self.reads: Dict[str, ReadSite] = {}
        self.writes: Dict[str, WriteSite] = {}
        self.guarded: set = set()
        self.unguarded: List[WriteSite] = []
        self._handlers: Dict[StmtKind, Callable[..., None]] = {
            StmtKind.ASSIGN: self._assign,
            StmtKind.IF: self._if,
            StmtKind.CASE: self._case,
            StmtKind.NULL: lambda stmt, path, guarded: None,
        }

    def body(self, body: Optional[Tuple[Statement, ...]], path: str, guarded: bool) -> None:
        for i, stmt in enumerate(body or ()):
            self._handlers[stmt.kind](stmt, f"{path}[{i}]", guarded)

    def _read(self, expr: Expr, path: str, role: str, loc: Optional[SourceLocation]) -> None:
        for ref in iter_refs(expr):
            if ref.name not in self.reads:
                self.reads[ref.name] = ReadSite(ref.name, path, role, ref.loc or loc)

    def _assign(self, stmt, path: str, guarded: bool) -> None:
        target = stmt.target
        while target.kind is ExprKind.INDEX:
            self._read(target.index, path, "target index", stmt.loc)
            target = target.prefix
        self._read(stmt.value, path, "right-hand side", stmt.loc)
        name = stmt.target_name
        site = WriteSite(name, path, stmt.loc)
        self.writes.setdefault(name, site)
        if guarded:
            self.guarded.add(name)
        else:
            self.unguarded.append(site)

    def _if(self, stmt: If, path: str, guarded: bool) -> None:
        for k, branch in enumerate(stmt.branches):
            label = "then" if k == 0 else f"elsif{k}"
            self._read(branch.condition, f"{path}.{label}", "condition", stmt.loc)
            inside = guarded or (k == 0 and stmt is self.guard_if)
            self.body(branch.body, f"{path}.{label}", inside)
        self.body(stmt.else_body, f"{path}.else", guarded)

    def _case(self, stmt, path: str, guarded: bool) -> None:
        self._read(stmt.selector, path, "case selector", stmt.loc)
        for k, alt in enumerate(stmt.alternatives):
            for choice in alt.choices:
                self._read(choice, f"{path}.when{k}", "case choice", stmt.loc)
            self.body(alt.body, f"{path}.when{k}", guarded)
        self.body(stmt.others, f"{path}.others", guarded)


# ----------------------------------------------------------------------
# Classification


def _contains_assignment(stmt: Statement) -> bool:
    kind = stmt.kind
    if kind is StmtKind.ASSIGN:
        return True
    if kind is StmtKind.IF:
        bodies = [b.body for b in stmt.branches] + [stmt.else_body or ()]
    elif kind is StmtKind.CASE:
        bodies = [a.body for a in stmt.alternatives] + [stmt.others or ()]
    else:
        return False
    return any(_contains_assignment(s) for body in bodies for s in body)


def detect_clock_guard(process: ElaboratedProcess) -> Tuple[Optional[ClockGuard], Optional[If]]:
    """Classify ``process`` and return its guard and the guarding ``if``.

    Both are ``None`` for a combinational process.
    """
    for stmt in process.body:
        if stmt.kind is StmtKind.IF:
            edge = edge_of(stmt.branches[0].condition)
            if edge is not None and edge[0] in process.sensitivity:
                return ClockGuard(edge[0], edge[1], stmt.loc), stmt
        if _contains_assignment(stmt):
            break
    return None, None


def extract_flow(process: ElaboratedProcess) -> FlowSummary:
    """Compute the :class:`FlowSummary` of one elaborated process."""
    guard, guard_if = detect_clock_guard(process)
    collector = _SiteCollector(guard_if)
    collector.body(process.body, "body", False)

    always, union = _PathWalker().write_sets(process.body)

    logger.debug(
        "%s: %s, writes %s, reads %s",
        process.name,
        "clocked on " + str(guard) if guard else "combinational",
        sorted(union),
        sorted(collector.reads),
    )
    return FlowSummary(
        process=process,
        read_set=frozenset(collector.reads),
        clock_guard=guard,
        always_written=always,
        sometimes_written=union - always,
        read_sites=tuple(collector.reads.values()),
        first_writes=tuple(collector.writes.values()),
        guarded_writes=frozenset(collector.guarded),
        unguarded_assignments=tuple(collector.unguarded) if guard is not None else (),
    )


def classify_registers(summaries) -> FrozenSet[str]:
    """Signals assigned under a clock guard in any of ``summaries``.

    A set union, so the result does not depend on process order.
    """
    return frozenset().union(*(s.guarded_writes for s in summaries))
