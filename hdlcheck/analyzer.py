"""The analysis pipeline.

:class:`Analyzer` wires the stages together for each top unit::

    Elaborator -> extract_flow -> checkers -> Reporter

Top units are independent: each one is elaborated and checked in its own
task, and a fatal elaboration error only ends the task of the top unit
that raised it.  With ``jobs > 1`` the tasks run on a thread pool; the
results are merged in the order the top units were given, so the report
does not depend on scheduling.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .checkers import InstanceContext, checker_registry
from .config import AnalysisConfig
from .diagnostics import ElaborationFailure, Finding, Report, Reporter
from .elaborator import Elaborator, format_path
from .errors import ConfigurationError, ElaborationError
from .flow import extract_flow
from .model import Design, StmtKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopResult:
    top: str
    findings: Tuple[Finding, ...] = ()
    failure: Optional[ElaborationFailure] = None


def find_tops(design: Design) -> List[str]:
    """Return the units no architecture instantiates, in declaration order."""
    instantiated = set()

    def walk(statements):
        for stmt in statements:
            if stmt.kind is StmtKind.INSTANCE:
                instantiated.add(stmt.unit)
            elif stmt.kind is StmtKind.GENERATE_FOR:
                walk(stmt.body)

    for arch in design.architectures:
        walk(arch.statements)
    return [u.name for u in design.units if u.name not in instantiated]


class Analyzer:
    """Run elaboration and all enabled checkers over a design."""

    def __init__(self, design: Design, config: Optional[AnalysisConfig] = None) -> None:
        self.design = design
        self.config = config or AnalysisConfig()
        self.elaborator = Elaborator(design)
        self.checkers = [cls(config=self.config) for _, cls in checker_registry.items()]
        self.checkers = [c for c in self.checkers if c.active]

    def analyze_top(self, top: str) -> TopResult:
        """Elaborate and check one top unit."""
        unit = self.design.unit(top)
        overrides = {}
        if unit is not None:
            overrides = {k: v for k, v in self.config.overrides.items() if unit.get_generic(k) is not None}
        try:
            elaborated = self.elaborator.elaborate(top, overrides)
        except ElaborationError as exc:
            logger.warning("elaboration of '%s' failed: %s", top, exc)
            return TopResult(top, failure=ElaborationFailure.from_error(top, exc))

        findings: List[Finding] = []
        for instance in elaborated.instances():
            context = InstanceContext.build(top, instance, (extract_flow(p) for p in instance.processes))
            for checker in self.checkers:
                findings.extend(checker.check(context))
            logger.debug(
                "%s[%s]: %d process(es), %d register(s)",
                top,
                format_path(instance.path),
                len(context.summaries),
                len(context.registers),
            )
        logger.info("%s: %d finding(s) before deduplication", top, len(findings))
        return TopResult(top, tuple(findings))

    def analyze(self, tops: Optional[Iterable[str]] = None) -> Report:
        """Analyze ``tops`` (default: every uninstantiated unit).

        Raises:
            ConfigurationError: If a generic override matches no top unit.
        """
        tops = list(tops or find_tops(self.design))
        self._check_overrides(tops)
        if self.config.jobs == 1 or len(tops) <= 1:
            results = [self.analyze_top(top) for top in tops]
        else:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
                results = list(pool.map(self.analyze_top, tops))

        reporter = Reporter()
        for result in results:
            reporter.extend(result.findings)
            if result.failure is not None:
                reporter.add_failure(result.failure)
        return reporter.report()

    def _check_overrides(self, tops: Sequence[str]) -> None:
        units = [self.design.unit(top) for top in tops]
        for name in self.config.overrides:
            if not any(u is not None and u.get_generic(name) is not None for u in units):
                raise ConfigurationError(f"no top unit has a generic named '{name}'")


def analyze(
    design: Design,
    tops: Optional[Iterable[str]] = None,
    config: Optional[AnalysisConfig] = None,
) -> Report:
    """Analyze ``design`` and return the :class:`Report`."""
    return Analyzer(design, config).analyze(tops)
