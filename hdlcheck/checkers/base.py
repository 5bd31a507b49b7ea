"""Base checker class, per-instance context and the checker registry.

Every checker receives an :class:`InstanceContext`: the flow summaries of
all processes of one elaborated instance (generate scopes included) plus
the instance's register set, computed once by folding over those
summaries.  Checkers are independent of each other and return plain
:class:`Finding` values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, FrozenSet, Iterable, Iterator, Optional, Tuple

from ..config import AnalysisConfig
from ..diagnostics import Finding
from ..elaborator import Instance
from ..flow import FlowSummary, ProcessKind, classify_registers
from ..model import SourceLocation
from ..registry import Registry

# Registry for checker implementations; run in registration order
checker_registry = Registry("checker")


@dataclass(frozen=True)
class InstanceContext:
    top: str
    instance: Instance
    summaries: Tuple[FlowSummary, ...]
    registers: FrozenSet[str]

    @classmethod
    def build(cls, top: str, instance: Instance, summaries: Iterable[FlowSummary]) -> "InstanceContext":
        summaries = tuple(summaries)
        return cls(top, instance, summaries, classify_registers(summaries))

    def combinational(self) -> Iterator[FlowSummary]:
        return (s for s in self.summaries if s.kind is ProcessKind.COMBINATIONAL)

    def clocked(self) -> Iterator[FlowSummary]:
        return (s for s in self.summaries if s.kind is ProcessKind.CLOCKED)


class RuleChecker(ABC):
    """Abstract base class for rule checkers."""

    #: Rule ids this checker can report.
    rules: ClassVar[Tuple[str, ...]] = ()

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = config or AnalysisConfig()

    @property
    def active(self) -> bool:
        return any(self.config.enabled(rule) for rule in self.rules)

    @abstractmethod
    def check(self, context: InstanceContext) -> Iterable[Finding]:
        """Return the findings for one instance.

        Args:
            context: Flow summaries and register set of the instance.
        """
        raise NotImplementedError

    def finding(
        self,
        context: InstanceContext,
        summary: FlowSummary,
        rule: str,
        signal: Optional[str],
        message: str,
        loc: Optional[SourceLocation],
    ) -> Finding:
        process = summary.process
        return Finding(
            rule=rule,
            severity=self.config.severity(rule),
            top=context.top,
            path=process.path,
            process=process.name,
            signal=signal,
            message=message,
            loc=loc or process.loc,
            source_key=process.source_key,
        )
