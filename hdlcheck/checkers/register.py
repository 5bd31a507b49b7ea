"""Separation of clocked and combinational assignments."""

from __future__ import annotations

from typing import Iterator

from ..diagnostics import CLOCKED_PROCESS_IMPURE, REGISTER_DUAL_DRIVEN, Finding
from .base import InstanceContext, RuleChecker, checker_registry


@checker_registry.register("register")
class RegisterChecker(RuleChecker):
    """Check register discipline.

    Two independent sub-checks:

    * ``CLOCKED_PROCESS_IMPURE``: a clocked process assigns a signal
      outside the branch guarded by its clock edge (in an ``elsif`` or
      ``else`` of the guard, or in a top-level statement next to it).
    * ``REGISTER_DUAL_DRIVEN``: a signal assigned under a clock guard
      anywhere in the instance is also assigned by a combinational
      process of the same instance.
    """

    rules = (CLOCKED_PROCESS_IMPURE, REGISTER_DUAL_DRIVEN)

    def check(self, context: InstanceContext) -> Iterator[Finding]:
        if self.config.enabled(CLOCKED_PROCESS_IMPURE):
            yield from self._impure(context)
        if self.config.enabled(REGISTER_DUAL_DRIVEN):
            yield from self._dual_driven(context)

    def _impure(self, context: InstanceContext) -> Iterator[Finding]:
        for summary in context.clocked():
            reported = set()
            for site in summary.unguarded_assignments:
                if site.signal in reported:
                    continue
                reported.add(site.signal)
                message = (
                    f"signal '{site.signal}' is assigned outside the {summary.clock_guard} branch "
                    f"of a clocked process (at {site.statement_path})"
                )
                yield self.finding(context, summary, CLOCKED_PROCESS_IMPURE, site.signal, message, site.loc)

    def _dual_driven(self, context: InstanceContext) -> Iterator[Finding]:
        for summary in context.combinational():
            for site in summary.first_writes:
                if site.signal not in context.registers:
                    continue
                drivers = sorted(
                    s.process.name for s in context.clocked() if site.signal in s.guarded_writes
                )
                message = (
                    f"register '{site.signal}' (clocked in {', '.join(drivers)}) "
                    f"is also assigned without a clock edge"
                )
                yield self.finding(context, summary, REGISTER_DUAL_DRIVEN, site.signal, message, site.loc)
