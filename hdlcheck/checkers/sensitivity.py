"""Sensitivity-list completeness for combinational processes."""

from __future__ import annotations

from typing import Iterator

from ..diagnostics import SENSITIVITY_INCOMPLETE, Finding
from .base import InstanceContext, RuleChecker, checker_registry


@checker_registry.register("sensitivity")
class SensitivityChecker(RuleChecker):
    """Report signals a combinational process reads without listing them.

    A simulator re-evaluates the process only on events of listed signals,
    while the synthesized gates react to every input, so each missing
    signal is a functional mismatch.  Every missing signal is reported once
    per process, at its first point of use.  An empty sensitivity list
    makes every read signal missing.
    """

    rules = (SENSITIVITY_INCOMPLETE,)

    def check(self, context: InstanceContext) -> Iterator[Finding]:
        if not self.config.enabled(SENSITIVITY_INCOMPLETE):
            return
        for summary in context.combinational():
            process = summary.process
            missing = summary.read_set.difference(process.sensitivity)
            for site in summary.read_sites:
                if site.signal not in missing:
                    continue
                message = (
                    f"signal '{site.signal}' is read but not in the sensitivity list "
                    f"(first read as {site.role} at {site.statement_path})"
                )
                if not process.sensitivity:
                    message += "; the sensitivity list is empty"
                yield self.finding(context, summary, SENSITIVITY_INCOMPLETE, site.signal, message, site.loc)
