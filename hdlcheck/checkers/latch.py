"""Latch inference in combinational processes."""

from __future__ import annotations

from typing import Iterator

from ..diagnostics import LATCH_INFERRED, Finding
from .base import InstanceContext, RuleChecker, checker_registry


@checker_registry.register("latch")
class LatchChecker(RuleChecker):
    """Report signals a combinational process assigns on some paths only.

    Such a signal has to keep its previous value on the other paths, which
    needs a latch.  Signals never written are dead, not latches, and are
    ignored.
    """

    rules = (LATCH_INFERRED,)

    #: Unassigned paths spelled out in a message.
    max_listed_paths = 4

    def check(self, context: InstanceContext) -> Iterator[Finding]:
        if not self.config.enabled(LATCH_INFERRED):
            return
        for summary in context.combinational():
            for site in summary.first_writes:
                if site.signal not in summary.sometimes_written:
                    continue
                unassigned = summary.unassigned_paths(site.signal, limit=self.max_listed_paths + 1)
                listed = "; ".join(p.describe() for p in unassigned[: self.max_listed_paths])
                if len(unassigned) > self.max_listed_paths:
                    listed += "; ..."
                message = (
                    f"signal '{site.signal}' is not assigned on every path, inferring a latch; "
                    f"unassigned when {listed}"
                )
                yield self.finding(context, summary, LATCH_INFERRED, site.signal, message, site.loc)
