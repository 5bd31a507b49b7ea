"""Findings, elaboration failures and their aggregation.

Checkers produce :class:`Finding` values; the analyzer turns fatal
elaboration errors into :class:`ElaborationFailure` values.  A
:class:`Reporter` collects both and builds the final :class:`Report`:

* findings raised by copies of the same source process (instantiations of
  one unit, iterations of one generate loop) are merged into one finding
  whose ``occurrences`` lists every elaboration path where it recurs;
* findings are stable-sorted by top unit, elaboration path, source
  location and rule id;
* summary counts per rule and per severity are computed over the merged
  findings.

The reporter never recomputes or alters what a finding says, it only
merges and orders.
"""

from __future__ import annotations

import enum
import re
from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ConfigurationError, ElaborationError
from .model import SourceLocation

Path = Tuple[str, ...]

SENSITIVITY_INCOMPLETE = "SENSITIVITY_INCOMPLETE"
LATCH_INFERRED = "LATCH_INFERRED"
CLOCKED_PROCESS_IMPURE = "CLOCKED_PROCESS_IMPURE"
REGISTER_DUAL_DRIVEN = "REGISTER_DUAL_DRIVEN"

RULES = (SENSITIVITY_INCOMPLETE, LATCH_INFERRED, CLOCKED_PROCESS_IMPURE, REGISTER_DUAL_DRIVEN)


class Severity(enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @classmethod
    def parse(cls, text: str) -> "Severity":
        try:
            return cls(text.strip().lower())
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise ConfigurationError(f"unknown severity '{text}' (expected one of: {choices})") from None


def _path_key(path: Path) -> tuple:
    # gen(2) before gen(10)
    return tuple(
        tuple(int(part) if part.isdigit() else part for part in re.split(r"(\d+)", element)) for element in path
    )


def _loc_key(loc: Optional[SourceLocation]) -> Tuple[str, int, int]:
    if loc is None:
        return ("", 0, 0)
    return (loc.file, loc.line, loc.column)


@dataclass(frozen=True)
class Finding:
    """One rule violation.

    ``source_key`` identifies the source process the finding was raised
    on; ``occurrences`` is filled in by the :class:`Reporter` with every
    elaboration path where the same violation recurs.
    """

    rule: str
    severity: Severity
    top: str
    path: Path
    process: str
    signal: Optional[str]
    message: str
    loc: Optional[SourceLocation] = None
    source_key: str = ""
    occurrences: Tuple[Path, ...] = field(default=(), compare=False)

    @property
    def subject(self) -> str:
        if self.signal:
            return f"{self.process}/{self.signal}"
        return self.process

    def sort_key(self) -> tuple:
        return (
            self.top,
            _path_key(self.path),
            _loc_key(self.loc),
            self.rule,
            self.process,
            self.signal or "",
            self.message,
        )

    def dedup_key(self) -> tuple:
        return (self.top, self.source_key or self.process, self.rule, self.signal)


@dataclass(frozen=True)
class ElaborationFailure:
    """A fatal elaboration error for one top unit.  Always error severity."""

    top: str
    category: str
    message: str
    loc: Optional[SourceLocation] = None

    severity = Severity.ERROR

    @classmethod
    def from_error(cls, top: str, exc: ElaborationError) -> "ElaborationFailure":
        return cls(top=top, category=exc.category, message=exc.message, loc=exc.loc)


@dataclass(frozen=True)
class Report:
    findings: Tuple[Finding, ...]
    failures: Tuple[ElaborationFailure, ...]
    counts_by_rule: Dict[str, int]
    counts_by_severity: Dict[str, int]

    @property
    def has_errors(self) -> bool:
        if self.failures:
            return True
        return any(f.severity is Severity.ERROR for f in self.findings)

    @property
    def exit_status(self) -> int:
        """0 when nothing of error severity was reported, 1 otherwise."""
        return 1 if self.has_errors else 0

    def for_top(self, top: str) -> Tuple[Finding, ...]:
        return tuple(f for f in self.findings if f.top == top)


class Reporter:
    """Accumulate findings and failures and build a :class:`Report`."""

    def __init__(self) -> None:
        self._findings: List[Finding] = []
        self._failures: List[ElaborationFailure] = []

    def add(self, finding: Finding) -> None:
        self._findings.append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        self._findings.extend(findings)

    def add_failure(self, failure: ElaborationFailure) -> None:
        self._failures.append(failure)

    def report(self) -> Report:
        findings = sorted(self._deduplicate(), key=Finding.sort_key)
        failures = sorted(self._failures, key=lambda f: (f.top, _loc_key(f.loc), f.category, f.message))
        by_rule = Counter(f.rule for f in findings)
        by_severity = Counter(f.severity.value for f in findings)
        return Report(
            findings=tuple(findings),
            failures=tuple(failures),
            counts_by_rule=dict(sorted(by_rule.items())),
            counts_by_severity=dict(sorted(by_severity.items())),
        )

    def _deduplicate(self) -> List[Finding]:
        groups: Dict[tuple, List[Finding]] = {}
        for finding in self._findings:
            groups.setdefault(finding.dedup_key(), []).append(finding)
        merged: List[Finding] = []
        for members in groups.values():
            first = min(members, key=Finding.sort_key)
            paths = sorted({m.path for m in members}, key=_path_key)
            merged.append(replace(first, occurrences=tuple(paths)))
        return merged
