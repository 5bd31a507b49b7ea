"""Analysis configuration.

:class:`AnalysisConfig` gathers the knobs the analyzer honours: which
rules run, the severity each rule reports at, how many top units are
analysed concurrently and generic overrides for the top units.  It is an
immutable value; :meth:`AnalysisConfig.build` creates one from the
textual forms the CLI accepts (``RULE=level``, ``NAME=VALUE``) and
validates them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from .diagnostics import (
    CLOCKED_PROCESS_IMPURE,
    LATCH_INFERRED,
    REGISTER_DUAL_DRIVEN,
    RULES,
    SENSITIVITY_INCOMPLETE,
    Severity,
)
from .errors import ConfigurationError, HdlCheckError
from .expr import evaluate
from .model import ConstValue
from .parser import parse_expression

DEFAULT_SEVERITIES: Dict[str, Severity] = {
    SENSITIVITY_INCOMPLETE: Severity.ERROR,
    LATCH_INFERRED: Severity.ERROR,
    CLOCKED_PROCESS_IMPURE: Severity.WARNING,
    REGISTER_DUAL_DRIVEN: Severity.ERROR,
}


def _check_rule(rule: str) -> str:
    rule = rule.strip().upper()
    if rule not in RULES:
        raise ConfigurationError(f"unknown rule '{rule}' (expected one of: {', '.join(RULES)})")
    return rule


def _split_assignment(text: str, what: str) -> Tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip() or not value.strip():
        raise ConfigurationError(f"invalid {what} '{text}', expected NAME=VALUE")
    return name.strip(), value.strip()


def parse_generic_value(text: str) -> ConstValue:
    """Parse a generic value given on the command line (``8``, ``2**4``,
    ``true``, ``'1'``)."""
    try:
        return evaluate(parse_expression(text), {})
    except HdlCheckError as exc:
        raise ConfigurationError(f"invalid generic value '{text}': {exc.message}") from exc


@dataclass(frozen=True)
class AnalysisConfig:
    disabled_rules: FrozenSet[str] = frozenset()
    severities: Tuple[Tuple[str, Severity], ...] = ()
    jobs: int = 1
    generic_overrides: Tuple[Tuple[str, ConstValue], ...] = ()

    def __post_init__(self) -> None:
        if self.jobs < 1:
            raise ConfigurationError(f"jobs must be at least 1, got {self.jobs}")

    def enabled(self, rule: str) -> bool:
        return rule not in self.disabled_rules

    def severity(self, rule: str) -> Severity:
        for name, severity in self.severities:
            if name == rule:
                return severity
        return DEFAULT_SEVERITIES[rule]

    @property
    def overrides(self) -> Dict[str, ConstValue]:
        return dict(self.generic_overrides)

    @classmethod
    def build(
        cls,
        disable: Optional[Iterable[str]] = None,
        severity: Optional[Iterable[str]] = None,
        jobs: int = 1,
        generics: Optional[Iterable[str]] = None,
    ) -> "AnalysisConfig":
        """Build a configuration from CLI-style strings.

        Args:
            disable: Rule ids to switch off.
            severity: ``RULE=level`` overrides.
            jobs: Number of top units analysed concurrently.
            generics: ``NAME=VALUE`` overrides for top-unit generics.

        Raises:
            ConfigurationError: On unknown rules, severities or malformed
                assignments.
        """
        disabled = frozenset(_check_rule(r) for r in disable or ())
        severities = []
        for item in severity or ():
            rule, level = _split_assignment(item, "severity override")
            severities.append((_check_rule(rule), Severity.parse(level)))
        overrides = []
        for item in generics or ():
            name, value = _split_assignment(item, "generic override")
            overrides.append((name, parse_generic_value(value)))
        return cls(
            disabled_rules=disabled,
            severities=tuple(severities),
            jobs=jobs,
            generic_overrides=tuple(overrides),
        )
