"""Exception hierarchy for the hdlcheck library.

Two families matter to callers.  :class:`ElaborationError` and its
subclasses are fatal for the top unit being elaborated; the analyzer
catches them per top unit and reports them as failures, separately from
rule findings.  :class:`FrontEndError` and :class:`ConfigurationError`
signal bad input to the tool as a whole and are surfaced by the CLI.
"""

from __future__ import annotations

from typing import Optional, Sequence

from .model import SourceLocation


class HdlCheckError(Exception):
    """Base class for all exceptions raised by hdlcheck."""

    def __init__(self, message: str, loc: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.loc = loc

    def __str__(self) -> str:
        if self.loc is not None:
            return f"{self.message} ({self.loc})"
        return self.message


# --- Elaboration ---
class ElaborationError(HdlCheckError):
    """Base class for errors that abort elaboration of a top unit."""

    #: Short category name used in reports.
    category = "ELABORATION_ERROR"


class UnknownUnitError(ElaborationError):
    """Raised when an instantiation names a design unit that does not exist."""

    category = "UNKNOWN_UNIT"


class UnresolvedReferenceError(ElaborationError):
    """Raised when a name cannot be resolved in its enclosing scope.

    This covers signal references in process bodies and port maps that
    name neither a port nor a signal, generic map entries naming an
    undeclared generic, and free names in generic or width expressions.
    """

    category = "UNRESOLVED_REFERENCE"


class UnresolvedGenericError(UnresolvedReferenceError):
    """Raised when a generic has neither an override nor a default value,
    or when generic defaults depend on each other cyclically."""

    category = "UNRESOLVED_GENERIC"


class NonIntegerBoundError(ElaborationError):
    """Raised when a generate bound or a width is not an integer after
    generic substitution."""

    category = "NON_INTEGER_BOUND"


class GenericValueError(ElaborationError):
    """Raised when a resolved generic value violates its declared type."""

    category = "GENERIC_VALUE"


class InstantiationCycleError(ElaborationError):
    """Raised when a unit instantiates itself, directly or transitively."""

    category = "INSTANTIATION_CYCLE"

    def __init__(self, cycle: Sequence[str], loc: Optional[SourceLocation] = None) -> None:
        self.cycle = tuple(cycle)
        super().__init__("instantiation cycle: " + " -> ".join(self.cycle), loc)


# --- Input ---
class FrontEndError(HdlCheckError):
    """Raised when a design description cannot be converted to a model."""


class ConfigurationError(HdlCheckError):
    """Raised for invalid configuration values or CLI arguments."""
