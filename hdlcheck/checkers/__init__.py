"""Rule checkers.

This package contains one module per discipline rule:
- sensitivity: sensitivity-list completeness
- latch: latch inference from incomplete assignment
- register: clocked-process purity and dual-driven registers

All checkers are automatically registered via decorators, in the order
they run.
"""

from .base import InstanceContext, RuleChecker, checker_registry
from .sensitivity import SensitivityChecker
from .latch import LatchChecker
from .register import RegisterChecker

__all__ = [
    "InstanceContext",
    "RuleChecker",
    "checker_registry",
    "SensitivityChecker",
    "LatchChecker",
    "RegisterChecker",
]
