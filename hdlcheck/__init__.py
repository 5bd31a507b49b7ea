"""Static discipline checks for register-transfer-level hardware designs.

Key concepts:

* **Model classes** describe designs as front ends deliver them: units,
  architectures, processes and expressions.  See :mod:`hdlcheck.model`.
* **Elaborator** resolves generics, expands generate loops and builds the
  instance tree.  See :mod:`hdlcheck.elaborator`.
* **Flow extraction** summarises what each process reads and writes on
  every control-flow path.  See :mod:`hdlcheck.flow`.
* **Checkers** apply the discipline rules to the summaries of one
  instance.  See :mod:`hdlcheck.checkers`.
* **Reporter** merges, orders and counts findings.  See
  :mod:`hdlcheck.diagnostics`.
* **Strategy** loads source files with a front end (JSON descriptions or
  SystemVerilog via pyslang).  See :mod:`hdlcheck.strategy`.
* **Renderer** provides pluggable output formats (text, CSV, Markdown).
  See :mod:`hdlcheck.renderers`.
"""

from .model import Design, DesignUnit, Architecture, SourceLocation
from .errors import (
    HdlCheckError,
    ElaborationError,
    FrontEndError,
    ConfigurationError,
)
from .config import AnalysisConfig
from .diagnostics import Finding, ElaborationFailure, Report, Severity, RULES
from .elaborator import Elaborator
from .flow import extract_flow
from .analyzer import Analyzer, analyze, find_tops
from .parser import DesignParser, parse_expression
from .slang_backend import SlangBackend  # noqa: F401
from .registry import Registry
from .strategy import FrontEndStrategy, JsonStrategy, SystemVerilogStrategy, strategy_registry  # noqa: F401
from .renderers import ReportRenderer, renderer_registry

__all__ = [
    "Design",
    "DesignUnit",
    "Architecture",
    "SourceLocation",
    "HdlCheckError",
    "ElaborationError",
    "FrontEndError",
    "ConfigurationError",
    "AnalysisConfig",
    "Finding",
    "ElaborationFailure",
    "Report",
    "Severity",
    "RULES",
    "Elaborator",
    "extract_flow",
    "Analyzer",
    "analyze",
    "find_tops",
    "DesignParser",
    "parse_expression",
    "SlangBackend",
    "Registry",
    "FrontEndStrategy",
    "JsonStrategy",
    "SystemVerilogStrategy",
    "strategy_registry",
    "ReportRenderer",
    "renderer_registry",
]
