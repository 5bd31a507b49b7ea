"""Front-end strategies.

A strategy knows how to turn a list of source files into one
:class:`hdlcheck.model.Design`.  Two strategies are registered:

* ``json``: language-neutral JSON design descriptions, read by
  :class:`hdlcheck.parser.DesignParser`.
* ``sv``: SystemVerilog, parsed by :class:`hdlcheck.slang_backend.SlangBackend`.
  This strategy needs the ``pyslang`` package; callers must ensure it is
  installed or catch the :class:`ImportError` raised by
  :meth:`SlangBackend.load_design`.
"""

from __future__ import annotations

import logging
from typing import Iterable, List

from .errors import FrontEndError
from .model import Design
from .parser import DesignParser
from .registry import Registry
from .slang_backend import SlangBackend

logger = logging.getLogger(__name__)

# Registry for front-end strategies
strategy_registry = Registry("strategy")


class FrontEndStrategy:
    """Abstract base class for front-end strategies.

    Subclasses implement :meth:`load_design` to read source files and
    return the merged design.
    """

    suffixes: tuple = ()

    def load_design(self, files: List[str]) -> Design:  # pragma: no cover
        raise NotImplementedError


@strategy_registry.register("json")
class JsonStrategy(FrontEndStrategy):
    """Read JSON design descriptions; several files are merged in order."""

    suffixes = (".json",)

    def __init__(self) -> None:
        self.parser = DesignParser()

    def load_design(self, files: List[str]) -> Design:
        design = Design()
        for path in files:
            logger.debug("reading design description %s", path)
            design = design.merged(self.parser.parse_file(path))
        return design


@strategy_registry.register("sv")
class SystemVerilogStrategy(FrontEndStrategy):
    """Parse SystemVerilog with slang.

    Any syntax error reported by slang causes an immediate failure.
    """

    suffixes = (".sv", ".v", ".svh")

    def __init__(self, include_dirs: Iterable[str] | None = None, defines: Iterable[str] | None = None) -> None:
        self.backend = SlangBackend(include_dirs=list(include_dirs or []), defines=list(defines or []))

    def load_design(self, files: List[str]) -> Design:
        self.backend.load_design(files)
        if self.backend.had_errors():
            raise FrontEndError("slang reported syntax errors:\n" + "\n".join(self.backend.get_error_messages()))
        return self.backend.get_design()


def strategy_for(path: str) -> str:
    """Return the strategy key whose suffixes match ``path``.

    Files with an unknown suffix default to ``json``.
    """
    lowered = path.lower()
    for key, cls in strategy_registry.items():
        if lowered.endswith(cls.suffixes):
            return key
    return "json"
