"""JSON design descriptions and the expression syntax used inside them.

The :class:`DesignParser` class reads a language-neutral JSON description
of a design and builds the :mod:`hdlcheck.model` objects from it.  It does
not try to be a front end for a full hardware description language; it is
the simplest way to hand the analyzer an AST, and it is what the test
suite and the ``json`` strategy use.

Example description::

    {
      "units": [
        {"name": "mux", "ports": [
          {"name": "a", "direction": "in"},
          {"name": "sel", "direction": "in"},
          {"name": "y", "direction": "out"}]}
      ],
      "architectures": [
        {"name": "rtl", "entity": "mux", "statements": [
          {"kind": "process", "label": "p", "sensitivity": ["a", "sel"],
           "line": 12,
           "body": [
             {"kind": "if", "branches": [
               {"condition": "sel = '1'", "body": [
                 {"kind": "assign", "target": "y", "value": "a"}]}]}]}]}
      ]
    }

Statement objects are tagged by ``kind`` (``process``, ``instance``,
``generate_for``, ``assign``, ``if``, ``case``, ``null``).  Any object may
carry a ``line`` which becomes its source location.  Expressions are
strings in a small VHDL-flavoured syntax parsed by
:class:`ExpressionParser`; plain JSON numbers and booleans are accepted
wherever a constant is expected.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import FrontEndError
from .model import (
    Architecture,
    Assignment,
    Attribute,
    BinaryOp,
    Branch,
    Call,
    Case,
    CaseAlternative,
    Const,
    Constant,
    Design,
    DesignUnit,
    Direction,
    Expr,
    Generic,
    GenerateFor,
    If,
    Index,
    Instantiation,
    Null,
    Port,
    Process,
    Ref,
    Signal,
    SourceLocation,
    Statement,
    UnaryOp,
)

# Names parsed as function calls rather than indexed signals
KNOWN_FUNCTIONS = frozenset(
    {
        "rising_edge",
        "falling_edge",
        "clog2",
        "log2",
        "min",
        "max",
        "resize",
        "unsigned",
        "signed",
        "std_logic_vector",
        "to_integer",
        "to_unsigned",
        "to_signed",
        "conv_integer",
    }
)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<number>\d[\d_]*)
  | (?P<string>"[^"]*")
  | (?P<char>'.')
  | (?P<name>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op>\*\*|/=|<=|>=|=>|[=<>+\-*/&(),\[\]|'])
    """,
    re.VERBOSE,
)

_LOGICAL = {"and", "or", "xor", "nand", "nor", "xnor"}
_RELATIONAL = {"=", "/=", "<", "<=", ">", ">="}
_ADDING = {"+", "-", "&"}
_MULTIPLYING = {"*", "/", "mod", "rem"}


class ExpressionParser:
    """Recursive-descent parser for expression strings.

    Precedence, loosest first: logical operators, relational operators,
    adding operators (``+ - &``), multiplying operators
    (``* / mod rem``), unary operators (``not - + abs``), ``**``.
    """

    def __init__(self, text: str, loc: Optional[SourceLocation] = None,
                 functions: Iterable[str] = KNOWN_FUNCTIONS) -> None:
        self.text = text
        self.loc = loc
        self.functions = frozenset(f.lower() for f in functions)
        self.tokens = self._tokenize(text)
        self.pos = 0

    # ------------------------------------------------------------------
    # Tokens

    def _tokenize(self, text: str) -> List[Tuple[str, str]]:
        tokens: List[Tuple[str, str]] = []
        i = 0
        while i < len(text):
            m = _TOKEN_RE.match(text, i)
            if not m:
                raise self._error(f"unexpected character {text[i]!r}")
            kind = m.lastgroup
            value = m.group(kind)
            if kind == "char" and tokens and (tokens[-1][0] == "name" or tokens[-1][1] == ")"):
                # clk'event: the quote is an attribute tick, not a literal
                tokens.append(("op", "'"))
                i += 1
                continue
            if kind != "ws":
                tokens.append((kind, value))
            i = m.end()
        return tokens

    def _peek(self) -> Tuple[str, str]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return ("eof", "")

    def _next(self) -> Tuple[str, str]:
        token = self._peek()
        self.pos += 1
        return token

    def _accept(self, *values: str) -> Optional[str]:
        kind, value = self._peek()
        if kind in ("op", "name") and value.lower() in values:
            self.pos += 1
            return value.lower()
        return None

    def _expect(self, value: str) -> None:
        if self._accept(value) is None:
            raise self._error(f"expected '{value}' but found '{self._peek()[1] or 'end of input'}'")

    def _error(self, message: str) -> FrontEndError:
        return FrontEndError(f"{message} in expression '{self.text}'", self.loc)

    # ------------------------------------------------------------------
    # Grammar

    def parse(self) -> Expr:
        if not self.tokens:
            raise self._error("empty expression")
        expr = self._logical()
        if self._peek()[0] != "eof":
            raise self._error(f"unexpected '{self._peek()[1]}'")
        return expr

    def _binary_level(self, ops, operand: Callable[[], Expr]) -> Expr:
        left = operand()
        while True:
            op = self._accept(*ops)
            if op is None:
                return left
            left = BinaryOp(op, left, operand(), loc=self.loc)

    def _logical(self) -> Expr:
        return self._binary_level(_LOGICAL, self._relational)

    def _relational(self) -> Expr:
        return self._binary_level(_RELATIONAL, self._adding)

    def _adding(self) -> Expr:
        return self._binary_level(_ADDING, self._multiplying)

    def _multiplying(self) -> Expr:
        return self._binary_level(_MULTIPLYING, self._unary)

    def _unary(self) -> Expr:
        op = self._accept("not", "-", "+", "abs")
        if op is not None:
            return UnaryOp(op, self._unary(), loc=self.loc)
        return self._power()

    def _power(self) -> Expr:
        base = self._primary()
        if self._accept("**") is not None:
            return BinaryOp("**", base, self._unary(), loc=self.loc)
        return base

    def _primary(self) -> Expr:
        kind, value = self._next()
        if kind == "number":
            return Const(int(value.replace("_", "")), loc=self.loc)
        if kind == "char":
            return Const(value[1], loc=self.loc)
        if kind == "string":
            return Const(value[1:-1], loc=self.loc)
        if kind == "op" and value == "(":
            expr = self._logical()
            self._expect(")")
            return expr
        if kind == "name":
            lowered = value.lower()
            if lowered in ("true", "false"):
                return Const(lowered == "true", loc=self.loc)
            return self._name_suffixes(value)
        raise self._error(f"unexpected '{value or 'end of input'}'")

    def _name_suffixes(self, name: str) -> Expr:
        if self._accept("(") is not None:
            args = [self._logical()]
            while self._accept(",") is not None:
                args.append(self._logical())
            self._expect(")")
            if name.lower() in self.functions or len(args) > 1:
                expr: Expr = Call(name, tuple(args), loc=self.loc)
            else:
                expr = Index(Ref(name, loc=self.loc), args[0], loc=self.loc)
        else:
            expr = Ref(name, loc=self.loc)
        while True:
            if self._accept("[") is not None:
                index = self._logical()
                self._expect("]")
                expr = Index(expr, index, loc=self.loc)
            elif self._accept("'") is not None:
                kind, attr = self._next()
                if kind != "name":
                    raise self._error("expected an attribute name after '")
                expr = Attribute(expr, attr.lower(), loc=self.loc)
            else:
                return expr

def parse_expression(text: str, loc: Optional[SourceLocation] = None,
                     functions: Iterable[str] = KNOWN_FUNCTIONS) -> Expr:
    """Parse one expression string."""
    return ExpressionParser(text, loc, functions).parse()


class DesignParser:
    """Build a :class:`Design` from a JSON description."""

    def __init__(self) -> None:
        self._file = "<string>"
        self._functions = KNOWN_FUNCTIONS
        self._statements: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "process": self._process,
            "instance": self._instance,
            "generate_for": self._generate_for,
            "assign": self._assign,
            "if": self._if,
            "case": self._case,
            "null": lambda obj: Null(loc=self._loc(obj)),
        }

    def parse_file(self, path: str) -> Design:
        """Parse a JSON design description file.

        Raises:
            FrontEndError: If the file is not valid JSON or does not
                describe a design.
        """
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
        return self.parse_text(text, path)

    def parse_text(self, text: str, filename: str = "<string>") -> Design:
        self._file = filename
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise FrontEndError(f"invalid JSON: {exc.msg}", SourceLocation(filename, exc.lineno, exc.colno)) from exc
        return self.parse_data(data, filename)

    def parse_data(self, data: Dict[str, Any], filename: str = "<data>") -> Design:
        self._file = filename
        if not isinstance(data, dict):
            raise FrontEndError("design description must be a JSON object", SourceLocation(filename, 1))
        self._functions = KNOWN_FUNCTIONS | frozenset(f.lower() for f in data.get("functions", ()))
        units = tuple(self._unit(u) for u in self._list(data, "units"))
        architectures = tuple(self._architecture(a) for a in self._list(data, "architectures"))
        return Design(units, architectures)

    # ------------------------------------------------------------------
    # Helpers

    def _loc(self, obj: Dict[str, Any]) -> Optional[SourceLocation]:
        line = obj.get("line") if isinstance(obj, dict) else None
        if isinstance(line, int):
            return SourceLocation(self._file, line, obj.get("column", 0))
        return None

    def _list(self, obj: Dict[str, Any], key: str) -> List[Any]:
        value = obj.get(key, [])
        if not isinstance(value, list):
            raise FrontEndError(f"'{key}' must be a list", self._loc(obj))
        return value

    def _require(self, obj: Any, key: str) -> Any:
        if not isinstance(obj, dict):
            raise FrontEndError(f"expected an object with '{key}', got {obj!r}")
        if key not in obj:
            raise FrontEndError(f"missing '{key}' in {_describe(obj)}", self._loc(obj))
        return obj[key]

    def _expr(self, value: Any, loc: Optional[SourceLocation]) -> Expr:
        if isinstance(value, bool) or isinstance(value, int):
            return Const(value, loc=loc)
        if isinstance(value, str):
            return parse_expression(value, loc, self._functions)
        raise FrontEndError(f"expected an expression, got {value!r}", loc)

    def _body(self, obj: Dict[str, Any], key: str) -> Tuple[Statement, ...]:
        return tuple(self._statement(s) for s in self._list(obj, key))

    def _optional_body(self, obj: Dict[str, Any], key: str) -> Optional[Tuple[Statement, ...]]:
        if obj.get(key) is None:
            return None
        return self._body(obj, key)

    def _statement(self, obj: Dict[str, Any]) -> Any:
        kind = self._require(obj, "kind")
        handler = self._statements.get(kind)
        if handler is None:
            raise FrontEndError(f"unknown statement kind '{kind}'", self._loc(obj))
        return handler(obj)

    # ------------------------------------------------------------------
    # Declarations

    def _unit(self, obj: Dict[str, Any]) -> DesignUnit:
        generics = []
        for g in self._list(obj, "generics"):
            loc = self._loc(g)
            default = g.get("default")
            generics.append(
                Generic(
                    name=self._require(g, "name"),
                    type=g.get("type", "integer"),
                    default=None if default is None else self._expr(default, loc),
                    loc=loc,
                )
            )
        ports = []
        for p in self._list(obj, "ports"):
            loc = self._loc(p)
            direction = p.get("direction", "in")
            try:
                port_dir = Direction(direction)
            except ValueError:
                raise FrontEndError(f"invalid port direction '{direction}'", loc) from None
            if port_dir is Direction.INTERNAL:
                raise FrontEndError("ports cannot be internal", loc)
            ports.append(Port(self._require(p, "name"), port_dir, self._expr(p.get("width", 1), loc), loc=loc))
        return DesignUnit(self._require(obj, "name"), tuple(generics), tuple(ports), loc=self._loc(obj))

    def _architecture(self, obj: Dict[str, Any]) -> Architecture:
        signals = tuple(
            Signal(self._require(s, "name"), self._expr(s.get("width", 1), self._loc(s)), loc=self._loc(s))
            for s in self._list(obj, "signals")
        )
        constants = tuple(
            Constant(self._require(c, "name"), self._expr(self._require(c, "value"), self._loc(c)), loc=self._loc(c))
            for c in self._list(obj, "constants")
        )
        return Architecture(
            name=obj.get("name", "rtl"),
            entity=self._require(obj, "entity"),
            signals=signals,
            constants=constants,
            statements=self._body(obj, "statements"),
            loc=self._loc(obj),
        )

    # ------------------------------------------------------------------
    # Statements

    def _process(self, obj: Dict[str, Any]) -> Process:
        sensitivity = obj.get("sensitivity", [])
        if not isinstance(sensitivity, list) or not all(isinstance(s, str) for s in sensitivity):
            raise FrontEndError("sensitivity must be a list of signal names", self._loc(obj))
        return Process(tuple(sensitivity), self._body(obj, "body"), label=obj.get("label"), loc=self._loc(obj))

    def _instance(self, obj: Dict[str, Any]) -> Instantiation:
        loc = self._loc(obj)
        generic_map = tuple((k, self._expr(v, loc)) for k, v in obj.get("generic_map", {}).items())
        port_map = tuple((k, self._expr(v, loc)) for k, v in obj.get("port_map", {}).items())
        return Instantiation(
            label=self._require(obj, "label"),
            unit=self._require(obj, "unit"),
            generic_map=generic_map,
            port_map=port_map,
            architecture=obj.get("architecture"),
            loc=loc,
        )

    def _generate_for(self, obj: Dict[str, Any]) -> GenerateFor:
        loc = self._loc(obj)
        return GenerateFor(
            label=self._require(obj, "label"),
            variable=self._require(obj, "variable"),
            low=self._expr(self._require(obj, "low"), loc),
            high=self._expr(self._require(obj, "high"), loc),
            body=self._body(obj, "body"),
            loc=loc,
        )

    def _assign(self, obj: Dict[str, Any]) -> Assignment:
        loc = self._loc(obj)
        return Assignment(
            self._expr(self._require(obj, "target"), loc),
            self._expr(self._require(obj, "value"), loc),
            loc=loc,
        )

    def _if(self, obj: Dict[str, Any]) -> If:
        loc = self._loc(obj)
        branches = tuple(
            Branch(self._expr(self._require(b, "condition"), self._loc(b) or loc), self._body(b, "body"))
            for b in self._list(obj, "branches")
        )
        if not branches:
            raise FrontEndError("'if' needs at least one branch", loc)
        return If(branches, self._optional_body(obj, "else"), loc=loc)

    def _case(self, obj: Dict[str, Any]) -> Case:
        loc = self._loc(obj)
        alternatives = tuple(
            CaseAlternative(
                tuple(self._expr(c, self._loc(a) or loc) for c in self._list(a, "choices")),
                self._body(a, "body"),
            )
            for a in self._list(obj, "alternatives")
        )
        return Case(self._expr(self._require(obj, "selector"), loc), alternatives, self._optional_body(obj, "others"), loc=loc)


def _describe(obj: Dict[str, Any]) -> str:
    for key in ("kind", "name", "label"):
        if key in obj:
            return f"{key} '{obj[key]}'"
    return "object"
