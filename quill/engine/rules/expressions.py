"""Rule value expressions.

Rule values and gate tests are written in a small expression language that
reads like the arithmetic found in content tables:

    Math.floor((source + 7) / 4)
    source >= 19 ? 5 : Math.floor(source / 4)
    alignment == 'Lawful Good' && dict["features.Holy Aura"]
    abilityGeneration =~ '10s.*standard'
    capture(source, '(?im)^\\*.*([-+]\\d+) AC', 1)

Expressions are parsed once, when a rule is registered, into a tree of
`Expr` nodes. Evaluation never raises for ordinary data: absent attributes
are None, None counts as 0 in arithmetic, and division by zero produces None.
"""
from __future__ import annotations

import functools
import logging
import math
import re
from abc import ABC
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Literal as TypingLiteral
from typing import TypeAlias

import pydantic

from ..utils import as_number
from ..utils import is_number

Value: TypeAlias = int | float | str | None


class ExpressionError(ValueError):
    """Raised when an expression string can't be parsed."""

    def __init__(self, message: str, text: str, position: int | None = None):
        self.text = text
        self.position = position
        if position is not None:
            message = f"{message} at position {position} in {text!r}"
        else:
            message = f"{message} in {text!r}"
        super().__init__(message)


@dataclass
class Scope:
    """What an expression can see while it's being evaluated.

    Attributes:
        source: Value of the rule's source attribute.
        lookup: Returns the current value of any attribute by name.
    """

    source: Value
    lookup: Callable[[str], Value]


class Expr(pydantic.BaseModel, ABC):
    model_config = pydantic.ConfigDict(frozen=True, extra="forbid")

    @abstractmethod
    def evaluate(self, scope: Scope) -> Value:
        ...

    def identifiers(self) -> set[str]:
        """Attribute names this expression reads."""
        return set()

    @property
    def uses_source(self) -> bool:
        return False


class Literal(Expr):
    value: bool | int | float | str | None = None

    def evaluate(self, scope: Scope) -> Value:
        return self.value

    def __str__(self) -> str:
        if isinstance(self.value, str):
            return repr(self.value)
        return "null" if self.value is None else str(self.value)


class Source(Expr):
    def evaluate(self, scope: Scope) -> Value:
        return scope.source

    @property
    def uses_source(self) -> bool:
        return True

    def __str__(self) -> str:
        return "source"


class AttrRef(Expr):
    name: str

    def evaluate(self, scope: Scope) -> Value:
        return scope.lookup(self.name)

    def identifiers(self) -> set[str]:
        return {self.name}

    def __str__(self) -> str:
        return f"dict[{self.name!r}]"


class Unary(Expr):
    op: TypingLiteral["-", "+", "!"]
    operand: Expr

    def evaluate(self, scope: Scope) -> Value:
        value = self.operand.evaluate(scope)
        if self.op == "!":
            return not truthy(value)
        number = as_number(value)
        if number is None:
            return None
        return -number if self.op == "-" else number

    def identifiers(self) -> set[str]:
        return self.operand.identifiers()

    @property
    def uses_source(self) -> bool:
        return self.operand.uses_source

    def __str__(self) -> str:
        return f"{self.op}{self.operand}"


class Binary(Expr):
    op: str
    left: Expr
    right: Expr

    def evaluate(self, scope: Scope) -> Value:
        # Logical operators short-circuit and yield an operand, not a bool.
        if self.op == "||":
            left = self.left.evaluate(scope)
            return left if truthy(left) else self.right.evaluate(scope)
        if self.op == "&&":
            left = self.left.evaluate(scope)
            return self.right.evaluate(scope) if truthy(left) else left
        left = self.left.evaluate(scope)
        right = self.right.evaluate(scope)
        return _BINARY_OPS[self.op](left, right)

    def identifiers(self) -> set[str]:
        return self.left.identifiers() | self.right.identifiers()

    @property
    def uses_source(self) -> bool:
        return self.left.uses_source or self.right.uses_source

    def __str__(self) -> str:
        return f"({self.left} {self.op} {self.right})"


class Ternary(Expr):
    test: Expr
    then: Expr
    otherwise: Expr

    def evaluate(self, scope: Scope) -> Value:
        if truthy(self.test.evaluate(scope)):
            return self.then.evaluate(scope)
        return self.otherwise.evaluate(scope)

    def identifiers(self) -> set[str]:
        return (
            self.test.identifiers()
            | self.then.identifiers()
            | self.otherwise.identifiers()
        )

    @property
    def uses_source(self) -> bool:
        return any(e.uses_source for e in (self.test, self.then, self.otherwise))

    def __str__(self) -> str:
        return f"({self.test} ? {self.then} : {self.otherwise})"


class Call(Expr):
    func: str
    args: tuple[Expr, ...]

    def evaluate(self, scope: Scope) -> Value:
        if self.func in _TEXT_FUNCTIONS:
            return _TEXT_FUNCTIONS[self.func](*(a.evaluate(scope) for a in self.args))
        values = [as_number(a.evaluate(scope)) for a in self.args]
        if any(v is None for v in values):
            return None
        return _FUNCTIONS[self.func](*values)

    def identifiers(self) -> set[str]:
        ids: set[str] = set()
        for arg in self.args:
            ids |= arg.identifiers()
        return ids

    @property
    def uses_source(self) -> bool:
        return any(a.uses_source for a in self.args)

    def __str__(self) -> str:
        prefix = "" if self.func in _TEXT_FUNCTIONS else "Math."
        return f"{prefix}{self.func}({', '.join(str(a) for a in self.args)})"


def truthy(value: Value) -> bool:
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def _normalize(value: int | float) -> int | float | None:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _add(left: Value, right: Value) -> Value:
    if isinstance(left, str) or isinstance(right, str):
        return f"{'' if left is None else left}{'' if right is None else right}"
    return _arith(lambda a, b: a + b)(left, right)


def _arith(fn: Callable[[Any, Any], Any]) -> Callable[[Value, Value], Value]:
    def apply(left: Value, right: Value) -> Value:
        a, b = as_number(left), as_number(right)
        if a is None or b is None:
            return None
        try:
            return _normalize(fn(a, b))
        except ZeroDivisionError:
            logging.debug("Division by zero in rule expression (%r, %r)", left, right)
            return None
        except OverflowError:
            logging.debug("Overflow in rule expression (%r, %r)", left, right)
            return None

    return apply


def _equals(left: Value, right: Value) -> bool:
    if is_number(left) or is_number(right):
        a, b = as_number(left), as_number(right)
        if a is not None and b is not None:
            return a == b
    return left == right


def _relational(fn: Callable[[Any, Any], bool]) -> Callable[[Value, Value], bool]:
    def apply(left: Value, right: Value) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            return fn(left, right)
        a, b = as_number(left), as_number(right)
        if a is None or b is None:
            return False
        return fn(a, b)

    return apply


@functools.lru_cache(maxsize=512)
def _regex(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern)
    except re.error:
        logging.debug("Bad regular expression %r in rule expression", pattern)
        return None


def _matches(left: Value, right: Value) -> bool:
    if left is None or right is None:
        return False
    if (regex := _regex(str(right))) is None:
        return False
    return regex.search(str(left)) is not None


_BINARY_OPS: dict[str, Callable[[Value, Value], Value]] = {
    "+": _add,
    "-": _arith(lambda a, b: a - b),
    "*": _arith(lambda a, b: a * b),
    "/": _arith(lambda a, b: a / b),
    "%": _arith(math.fmod),
    "==": _equals,
    "!=": lambda a, b: not _equals(a, b),
    "<": _relational(lambda a, b: a < b),
    "<=": _relational(lambda a, b: a <= b),
    ">": _relational(lambda a, b: a > b),
    ">=": _relational(lambda a, b: a >= b),
    "=~": _matches,
    "!~": lambda a, b: not _matches(a, b),
}

_FUNCTIONS: dict[str, Callable[..., Value]] = {
    "floor": lambda x: math.floor(x),
    "ceil": lambda x: math.ceil(x),
    "abs": lambda x: _normalize(abs(x)),
    "round": lambda x: math.floor(x + 0.5),
    "max": lambda *xs: _normalize(max(xs)) if xs else None,
    "min": lambda *xs: _normalize(min(xs)) if xs else None,
}


def _capture(text: Value, pattern: Value, group: Value = 1) -> Value:
    """Group `group` of the first match of `pattern` in `text`, or None."""
    if text is None or pattern is None:
        return None
    if (regex := _regex(str(pattern))) is None:
        return None
    match = regex.search(str(text))
    index = as_number(group)
    if not match or index is None or not 0 <= index <= regex.groups:
        return None
    return match.group(int(index))


# Functions that see raw values rather than numbers.
_TEXT_FUNCTIONS: dict[str, Callable[..., Value]] = {
    "capture": _capture,
}

_TOKEN = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>\d+(?:\.\d+)?|\.\d+)
    |(?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
    |(?P<ident>[A-Za-z_$][A-Za-z0-9_$]*(?:\.[A-Za-z0-9_$]+)*)
    |(?P<op>===|!==|==|!=|<=|>=|=~|!~|&&|\|\||[-+*/%<>!?:(),\[\]])
    """,
    re.VERBOSE,
)

_KEYWORDS: dict[str, Value] = {
    "null": None,
    "undefined": None,
    "None": None,
    "true": True,
    "false": False,
    "True": True,
    "False": False,
}


@dataclass
class _Token:
    kind: str
    text: str
    position: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    position = 0
    while position < len(text):
        match = _TOKEN.match(text, position)
        if not match:
            raise ExpressionError("Unexpected character", text, position)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), position))
        position = match.end()
    tokens.append(_Token("end", "", len(text)))
    return tokens


class _Parser:
    """Recursive-descent parser, lowest precedence first."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.index = 0

    @property
    def current(self) -> _Token:
        return self.tokens[self.index]

    def _accept(self, *ops: str) -> str | None:
        token = self.current
        if token.kind == "op" and token.text in ops:
            self.index += 1
            return token.text
        return None

    def _expect(self, op: str) -> None:
        if not self._accept(op):
            raise ExpressionError(
                f"Expected '{op}' but found '{self.current.text or 'end'}'",
                self.text,
                self.current.position,
            )

    def parse(self) -> Expr:
        expr = self._ternary()
        if self.current.kind != "end":
            raise ExpressionError(
                f"Unexpected '{self.current.text}'", self.text, self.current.position
            )
        return expr

    def _ternary(self) -> Expr:
        test = self._binary(0)
        if self._accept("?"):
            then = self._ternary()
            self._expect(":")
            otherwise = self._ternary()
            return Ternary(test=test, then=then, otherwise=otherwise)
        return test

    _LEVELS: tuple[tuple[str, ...], ...] = (
        ("||",),
        ("&&",),
        ("==", "!=", "===", "!=="),
        ("<", "<=", ">", ">=", "=~", "!~"),
        ("+", "-"),
        ("*", "/", "%"),
    )

    def _binary(self, level: int) -> Expr:
        if level == len(self._LEVELS):
            return self._unary()
        left = self._binary(level + 1)
        while op := self._accept(*self._LEVELS[level]):
            right = self._binary(level + 1)
            op = {"===": "==", "!==": "!="}.get(op, op)
            left = Binary(op=op, left=left, right=right)
        return left

    def _unary(self) -> Expr:
        if op := self._accept("-", "+", "!"):
            return Unary(op=op, operand=self._unary())
        return self._primary()

    def _primary(self) -> Expr:
        token = self.current
        if token.kind == "number":
            self.index += 1
            number = float(token.text)
            return Literal(value=int(number) if number.is_integer() else number)
        if token.kind == "string":
            self.index += 1
            return Literal(value=_unquote(token.text))
        if token.kind == "ident":
            self.index += 1
            return self._identifier(token)
        if self._accept("("):
            expr = self._ternary()
            self._expect(")")
            return expr
        raise ExpressionError(
            f"Unexpected '{token.text or 'end'}'", self.text, token.position
        )

    def _identifier(self, token: _Token) -> Expr:
        name = token.text
        if name in _KEYWORDS:
            return Literal(value=_KEYWORDS[name])
        if name == "source":
            return Source()
        if name == "dict":
            self._expect("[")
            key = self.current
            if key.kind != "string":
                raise ExpressionError(
                    "dict[] lookups need a quoted name", self.text, key.position
                )
            self.index += 1
            self._expect("]")
            return AttrRef(name=_unquote(key.text))
        if self._accept("("):
            func = name.removeprefix("Math.")
            if func not in _FUNCTIONS and name not in _TEXT_FUNCTIONS:
                raise ExpressionError(
                    f"Unknown function '{name}'", self.text, token.position
                )
            args: list[Expr] = []
            if not self._accept(")"):
                args.append(self._ternary())
                while self._accept(","):
                    args.append(self._ternary())
                self._expect(")")
            return Call(func=func, args=tuple(args))
        return AttrRef(name=name)


def _unquote(text: str) -> str:
    body = text[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


def quote(text: str) -> str:
    """Quotes `text` as a string literal for use inside an expression."""
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


@functools.lru_cache(maxsize=4096)
def parse(text: str) -> Expr:
    """Parses an expression string.

    Raises:
        ExpressionError: if the expression is malformed.
    """
    if not text or not text.strip():
        raise ExpressionError("Empty expression", text or "")
    return _Parser(text).parse()


def compile_value(value: Value) -> Expr | None:
    """Compiles a rule value into an expression.

    None passes the source value through, numbers and booleans are literals,
    and strings are parsed as expressions.
    """
    if value is None:
        return None
    if isinstance(value, bool) or is_number(value):
        return Literal(value=value)
    return parse(value)
