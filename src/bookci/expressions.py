# expressions.py
"""
Evaluator for the `${{ ... }}` expression subset used by workflow files.

Supported:
  literals      'text' (quote doubled to escape), 12, 1.5, true, false, null
  lookups       github.ref, env.NAME, needs.tests.result, secrets.GITHUB_TOKEN
  operators     ! == != && || and parentheses
  functions     contains(a, b), startsWith(a, b), endsWith(a, b)

String comparison is case-insensitive, missing lookups evaluate to null, and
&&/|| return one of their operands, as on GitHub Actions.
"""
from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple


class ExpressionError(ValueError):
    pass


_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<string>'(?:[^']|'')*')
      | (?P<number>\d+(?:\.\d+)?)
      | (?P<op>==|!=|&&|\|\||!|\(|\)|,)
      | (?P<ident>[A-Za-z_][A-Za-z0-9_\-]*(?:\.[A-Za-z_][A-Za-z0-9_\-]*)*)
    )
    """,
    re.VERBOSE,
)

_WRAPPED_RE = re.compile(r"^\s*\$\{\{(.*)\}\}\s*$", re.DOTALL)
_INTERPOLATION_RE = re.compile(r"\$\{\{(.*?)\}\}", re.DOTALL)

Token = Tuple[str, Any]


def _tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if not m or m.end() == pos:
            raise ExpressionError(f"unexpected character at {pos}: {text[pos:pos + 10]!r}")
        pos = m.end()
        kind = m.lastgroup
        raw = m.group(kind)
        if kind == "string":
            tokens.append(("lit", raw[1:-1].replace("''", "'")))
        elif kind == "number":
            tokens.append(("lit", float(raw) if "." in raw else int(raw)))
        elif kind == "ident" and raw in ("true", "false", "null"):
            tokens.append(("lit", {"true": True, "false": False, "null": None}[raw]))
        else:
            tokens.append((kind, raw))
    return tokens


# ---------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------

def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _contains(haystack: Any, needle: Any) -> bool:
    if isinstance(haystack, (list, tuple)):
        return any(_equals(item, needle) for item in haystack)
    return _text(needle).lower() in _text(haystack).lower()


FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "contains": _contains,
    "startswith": lambda a, b: _text(a).lower().startswith(_text(b).lower()),
    "endswith": lambda a, b: _text(a).lower().endswith(_text(b).lower()),
}


def _equals(a: Any, b: Any) -> bool:
    if isinstance(a, str) and isinstance(b, str):
        return a.lower() == b.lower()
    return a == b


def truthy(value: Any) -> bool:
    return value not in (None, False, 0, "")


# ---------------------------------------------------------------------
# Parser (recursive descent, evaluates while parsing)
# ---------------------------------------------------------------------

class _Parser:
    def __init__(self, tokens: List[Token], context: Mapping[str, Any]):
        self.tokens = tokens
        self.pos = 0
        self.context = context

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self, kind: str, value: Any = None) -> bool:
        tok = self._peek()
        if tok and tok[0] == kind and (value is None or tok[1] == value):
            self.pos += 1
            return True
        return False

    def _expect(self, kind: str, value: Any) -> None:
        if not self._take(kind, value):
            tok = self._peek()
            got = tok[1] if tok else "end of expression"
            raise ExpressionError(f"expected {value!r}, got {got!r}")

    def parse(self) -> Any:
        if not self.tokens:
            raise ExpressionError("empty expression")
        value = self._or()
        if self._peek() is not None:
            raise ExpressionError(f"unexpected token {self._peek()[1]!r}")
        return value

    def _or(self) -> Any:
        left = self._and()
        while self._take("op", "||"):
            right = self._and()
            left = left if truthy(left) else right
        return left

    def _and(self) -> Any:
        left = self._unary()
        while self._take("op", "&&"):
            right = self._unary()
            left = right if truthy(left) else left
        return left

    def _unary(self) -> Any:
        if self._take("op", "!"):
            return not truthy(self._unary())
        return self._comparison()

    def _comparison(self) -> Any:
        left = self._primary()
        if self._take("op", "=="):
            return _equals(left, self._primary())
        if self._take("op", "!="):
            return not _equals(left, self._primary())
        return left

    def _primary(self) -> Any:
        tok = self._peek()
        if tok is None:
            raise ExpressionError("unexpected end of expression")
        kind, value = tok
        self.pos += 1
        if kind == "lit":
            return value
        if kind == "op" and value == "(":
            inner = self._or()
            self._expect("op", ")")
            return inner
        if kind == "ident":
            if self._take("op", "("):
                return self._call(value)
            return self._lookup(value)
        raise ExpressionError(f"unexpected token {value!r}")

    def _call(self, name: str) -> Any:
        fn = FUNCTIONS.get(name.lower())
        if fn is None:
            raise ExpressionError(f"unknown function {name}()")
        args: List[Any] = []
        if not self._take("op", ")"):
            args.append(self._or())
            while self._take("op", ","):
                args.append(self._or())
            self._expect("op", ")")
        if len(args) != 2:
            raise ExpressionError(f"{name}() takes 2 arguments, got {len(args)}")
        return fn(*args)

    def _lookup(self, path: str) -> Any:
        node: Any = self.context
        for part in path.split("."):
            if not isinstance(node, Mapping):
                return None
            node = node.get(part)
        return node


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def strip_wrapper(expr: str) -> str:
    """`${{ x }}` -> `x`; bare expressions pass through."""
    m = _WRAPPED_RE.match(expr)
    return m.group(1) if m else expr


def evaluate(expr: str, context: Mapping[str, Any]) -> Any:
    return _Parser(_tokenize(strip_wrapper(expr)), context).parse()


def evaluate_condition(expr: str, context: Mapping[str, Any]) -> bool:
    return truthy(evaluate(expr, context))


def interpolate(text: str, context: Mapping[str, Any]) -> str:
    """Replace every `${{ expr }}` in `text` with its string value."""
    if "${{" not in text:
        return text
    return _INTERPOLATION_RE.sub(lambda m: _text(evaluate(m.group(1), context)), text)


def interpolate_mapping(values: Mapping[str, str], context: Mapping[str, Any]) -> Dict[str, str]:
    return {k: interpolate(str(v), context) for k, v in values.items()}
