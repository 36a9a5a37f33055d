"""Boolean tag expressions.

Grammar, loosest binding first::

    expr    := and_expr (("||" | "or") and_expr)*
    and_expr:= unary (("&&" | "and") unary)*
    unary   := ("!" | "not") unary | primary
    primary := TAG | "(" expr ")"

Keywords are case-insensitive. A tag containing spaces or operator
characters can be quoted with ``'`` or ``"``; a backslash escapes the
next character inside quotes. Tags are normalized the same way the tag
index normalizes them.

Examples:
    >>> expr = parse_tag_expression("guide && !draft")
    >>> expr.matches({"guide"})
    True
    >>> expr.matches({"guide", "draft"})
    False
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .errors import KegError
from .tags import normalize_tag, normalize_tags

__all__ = ["And", "Not", "Or", "Tag", "TagExpr", "parse_tag_expression"]

Resolver = Callable[[str], Iterable[str]]

_OPERATORS = {"&&": "and", "||": "or", "!": "not", "(": "(", ")": ")"}
_KEYWORDS = {"and", "or", "not"}
_WORD_STOP = set("()!&|'\"")


# ─────────────────────────────────────────────────────────────────────────────
# Expression tree
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Tag:
    name: str

    def evaluate(self, universe: frozenset[str], resolve: Resolver) -> set[str]:
        return set(resolve(self.name)) & universe

    def test(self, tags: set[str]) -> bool:
        return self.name in tags

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Not:
    operand: Tag | Not | And | Or

    def evaluate(self, universe: frozenset[str], resolve: Resolver) -> set[str]:
        return set(universe) - self.operand.evaluate(universe, resolve)

    def test(self, tags: set[str]) -> bool:
        return not self.operand.test(tags)

    def __str__(self) -> str:
        return f"!{self.operand}"


@dataclass(frozen=True)
class And:
    left: Tag | Not | And | Or
    right: Tag | Not | And | Or

    def evaluate(self, universe: frozenset[str], resolve: Resolver) -> set[str]:
        return self.left.evaluate(universe, resolve) & self.right.evaluate(universe, resolve)

    def test(self, tags: set[str]) -> bool:
        return self.left.test(tags) and self.right.test(tags)

    def __str__(self) -> str:
        return f"({self.left} && {self.right})"


@dataclass(frozen=True)
class Or:
    left: Tag | Not | And | Or
    right: Tag | Not | And | Or

    def evaluate(self, universe: frozenset[str], resolve: Resolver) -> set[str]:
        return self.left.evaluate(universe, resolve) | self.right.evaluate(universe, resolve)

    def test(self, tags: set[str]) -> bool:
        return self.left.test(tags) or self.right.test(tags)

    def __str__(self) -> str:
        return f"({self.left} || {self.right})"


@dataclass(frozen=True)
class TagExpr:
    """A parsed expression plus the text it came from."""

    source: str
    root: Tag | Not | And | Or

    def evaluate(self, universe: Iterable[str], resolve: Resolver) -> set[str]:
        """Members of ``universe`` selected by the expression.

        Args:
            universe: Every candidate key (usually node paths); negation
                is taken relative to it.
            resolve: Maps a normalized tag to the keys carrying it.
        """
        return self.root.evaluate(frozenset(universe), resolve)

    def matches(self, tags: Iterable[str]) -> bool:
        """Whether a single tag set satisfies the expression."""
        return self.root.test(set(normalize_tags(tags)))

    def __str__(self) -> str:
        return self.source


# ─────────────────────────────────────────────────────────────────────────────
# Tokenizer
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class _Token:
    kind: str  # "tag", "and", "or", "not", "(", ")"
    value: str
    pos: int  # 1-based


def _invalid(raw: str, message: str, pos: int | None = None) -> KegError:
    details = {"expression": raw}
    if pos is not None:
        details["position"] = pos
    return KegError.invalid(f"invalid tag expression: {message}", **details)


def _tokenize(raw: str) -> list[_Token]:
    tokens: list[_Token] = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch.isspace():
            i += 1
            continue

        two = raw[i : i + 2]
        if two in ("&&", "||"):
            tokens.append(_Token(_OPERATORS[two], two, i + 1))
            i += 2
            continue
        if ch in "!()":
            tokens.append(_Token(_OPERATORS[ch], ch, i + 1))
            i += 1
            continue
        if ch in "&|":
            raise _invalid(raw, f"unexpected token {ch!r} at position {i + 1}", i + 1)

        if ch in "'\"":
            start = i
            i += 1
            chars: list[str] = []
            while i < n and raw[i] != ch:
                if raw[i] == "\\" and i + 1 < n:
                    i += 1
                chars.append(raw[i])
                i += 1
            if i >= n:
                raise _invalid(raw, f"unterminated quoted tag at position {start + 1}", start + 1)
            i += 1
            tokens.append(_Token("tag", "".join(chars), start + 1))
            continue

        start = i
        while i < n and not raw[i].isspace() and raw[i] not in _WORD_STOP:
            i += 1
        word = raw[start:i]
        kind = word.lower() if word.lower() in _KEYWORDS else "tag"
        tokens.append(_Token(kind, word, start + 1))
    return tokens


# ─────────────────────────────────────────────────────────────────────────────
# Parser
# ─────────────────────────────────────────────────────────────────────────────


class _Parser:
    def __init__(self, raw: str, tokens: list[_Token]) -> None:
        self.raw = raw
        self.tokens = tokens
        self.pos = 0

    def peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def take(self, kind: str) -> bool:
        token = self.peek()
        if token is not None and token.kind == kind:
            self.pos += 1
            return True
        return False

    def parse(self) -> Tag | Not | And | Or:
        node = self.parse_or()
        token = self.peek()
        if token is not None:
            raise _invalid(self.raw, f"unexpected token {token.value!r} at position {token.pos}", token.pos)
        return node

    def parse_or(self) -> Tag | Not | And | Or:
        node = self.parse_and()
        while self.take("or"):
            node = Or(node, self.parse_and())
        return node

    def parse_and(self) -> Tag | Not | And | Or:
        node = self.parse_unary()
        while self.take("and"):
            node = And(node, self.parse_unary())
        return node

    def parse_unary(self) -> Tag | Not | And | Or:
        if self.take("not"):
            return Not(self.parse_unary())
        return self.parse_primary()

    def parse_primary(self) -> Tag | Not | And | Or:
        token = self.peek()
        if token is None:
            raise _invalid(self.raw, "unexpected end of expression")
        if token.kind == "(":
            self.pos += 1
            node = self.parse_or()
            if not self.take(")"):
                raise _invalid(self.raw, "expected ')' before end of expression")
            return node
        if token.kind == "tag":
            self.pos += 1
            name = normalize_tag(token.value)
            if not name:
                raise _invalid(self.raw, f"empty tag at position {token.pos}", token.pos)
            return Tag(name)
        raise _invalid(self.raw, f"unexpected token {token.value!r} at position {token.pos}", token.pos)


def parse_tag_expression(raw: str) -> TagExpr:
    """Parse a boolean tag expression.

    Raises:
        KegError: INVALID, with ``expression`` and (where known)
            ``position`` details, for an empty or malformed expression.
    """
    tokens = _tokenize(raw)
    if not tokens:
        raise _invalid(raw, "expression is empty")
    return TagExpr(raw.strip(), _Parser(raw, tokens).parse())
