"""Query terms and the symbol classifier."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from factquery.errors import MalformedClauseShape


QUERY_SIGIL = "?"
WILDCARD_MARKER = "*"


@dataclass(frozen=True)
class Var:
    """Query variable such as ``?eid``."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.startswith(QUERY_SIGIL):
            raise MalformedClauseShape(f"Var name must start with '{QUERY_SIGIL}': {self.name!r}")

    @property
    def label(self) -> str:
        return self.name[len(QUERY_SIGIL):]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "var", "name": self.name}


@dataclass(frozen=True)
class WildcardVar:
    """Query variable marked as intentionally used once, such as ``?skip*``."""

    name: str

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.startswith(QUERY_SIGIL):
            raise MalformedClauseShape(f"Var name must start with '{QUERY_SIGIL}': {self.name!r}")
        if not self.name.endswith(WILDCARD_MARKER):
            raise MalformedClauseShape(
                f"WildcardVar name must end with '{WILDCARD_MARKER}': {self.name!r}"
            )

    @property
    def label(self) -> str:
        return self.name[len(QUERY_SIGIL):]

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "wildcard", "name": self.name}


@dataclass(frozen=True)
class Lit:
    """Literal value. Wrap a string in Lit to keep a leading '?' literal."""

    value: object

    def to_dict(self) -> dict[str, Any]:
        return {"kind": "lit", "value": self.value}


Term = Union[Lit, Var, WildcardVar]


def is_query_variable(token: object) -> bool:
    """Return True iff token is a symbol whose first character is '?'."""
    if isinstance(token, (Var, WildcardVar)):
        return True
    return isinstance(token, str) and token.startswith(QUERY_SIGIL)


def is_wildcard_variable(token: object) -> bool:
    """Return True iff token is a query variable ending in '*'."""
    if not is_query_variable(token):
        return False
    name = token.name if isinstance(token, (Var, WildcardVar)) else token
    return name.endswith(WILDCARD_MARKER)


def classify_term(token: object) -> Term:
    if isinstance(token, Lit):
        return token
    if is_query_variable(token):
        name = token.name if isinstance(token, (Var, WildcardVar)) else token
        if is_wildcard_variable(name):
            return WildcardVar(name)
        return Var(name)
    return Lit(token)


def term_token(term: object) -> object:
    """Convert a term back into the raw token handed to an engine.

    Literal strings that look like variables stay wrapped in Lit so the
    engine can tell them apart from real variables.
    """
    if isinstance(term, (Var, WildcardVar)):
        return term.name
    if isinstance(term, Lit):
        if is_query_variable(term.value):
            return term
        return term.value
    return term


def variable_label(token: object) -> str:
    """Strip the query sigil from a variable: ``?eid`` -> ``eid``."""
    term = classify_term(token)
    if isinstance(term, Lit):
        raise MalformedClauseShape(f"Only query variables can be labeled: {token!r}")
    return term.label


def flatten_tokens(items: object) -> list[object]:
    """Flatten nested lists/tuples into a flat token list, depth-first."""
    out: list[object] = []
    stack: list[object] = [items]
    while stack:
        item = stack.pop()
        if isinstance(item, (list, tuple)):
            stack.extend(reversed(item))
        else:
            out.append(item)
    return out
