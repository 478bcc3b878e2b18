"""Query context: the user-facing description of one query."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from factquery.errors import MalformedClauseShape


CONTEXT_KEYS = ("let", "yield", "where", "preds", "rules")
REQUIRED_CONTEXT_KEYS = ("let", "yield", "where")


@dataclass(frozen=True)
class QueryContext:
    """Structured query description.

    Attributes:
        let: Flat interleaved list ``[var, source, var, source, ...]``.
        yield_: Projection terms, plain variables or pull expressions.
        where: Clause maps, each naming its entity binding under ``db/id``.
        preds: Predicate expressions such as ``("<", 1960, "?year")``.
        rules: Rule invocations such as ``("region", "?c", "?r")``.
    """

    let: Sequence[Any] = field(default_factory=list)
    yield_: Sequence[Any] = field(default_factory=list)
    where: Sequence[Mapping[str, Any]] = field(default_factory=list)
    preds: Sequence[Any] = field(default_factory=list)
    rules: Sequence[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "let": self.let,
            "yield": self.yield_,
            "where": self.where,
            "preds": self.preds,
            "rules": self.rules,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "QueryContext":
        if not isinstance(data, Mapping):
            raise MalformedClauseShape("Query context must be a mapping.")
        missing = [key for key in REQUIRED_CONTEXT_KEYS if key not in data]
        if missing:
            raise MalformedClauseShape(f"Query context missing sections: {missing}")
        return QueryContext(
            let=data["let"],
            yield_=data["yield"],
            where=data["where"],
            preds=data.get("preds") or [],
            rules=data.get("rules") or [],
        )
