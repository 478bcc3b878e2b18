"""Symbol usage validation.

A regular query variable that occurs only once in a whole query is almost
always a typo (``?nmae`` for ``?name``), so it is reported as an orphan.
Variables meant to be used once must say so with a trailing ``*``
(``?dont-care*``); such a wildcard occurring more than once is reported as
overused.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from factquery.errors import OrphanSymbolError, OverusedWildcardError, SymbolUsageError
from factquery.ir.terms import Var, WildcardVar, classify_term, flatten_tokens


@dataclass(frozen=True)
class SymbolUsageReport:
    orphans: list[str] = field(default_factory=list)
    overused_wildcards: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.orphans and not self.overused_wildcards

    def errors(self) -> list[SymbolUsageError]:
        found: list[SymbolUsageError] = []
        if self.orphans:
            found.append(OrphanSymbolError("Orphan symbols found:", self.orphans, self))
        if self.overused_wildcards:
            found.append(
                OverusedWildcardError("Overused wildcards found:", self.overused_wildcards, self)
            )
        return found

    def raise_for_errors(self) -> None:
        errors = self.errors()
        if errors:
            raise errors[0]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "orphans": list(self.orphans),
            "overused_wildcards": list(self.overused_wildcards),
        }


def check_symbol_usage(symbols: Iterable[Any]) -> SymbolUsageReport:
    """Count variable occurrences and report orphans and overused wildcards.

    Non-variable tokens are ignored. Both checks always run so one pass
    surfaces every offending name.
    """
    regular: Counter[str] = Counter()
    wildcard: Counter[str] = Counter()
    for token in symbols:
        term = classify_term(token)
        if isinstance(term, WildcardVar):
            wildcard[term.name] += 1
        elif isinstance(term, Var):
            regular[term.name] += 1
    # Counter keeps first-insertion order.
    orphans = [name for name, count in regular.items() if count == 1]
    overused = [name for name, count in wildcard.items() if count > 1]
    return SymbolUsageReport(orphans=orphans, overused_wildcards=overused)


def collect_query_symbols(
    *,
    clauses: Sequence[Any],
    let_vars: Sequence[Any],
    yield_terms: Sequence[Any],
    rules: Sequence[Any],
) -> list[Any]:
    """Flatten every variable-bearing section of a query, in a fixed order.

    Predicate expressions are not scanned: they only filter variables that
    other sections bind.
    """
    tokens = flatten_tokens([list(clauses), list(let_vars), list(yield_terms), list(rules)])
    return [token for token in tokens if isinstance(classify_term(token), (Var, WildcardVar))]
