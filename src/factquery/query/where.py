"""Where-clause normalization: clause maps -> [entity attribute value] triples."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from factquery.errors import MalformedClauseShape
from factquery.ir.terms import Lit, Term, classify_term


ENTITY_KEY = "db/id"

Clause = tuple[Term, Term, Term]


def normalize_where(maps: Sequence[Mapping[str, Any]]) -> list[Clause]:
    """Flatten clause maps into triples, keeping map order then entry order.

    Listing maps in a deliberate sequence lets callers control the clause
    order the engine searches in.
    """
    if not isinstance(maps, (list, tuple)) or not maps:
        raise MalformedClauseShape("where must be a non-empty list of clause maps")

    clauses: list[Clause] = []
    for idx, clause_map in enumerate(maps):
        if not isinstance(clause_map, Mapping):
            raise MalformedClauseShape(
                f"where[{idx}] must be a mapping, got {type(clause_map).__name__}"
            )
        if ENTITY_KEY not in clause_map:
            raise MalformedClauseShape(f"where[{idx}] is missing the '{ENTITY_KEY}' entity binding")
        entity = classify_term(clause_map[ENTITY_KEY])
        for attr, value in clause_map.items():
            if attr == ENTITY_KEY:
                continue
            clauses.append((entity, classify_term(attr), classify_term(value)))
    return clauses


def clause_attributes(clauses: Sequence[Clause]) -> list[str]:
    """Return the keyword attributes used by clauses, first occurrence first."""
    seen: list[str] = []
    for _, attr, _ in clauses:
        if isinstance(attr, Lit) and isinstance(attr.value, str) and attr.value not in seen:
            seen.append(attr.value)
    return seen
