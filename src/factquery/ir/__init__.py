"""Query terms and context types."""

from factquery.ir.terms import (
    Lit,
    Var,
    WildcardVar,
    Term,
    classify_term,
    is_query_variable,
    is_wildcard_variable,
    term_token,
    variable_label,
)
from factquery.ir.context import QueryContext

__all__ = [
    "Lit",
    "Var",
    "WildcardVar",
    "Term",
    "classify_term",
    "is_query_variable",
    "is_wildcard_variable",
    "term_token",
    "variable_label",
    "QueryContext",
]
