"""Query compilation, validation and result shaping."""

from factquery.query.bindings import split_bindings
from factquery.query.where import ENTITY_KEY, clause_attributes, normalize_where
from factquery.query.symbols import SymbolUsageReport, check_symbol_usage, collect_query_symbols
from factquery.query.compiler import (
    CompileOptions,
    QueryDocument,
    assemble_query,
    compile_query,
    preflight_query,
    query_labels,
)
from factquery.query.shaping import (
    RESULT_SHAPES,
    ResultShape,
    freeze_value,
    only_scalar,
    only_tuple,
    require_shape,
    shape_rows,
)
from factquery.query.payload import QueryContextPayload, validate_context_payload
from factquery.query.api import (
    compile_and_run,
    contains_pull,
    run_document,
    query,
    query_map,
    query_one,
    query_pull,
    query_scalar,
)

__all__ = [
    "split_bindings",
    "ENTITY_KEY",
    "clause_attributes",
    "normalize_where",
    "SymbolUsageReport",
    "check_symbol_usage",
    "collect_query_symbols",
    "CompileOptions",
    "QueryDocument",
    "assemble_query",
    "compile_query",
    "preflight_query",
    "query_labels",
    "RESULT_SHAPES",
    "ResultShape",
    "freeze_value",
    "require_shape",
    "only_scalar",
    "only_tuple",
    "shape_rows",
    "QueryContextPayload",
    "validate_context_payload",
    "compile_and_run",
    "contains_pull",
    "run_document",
    "query",
    "query_map",
    "query_one",
    "query_pull",
    "query_scalar",
]
