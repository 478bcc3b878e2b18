"""Query entry points: compile a context, run it on an engine, shape the rows."""

from __future__ import annotations

from typing import Any, Mapping, Sequence, Union
import logging

from factquery.errors import WrongResultVariantError
from factquery.fact_store.engine import FactEngine
from factquery.ir.context import QueryContext
from factquery.query.compiler import CompileOptions, QueryDocument, compile_query
from factquery.query.shaping import ResultShape, only_scalar, only_tuple, require_shape, shape_rows


logger = logging.getLogger(__name__)

ContextLike = Union[QueryContext, Mapping[str, Any]]


def compile_and_run(
    engine: FactEngine,
    context: ContextLike,
    shape: ResultShape = "tuple_set",
    *,
    options: CompileOptions | None = None,
) -> Any:
    """Compile ``context``, execute it on ``engine`` and shape the raw rows.

    Validation errors are raised before the engine is called. Engine errors
    propagate unchanged.
    """
    document = compile_query(context, options=options)
    return run_document(engine, document, shape)


def run_document(engine: FactEngine, document: QueryDocument, shape: ResultShape) -> Any:
    """Execute an already compiled document and shape its rows."""
    require_shape(shape)
    labels = document.require_labels() if shape == "map_set" else None
    rows = engine.execute_query(document.find, document.in_, document.where, document.args)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("ran %s shape=%s", document.query_id(), shape)
    return shape_rows(rows, shape, labels=labels)


def query(engine: FactEngine, context: ContextLike, *, options: CompileOptions | None = None) -> set[tuple[Any, ...]]:
    return compile_and_run(engine, context, "tuple_set", options=options)


def query_map(
    engine: FactEngine, context: ContextLike, *, options: CompileOptions | None = None
) -> list[dict[str, Any]]:
    """Unique rows keyed by projection label (``?name`` -> ``name``)."""
    return compile_and_run(engine, context, "map_set", options=options)


def query_pull(
    engine: FactEngine, context: ContextLike, *, options: CompileOptions | None = None
) -> list[tuple[Any, ...]]:
    """Rows in engine order, for projections that contain a pull expression."""
    document = compile_query(context, options=options)
    if not contains_pull(document.find):
        raise WrongResultVariantError(
            f"query_pull needs a pull projection in yield; got {list(document.find)}"
        )
    return run_document(engine, document, "row_list")


def query_one(engine: FactEngine, context: ContextLike, *, options: CompileOptions | None = None) -> tuple[Any, ...]:
    return only_tuple(query(engine, context, options=options))


def query_scalar(engine: FactEngine, context: ContextLike, *, options: CompileOptions | None = None) -> Any:
    return only_scalar(query(engine, context, options=options))


def contains_pull(yield_terms: Sequence[Any]) -> bool:
    """True if any projection is a ``("pull", var, pattern)`` expression."""
    return any(
        isinstance(item, (list, tuple)) and len(item) > 0 and item[0] == "pull"
        for item in yield_terms
    )

