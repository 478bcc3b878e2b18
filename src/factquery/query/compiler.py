"""Query assembly: query context -> canonical find/in/where document."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence
import hashlib
import json
import logging
import warnings

from factquery.errors import (
    MalformedBindingList,
    MalformedClauseShape,
    OrphanSymbolError,
    UnknownAttributeError,
)
from factquery.ir.context import CONTEXT_KEYS, QueryContext
from factquery.ir.terms import Lit, Var, WildcardVar, classify_term, term_token
from factquery.query.bindings import split_bindings
from factquery.query.diagnostic_codes import (
    CODE_BINDING_LIST_ERROR,
    CODE_CONTEXT_SHAPE_ERROR,
    CODE_IGNORED_CONTEXT_KEYS,
    CODE_ORPHAN_SYMBOLS,
    CODE_OVERUSED_WILDCARDS,
    CODE_UNKNOWN_ATTRIBUTES,
    CODE_UNLABELED_PROJECTION,
    CODE_WHERE_SHAPE_ERROR,
)
from factquery.query.payload import payload_error_sections, validate_context_payload
from factquery.query.symbols import SymbolUsageReport, check_symbol_usage, collect_query_symbols
from factquery.query.where import Clause, clause_attributes, normalize_where
from factquery.tx.schema import AttributeRegistry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompileOptions:
    """Compilation switches.

    Attributes:
        strict: Validate the context payload shape with pydantic and reject
            unknown sections. When False, unknown sections only warn.
        attributes: When set (and strict), every keyword attribute in the
            where clauses must be declared in this registry.
    """

    strict: bool = True
    attributes: AttributeRegistry | None = None


@dataclass(frozen=True)
class QueryDocument:
    """Canonical query handed to a fact engine, plus its positional inputs."""

    find: tuple[Any, ...]
    in_: tuple[Any, ...]
    where: tuple[Any, ...]
    args: tuple[Any, ...] = ()
    labels: tuple[str | None, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "find": _jsonable(self.find),
            "in": _jsonable(self.in_),
            "where": _jsonable(self.where),
        }

    def canonical_json_bytes(self) -> bytes:
        return json.dumps(
            self.to_dict(),
            ensure_ascii=False,
            separators=(",", ":"),
            sort_keys=True,
            default=_json_default,
        ).encode("utf-8")

    def query_id(self) -> str:
        digest = hashlib.sha256(self.canonical_json_bytes()).hexdigest()
        return f"query__{digest[:12]}"

    def require_labels(self) -> list[str]:
        missing = [str(self.find[idx]) for idx, label in enumerate(self.labels) if label is None]
        if missing:
            raise MalformedClauseShape(
                f"Keyed results need plain variable projections; got {missing}"
            )
        return [label for label in self.labels if label is not None]


def compile_query(
    context: QueryContext | Mapping[str, Any],
    *,
    options: CompileOptions | None = None,
) -> QueryDocument:
    """Validate a query context and assemble its canonical document.

    Raises MalformedClauseShape, MalformedBindingList, OrphanSymbolError,
    OverusedWildcardError or UnknownAttributeError before any engine call.
    """
    opts = options or CompileOptions()
    ctx, ignored = _coerce_context(context, strict=opts.strict)
    if ignored:
        warnings.warn(f"Ignoring unknown query context sections: {ignored}")

    clauses = normalize_where(ctx.where)
    let_vars, let_srcs = split_bindings(ctx.let)
    yield_terms = _section(ctx.yield_, "yield")
    preds = _section(ctx.preds, "preds")
    rules = _section(ctx.rules, "rules")

    report = check_symbol_usage(
        collect_query_symbols(
            clauses=clauses, let_vars=let_vars, yield_terms=yield_terms, rules=rules
        )
    )
    report.raise_for_errors()
    if opts.strict and opts.attributes is not None:
        _check_attributes(clauses, opts.attributes)

    document = assemble_query(
        clauses=clauses,
        let_vars=let_vars,
        let_srcs=let_srcs,
        yield_terms=yield_terms,
        preds=preds,
        rules=rules,
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("compiled %s find=%s", document.query_id(), document.to_dict()["find"])
    return document


def assemble_query(
    *,
    clauses: Sequence[Clause],
    let_vars: Sequence[Any],
    let_srcs: Sequence[Any],
    yield_terms: Sequence[Any],
    preds: Sequence[Any] = (),
    rules: Sequence[Any] = (),
) -> QueryDocument:
    """Pure data assembly; performs no validation."""
    where: list[Any] = [tuple(term_token(term) for term in clause) for clause in clauses]
    where.extend((pred,) for pred in preds)
    where.extend(rules)
    return QueryDocument(
        find=tuple(yield_terms),
        in_=tuple(term_token(classify_term(var)) for var in let_vars),
        where=tuple(where),
        args=tuple(let_srcs),
        labels=query_labels(yield_terms),
    )


def query_labels(yield_terms: Sequence[Any]) -> tuple[str | None, ...]:
    """Label each projection by stripping its sigil; None for compound terms."""
    labels: list[str | None] = []
    for item in yield_terms:
        term = None if isinstance(item, (list, tuple)) else classify_term(item)
        labels.append(term.label if isinstance(term, (Var, WildcardVar)) else None)
    return tuple(labels)


def preflight_query(
    context: QueryContext | Mapping[str, Any],
    *,
    options: CompileOptions | None = None,
) -> dict[str, Any]:
    """Non-raising validation returning every diagnostic at once."""
    opts = options or CompileOptions()
    diagnostics: list[dict[str, Any]] = []
    warnings_out: list[dict[str, Any]] = []

    try:
        ctx, ignored = _coerce_context(context, strict=opts.strict)
    except MalformedClauseShape as exc:
        if payload_error_sections(exc) == {"where"}:
            diagnostics.append(_diag("where.normalize", CODE_WHERE_SHAPE_ERROR, str(exc), "$.where"))
        else:
            diagnostics.append(_diag("context.shape", CODE_CONTEXT_SHAPE_ERROR, str(exc), "$"))
        return _preflight_payload(diagnostics, warnings_out, None, None)
    if ignored:
        warnings_out.append(
            _warn(
                "context.shape",
                CODE_IGNORED_CONTEXT_KEYS,
                f"unknown sections ignored: {ignored}",
                "$",
            )
        )

    clauses: list[Clause] = []
    let_vars: list[Any] = []
    let_srcs: list[Any] = []
    try:
        clauses = normalize_where(ctx.where)
    except MalformedClauseShape as exc:
        diagnostics.append(_diag("where.normalize", CODE_WHERE_SHAPE_ERROR, str(exc), "$.where"))
    try:
        let_vars, let_srcs = split_bindings(ctx.let)
    except MalformedBindingList as exc:
        diagnostics.append(_diag("let.split", CODE_BINDING_LIST_ERROR, str(exc), "$.let"))
    except MalformedClauseShape as exc:
        diagnostics.append(_diag("let.split", CODE_CONTEXT_SHAPE_ERROR, str(exc), "$.let"))
    try:
        yield_terms = _section(ctx.yield_, "yield")
        preds = _section(ctx.preds, "preds")
        rules = _section(ctx.rules, "rules")
    except MalformedClauseShape as exc:
        diagnostics.append(_diag("context.shape", CODE_CONTEXT_SHAPE_ERROR, str(exc), "$"))
        return _preflight_payload(diagnostics, warnings_out, None, None)
    if diagnostics:
        # Symbol counts over a partially parsed context would be misleading.
        return _preflight_payload(diagnostics, warnings_out, None, None)

    report = check_symbol_usage(
        collect_query_symbols(
            clauses=clauses, let_vars=let_vars, yield_terms=yield_terms, rules=rules
        )
    )
    for error in report.errors():
        code = CODE_ORPHAN_SYMBOLS if isinstance(error, OrphanSymbolError) else CODE_OVERUSED_WILDCARDS
        diagnostics.append(_diag("symbols.usage", code, str(error), "$", symbols=error.symbols))

    if opts.strict and opts.attributes is not None and clauses:
        try:
            _check_attributes(clauses, opts.attributes)
        except UnknownAttributeError as exc:
            diagnostics.append(
                _diag(
                    "where.attributes",
                    CODE_UNKNOWN_ATTRIBUTES,
                    str(exc),
                    "$.where",
                    symbols=exc.attributes,
                )
            )

    unlabeled = [str(item) for item, label in zip(yield_terms, query_labels(yield_terms)) if label is None]
    if unlabeled:
        warnings_out.append(
            _warn(
                "yield.labels",
                CODE_UNLABELED_PROJECTION,
                f"projections without labels cannot be used for keyed results: {unlabeled}",
                "$.yield",
            )
        )

    query_id = None
    if not diagnostics:
        query_id = assemble_query(
            clauses=clauses,
            let_vars=let_vars,
            let_srcs=let_srcs,
            yield_terms=yield_terms,
            preds=preds,
            rules=rules,
        ).query_id()
    return _preflight_payload(diagnostics, warnings_out, report, query_id)


def _coerce_context(
    context: QueryContext | Mapping[str, Any],
    *,
    strict: bool,
) -> tuple[QueryContext, list[str]]:
    if strict:
        return validate_context_payload(context), []
    if isinstance(context, QueryContext):
        return context, []
    if not isinstance(context, Mapping):
        raise MalformedClauseShape("Query context must be a mapping or QueryContext.")
    ignored = sorted(str(key) for key in context if key not in CONTEXT_KEYS)
    return QueryContext.from_dict(context), ignored


def _section(value: Any, name: str) -> list[Any]:
    if not isinstance(value, (list, tuple)):
        raise MalformedClauseShape(f"{name} must be an ordered list, got {type(value).__name__}")
    return list(value)


def _check_attributes(clauses: Sequence[Clause], registry: AttributeRegistry) -> None:
    unknown = registry.undeclared(clause_attributes(clauses))
    if unknown:
        raise UnknownAttributeError(unknown)


def _diag(
    phase: str,
    code: str,
    message: str,
    path: str,
    *,
    symbols: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "severity": "error",
        "phase": phase,
        "code": code,
        "message": message,
        "path": path,
        "symbols": list(symbols or []),
    }


def _warn(phase: str, code: str, message: str, path: str) -> dict[str, Any]:
    return {
        "severity": "warning",
        "phase": phase,
        "code": code,
        "message": message,
        "path": path,
        "symbols": [],
    }


def _preflight_payload(
    diagnostics: list[dict[str, Any]],
    warnings_out: list[dict[str, Any]],
    report: SymbolUsageReport | None,
    query_id: str | None,
) -> dict[str, Any]:
    return {
        "preflight_version": "query_preflight_v1",
        "ok": not diagnostics,
        "query_id": query_id,
        "symbols": report.to_dict() if report is not None else None,
        "diagnostics": diagnostics + warnings_out,
        "warnings": warnings_out,
        "errors": diagnostics,
    }


def _jsonable(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    return value


def _json_default(value: Any) -> Any:
    if isinstance(value, (Lit, Var, WildcardVar)):
        return value.to_dict()
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    return repr(value)
