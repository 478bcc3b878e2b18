"""Unified entrypoint for query authoring, transaction builders and engines."""

from __future__ import annotations

from factquery.ir.terms import Lit, Var, WildcardVar, classify_term, is_query_variable, is_wildcard_variable
from factquery.ir.context import QueryContext
from factquery.query.compiler import CompileOptions, QueryDocument, compile_query, preflight_query
from factquery.query.symbols import SymbolUsageReport, check_symbol_usage
from factquery.query.shaping import shape_rows, only_tuple, only_scalar
from factquery.query.api import (
    compile_and_run,
    contains_pull,
    query,
    query_map,
    query_one,
    query_pull,
    query_scalar,
)
from factquery.tx.schema import (
    RESERVED_ATTRVALS,
    AttributeRegistry,
    AttributeSchema,
    TempId,
    tempid,
)
from factquery.tx.builders import (
    new_attribute,
    new_entity,
    new_enum,
    new_partition,
    retract_entity,
    retract_value,
    update,
)
from factquery.fact_store.engine import Datom, FactEngine, TxResult
from factquery.fact_store.memory import MemoryEngine
from factquery.fact_store.introspect import (
    datom_map,
    datoms,
    eid_to_ident,
    eids,
    entity_map,
    entity_map_full,
    is_transaction,
    partition_eids,
    partition_name,
    transact,
    transactions,
    tx_datoms,
    txid,
)

__all__ = [
    "Lit",
    "Var",
    "WildcardVar",
    "classify_term",
    "is_query_variable",
    "is_wildcard_variable",
    "QueryContext",
    "CompileOptions",
    "QueryDocument",
    "compile_query",
    "preflight_query",
    "SymbolUsageReport",
    "check_symbol_usage",
    "shape_rows",
    "only_tuple",
    "only_scalar",
    "compile_and_run",
    "contains_pull",
    "query",
    "query_map",
    "query_one",
    "query_pull",
    "query_scalar",
    "RESERVED_ATTRVALS",
    "AttributeRegistry",
    "AttributeSchema",
    "TempId",
    "tempid",
    "new_attribute",
    "new_entity",
    "new_enum",
    "new_partition",
    "retract_entity",
    "retract_value",
    "update",
    "Datom",
    "FactEngine",
    "TxResult",
    "MemoryEngine",
    "datom_map",
    "datoms",
    "eid_to_ident",
    "eids",
    "entity_map",
    "entity_map_full",
    "is_transaction",
    "partition_eids",
    "partition_name",
    "transact",
    "transactions",
    "tx_datoms",
    "txid",
]
