"""Fact engine contract, in-memory engine and introspection helpers."""

from factquery.fact_store.engine import Datom, FactEngine, TxResult
from factquery.fact_store.memory import MemoryDb, MemoryEngine
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
    "Datom",
    "FactEngine",
    "TxResult",
    "MemoryDb",
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
