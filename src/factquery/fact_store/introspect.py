"""Entity, datom and transaction introspection over a ``FactEngine``.

These are thin wrappers: every read goes through the engine contract, so they
work against any engine implementation, not only the in-memory one.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping
import itertools
import logging

from factquery.errors import FactStoreError
from factquery.fact_store.engine import Datom, FactEngine, TxResult


logger = logging.getLogger(__name__)

_TX_PARTITION = "db.part/tx"


def transact(engine: FactEngine, *tx_specs: Any) -> TxResult:
    """Commit every tx spec (map or tuple) in one transaction."""
    result = engine.execute_transaction(list(tx_specs))
    logger.debug("transacted %d tx specs -> %d datoms", len(tx_specs), len(result.tx_data))
    return result


def entity_map(engine: FactEngine, db: Any, entity_spec: Any) -> dict[str, Any]:
    """Eager attribute -> value map of an entity. ``db/id`` is not included."""
    return dict(engine.entity(db, entity_spec))


def entity_map_full(engine: FactEngine, db: Any, entity_spec: Any) -> dict[str, Any]:
    """Like ``entity_map`` but with the entity's ``db/id`` first."""
    eid = engine.entid(db, entity_spec)
    return {"db/id": eid, **entity_map(engine, db, entity_spec)}


def eid_to_ident(engine: FactEngine, db: Any, eid: int) -> str | None:
    return engine.resolve_ident(db, eid)


def datom_map(datom: Datom | Mapping[str, Any]) -> dict[str, Any]:
    """Plain ``{e, a, v, tx, added}`` dict of a datom, with ``a`` as an int eid."""
    data = datom.to_dict() if isinstance(datom, Datom) else dict(datom)
    try:
        return {
            "e": data["e"],
            "a": int(data["a"]),
            "v": data["v"],
            "tx": data["tx"],
            "added": bool(data["added"]),
        }
    except (KeyError, TypeError, ValueError) as exc:
        raise FactStoreError(f"not a datom: {datom!r}") from exc


def datoms(engine: FactEngine, db: Any, index: str, *components: Any) -> Iterator[dict[str, Any]]:
    """Lazily yield datom maps from an index (``eavt``, ``aevt``, ``avet`` or ``vaet``)."""
    for datom in engine.scan_datoms(db, index, *components):
        yield datom_map(datom)


def tx_datoms(engine: FactEngine, db: Any, tx_result: TxResult) -> list[dict[str, Any]]:
    """Datom maps of a transaction, with attribute eids replaced by their idents."""
    out: list[dict[str, Any]] = []
    for datom in tx_result.tx_data:
        data = datom_map(datom)
        data["a"] = eid_to_ident(engine, db, data["a"])
        out.append(data)
    return out


def partition_name(engine: FactEngine, db: Any, entity_spec: Any) -> str:
    eid = engine.entid(db, entity_spec)
    if eid is None:
        raise FactStoreError(f"unknown entity: {entity_spec!r}")
    return engine.partition_of(db, eid)


def partition_eids(engine: FactEngine, db: Any, partition: str) -> Iterator[int]:
    """Lazily yield every eid in a partition, in eid order."""
    start = engine.entid_at(db, partition, 0)
    eids = (datom.e for datom in engine.seek_datoms(db, "eavt", start))
    distinct = (eid for eid, _ in itertools.groupby(eids))
    return itertools.takewhile(lambda eid: engine.partition_of(db, eid) == partition, distinct)


def is_transaction(engine: FactEngine, db: Any, entity_spec: Any) -> bool:
    return partition_name(engine, db, entity_spec) == _TX_PARTITION


def transactions(engine: FactEngine, db: Any) -> Iterator[dict[str, Any]]:
    """Lazily yield the entity map of every transaction."""
    # user entities may carry db/txInstant too
    candidates = (datom.e for datom in engine.scan_datoms(db, "aevt", "db/txInstant"))
    return (
        entity_map(engine, db, eid)
        for eid in candidates
        if is_transaction(engine, db, eid)
    )


def eids(tx_result: TxResult) -> list[int]:
    """Eids the transaction assigned to its tempids."""
    return list(tx_result.tempids.values())


def txid(tx_result: TxResult) -> int:
    txids = {datom.tx for datom in tx_result.tx_data}
    if len(txids) != 1:
        raise FactStoreError(f"transaction data must share exactly one tx id, got {sorted(txids)}")
    return txids.pop()
