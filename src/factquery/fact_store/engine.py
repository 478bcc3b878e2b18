"""Fact engine contract and the datom/transaction vocabulary shared with it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class Datom:
    """One fact: entity, attribute, value, transaction, assertion flag."""

    e: int
    a: Any
    v: Any
    tx: int
    added: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"e": self.e, "a": self.a, "v": self.v, "tx": self.tx, "added": self.added}


@dataclass(frozen=True)
class TxResult:
    """Outcome of a committed transaction."""

    db_before: Any
    db_after: Any
    tx_data: list[Datom] = field(default_factory=list)
    tempids: Mapping[Any, int] = field(default_factory=dict)


class FactEngine:
    """Abstract fact engine.

    The query layer only consumes this interface. Database values returned by
    ``db()`` are opaque handles passed back into the other methods.
    """

    def db(self) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def execute_query(
        self,
        find: Sequence[Any],
        in_: Sequence[Any],
        where: Sequence[Any],
        args: Sequence[Any],
    ) -> Sequence[Sequence[Any]]:  # pragma: no cover - interface
        raise NotImplementedError

    def execute_transaction(self, tx_data: Sequence[Any]) -> TxResult:  # pragma: no cover - interface
        raise NotImplementedError

    def resolve_ident(self, db: Any, eid: int) -> str | None:  # pragma: no cover - interface
        raise NotImplementedError

    def scan_datoms(self, db: Any, index: str, *components: Any) -> Iterable[Datom]:  # pragma: no cover - interface
        raise NotImplementedError

    def seek_datoms(self, db: Any, index: str, *components: Any) -> Iterable[Datom]:  # pragma: no cover - interface
        raise NotImplementedError

    def entid(self, db: Any, entity_spec: Any) -> int | None:  # pragma: no cover - interface
        raise NotImplementedError

    def entity(self, db: Any, entity_spec: Any) -> Mapping[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError

    def partition_of(self, db: Any, eid: int) -> str:  # pragma: no cover - interface
        raise NotImplementedError

    def entid_at(self, db: Any, partition: str, t: int) -> int:  # pragma: no cover - interface
        raise NotImplementedError
