"""In-memory fact engine.

A small EAVT store implementing the ``FactEngine`` contract. It is meant for
tests, examples and embedding; it keeps no history, does not evaluate rules or
aggregates, and does not enforce unique attributes.

Entity ids are laid out as ``partition_index << 42 | serial``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence
import logging
import operator
import threading

from factquery.errors import EngineError, InvalidIdentifier, InvalidValueType
from factquery.fact_store.engine import Datom, FactEngine, TxResult
from factquery.ir.terms import Lit, is_query_variable
from factquery.tx.schema import AttributeSchema, TempId, forward_attribute, is_keyword, tempid


logger = logging.getLogger(__name__)

_PART_BITS = 42
_BLANK = "_"
_UNBOUND = object()

_BASE_PARTITIONS = ("db.part/db", "db.part/tx", "db.part/user")
_BUILTIN_ATTRIBUTES = (
    AttributeSchema("db/ident", "db.type/keyword", unique="db.unique/identity"),
    AttributeSchema("db/valueType", "db.type/keyword"),
    AttributeSchema("db/cardinality", "db.type/keyword"),
    AttributeSchema("db/unique", "db.type/keyword"),
    AttributeSchema("db/index", "db.type/boolean"),
    AttributeSchema("db/fulltext", "db.type/boolean"),
    AttributeSchema("db/isComponent", "db.type/boolean"),
    AttributeSchema("db/noHistory", "db.type/boolean"),
    AttributeSchema("db/doc", "db.type/string"),
    AttributeSchema("db/txInstant", "db.type/instant"),
    AttributeSchema("db.install/partition", "db.type/ref", cardinality="db.cardinality/many"),
    AttributeSchema("db.install/attribute", "db.type/ref", cardinality="db.cardinality/many"),
)
_ATTRIBUTE_FIELDS = (
    "db/ident",
    "db/valueType",
    "db/cardinality",
    "db/unique",
    "db/index",
    "db/fulltext",
    "db/isComponent",
    "db/noHistory",
    "db/doc",
)

_PREDICATES: dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "=": operator.eq,
    "!=": operator.ne,
    "not=": operator.ne,
}

_INDEX_ORDER = {
    "eavt": ("e", "a", "v", "tx"),
    "aevt": ("a", "e", "v", "tx"),
    "avet": ("a", "v", "e", "tx"),
    "vaet": ("v", "a", "e", "tx"),
}


def _eid(part_index: int, serial: int) -> int:
    return (part_index << _PART_BITS) | serial


def _value_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    return (4, repr(value))


def _is_var(token: Any) -> bool:
    return isinstance(token, str) and is_query_variable(token)


@dataclass(frozen=True, eq=False)
class MemoryDb:
    """Immutable database value as of one basis ``t``."""

    basis_t: int
    datoms: tuple[Datom, ...]
    idents: Mapping[str, int]
    attributes: Mapping[int, AttributeSchema]
    partitions: tuple[str, ...]

    def ident_of(self, eid: int) -> str | None:
        for ident, value in self.idents.items():
            if value == eid:
                return ident
        return None

    def attribute_eid(self, ident: str) -> int:
        eid = self.idents.get(ident)
        if eid is None or eid not in self.attributes:
            raise EngineError(f"unknown attribute: {ident}")
        return eid

    def resolve(self, entity_spec: Any) -> int | None:
        """Resolve an eid, ident keyword or lookup ref to an eid."""
        if isinstance(entity_spec, bool):
            return None
        if isinstance(entity_spec, int):
            return entity_spec
        if isinstance(entity_spec, str):
            return self.idents.get(entity_spec)
        if isinstance(entity_spec, (list, tuple)) and len(entity_spec) == 2:
            attr_eid = self.attribute_eid(entity_spec[0])
            for datom in self.datoms:
                if datom.a == attr_eid and datom.v == entity_spec[1]:
                    return datom.e
            return None
        return None

    def index(self, name: str) -> list[Datom]:
        order = _INDEX_ORDER.get(name)
        if order is None:
            raise EngineError(f"unknown index: {name}; expected one of {sorted(_INDEX_ORDER)}")
        datoms: Iterable[Datom] = self.datoms
        if name == "vaet":
            datoms = [d for d in self.datoms if self.attributes[d.a].is_ref]
        return sorted(datoms, key=lambda d: self.index_key(order, d))

    def component_key(self, name: str, components: Sequence[Any]) -> tuple[Any, ...]:
        order = _INDEX_ORDER[name]
        if len(components) > len(order):
            raise EngineError(f"too many components for index {name}")
        key: list[Any] = []
        attr: AttributeSchema | None = None
        for field_name, component in zip(order, components):
            if field_name == "a":
                value = self.attribute_eid(component) if isinstance(component, str) else component
                attr = self.attributes.get(value)
                key.append(value)
            elif field_name == "e" or (field_name == "v" and name == "vaet"):
                resolved = self.resolve(component)
                key.append(resolved if resolved is not None else component)
            elif field_name == "v":
                if attr is not None and attr.is_ref and not isinstance(component, int):
                    resolved = self.resolve(component)
                    component = resolved if resolved is not None else component
                key.append(_value_key(component))
            else:
                key.append(component)
        return tuple(key)

    def index_key(self, order: Sequence[str], datom: Datom) -> tuple[Any, ...]:
        parts: list[Any] = []
        for field_name in order:
            value = getattr(datom, field_name)
            parts.append(_value_key(value) if field_name == "v" and order[0] != "v" else value)
        return tuple(parts)


class MemoryEngine(FactEngine):
    """Thread-safe in-memory engine; each transaction yields a new MemoryDb."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._serials: dict[int, int] = {}
        self._db = self._bootstrap()

    # -------- FactEngine --------
    def db(self) -> MemoryDb:
        return self._db

    def execute_transaction(self, tx_data: Sequence[Any]) -> TxResult:
        if not isinstance(tx_data, (list, tuple)):
            raise EngineError("tx_data must be a list of tx items")
        with self._lock:
            before = self._db
            tx = _Transaction(before, self._allocate, self._clock())
            for item in tx_data:
                tx.apply(item)
            after = tx.commit()
            self._db = after
        logger.debug("transaction t=%d datoms=%d tempids=%d", after.basis_t, len(tx.tx_data), len(tx.tempids))
        return TxResult(db_before=before, db_after=after, tx_data=list(tx.tx_data), tempids=dict(tx.tempids))

    def execute_query(
        self,
        find: Sequence[Any],
        in_: Sequence[Any],
        where: Sequence[Any],
        args: Sequence[Any],
    ) -> list[tuple[Any, ...]]:
        if len(in_) != len(args):
            raise EngineError(f"query expects {len(in_)} inputs, got {len(args)}")
        db: MemoryDb | None = None
        envs: list[dict[str, Any]] = [{}]
        for name, value in zip(in_, args):
            if isinstance(name, str) and name.startswith("$"):
                if name != "$":
                    raise EngineError(f"only the default source '$' is supported, got {name}")
                if not isinstance(value, MemoryDb):
                    raise EngineError("input '$' must be a MemoryDb")
                db = value
            elif _is_var(name):
                envs = [{**env, name: value} for env in envs]
            elif isinstance(name, (list, tuple)) and len(name) == 2 and _is_var(name[0]) and name[1] == "...":
                envs = [{**env, name[0]: item} for env in envs for item in value]
            else:
                raise EngineError(f"unsupported input binding: {name!r}")
        if db is None:
            raise EngineError("query needs a '$' database input")
        for clause in where:
            envs = self._apply_clause(db, clause, envs)
        return [tuple(self._project(db, term, env) for term in find) for env in envs]

    def resolve_ident(self, db: MemoryDb, eid: int) -> str | None:
        return db.ident_of(eid)

    def scan_datoms(self, db: MemoryDb, index: str, *components: Any) -> Iterator[Datom]:
        datoms = db.index(index)
        if not components:
            return iter(datoms)
        order = _INDEX_ORDER[index]
        wanted = db.component_key(index, components)
        size = len(wanted)
        return (d for d in datoms if db.index_key(order, d)[:size] == wanted)

    def seek_datoms(self, db: MemoryDb, index: str, *components: Any) -> Iterator[Datom]:
        datoms = db.index(index)
        if not components:
            return iter(datoms)
        order = _INDEX_ORDER[index]
        start = db.component_key(index, components)
        size = len(start)
        return (d for d in datoms if db.index_key(order, d)[:size] >= start)

    def entid(self, db: MemoryDb, entity_spec: Any) -> int | None:
        return db.resolve(entity_spec)

    def entity(self, db: MemoryDb, entity_spec: Any) -> dict[str, Any]:
        eid = db.resolve(entity_spec)
        out: dict[str, Any] = {}
        if eid is None:
            return out
        for datom in db.datoms:
            if datom.e != eid:
                continue
            attr = db.attributes[datom.a]
            value = datom.v
            if attr.is_ref:
                value = db.ident_of(value) or value
            if attr.many:
                out.setdefault(attr.ident, set()).add(value)
            else:
                out[attr.ident] = value
        return out

    def partition_of(self, db: MemoryDb, eid: int) -> str:
        idx = eid >> _PART_BITS
        if idx >= len(db.partitions):
            raise EngineError(f"eid {eid} is outside every known partition")
        return db.partitions[idx]

    def entid_at(self, db: MemoryDb, partition: str, t: int) -> int:
        if partition not in db.partitions:
            raise EngineError(f"unknown partition: {partition}")
        return _eid(db.partitions.index(partition), t)

    # -------- query evaluation --------
    def _apply_clause(
        self, db: MemoryDb, clause: Any, envs: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        if not isinstance(clause, (list, tuple)) or not clause:
            raise EngineError(f"invalid where clause: {clause!r}")
        if len(clause) == 1 and isinstance(clause[0], (list, tuple)):
            return [env for env in envs if self._check_predicate(clause[0], env)]
        if len(clause) > 3:
            raise EngineError(f"unsupported where clause: {clause!r}")
        out: list[dict[str, Any]] = []
        for env in envs:
            out.extend(self._match_pattern(db, tuple(clause), env))
        return out

    def _check_predicate(self, expr: Sequence[Any], env: dict[str, Any]) -> bool:
        if not expr or expr[0] not in _PREDICATES:
            raise EngineError(f"unsupported predicate: {expr!r}")
        fn = _PREDICATES[expr[0]]
        values = [self._bound(arg, env, required=True) for arg in expr[1:]]
        if len(values) < 2:
            raise EngineError(f"predicate needs at least two arguments: {expr!r}")
        try:
            return all(fn(lhs, rhs) for lhs, rhs in zip(values, values[1:]))
        except TypeError as exc:
            raise EngineError(f"cannot evaluate predicate {expr!r}: {exc}") from exc

    def _match_pattern(
        self, db: MemoryDb, pattern: tuple[Any, ...], env: dict[str, Any]
    ) -> list[dict[str, Any]]:
        e_tok, a_tok, v_tok = (pattern + (_BLANK, _BLANK, _BLANK))[:3]
        e_val = self._bound(e_tok, env)
        a_val = self._bound(a_tok, env)
        v_val = self._bound(v_tok, env)

        if e_val is not _UNBOUND:
            if isinstance(e_val, str) and not _is_var(e_val) and e_val not in db.idents:
                raise EngineError(f"unknown entity ident or unsupported rule invocation: {pattern!r}")
            e_val = db.resolve(e_val)
            if e_val is None:
                return []
        attr: AttributeSchema | None = None
        if a_val is not _UNBOUND:
            a_val = db.attribute_eid(a_val) if isinstance(a_val, str) else a_val
            attr = db.attributes.get(a_val)
            if attr is None:
                return []
        if v_val is not _UNBOUND and attr is not None and attr.is_ref and not isinstance(v_val, int):
            v_val = db.resolve(v_val)
            if v_val is None:
                return []

        matches: list[dict[str, Any]] = []
        for datom in db.datoms:
            if e_val is not _UNBOUND and datom.e != e_val:
                continue
            if a_val is not _UNBOUND and datom.a != a_val:
                continue
            if v_val is not _UNBOUND and datom.v != v_val:
                continue
            bound = self._extend(env, ((e_tok, datom.e), (a_tok, datom.a), (v_tok, datom.v)))
            if bound is not None:
                matches.append(bound)
        return matches

    @staticmethod
    def _extend(env: dict[str, Any], pairs: Iterable[tuple[Any, Any]]) -> dict[str, Any] | None:
        out = dict(env)
        for token, value in pairs:
            if not _is_var(token):
                continue
            if token in out and out[token] != value:
                return None
            out[token] = value
        return out

    @staticmethod
    def _bound(token: Any, env: dict[str, Any], *, required: bool = False) -> Any:
        if isinstance(token, Lit):
            return token.value
        if token == _BLANK:
            return _UNBOUND
        if _is_var(token):
            if token in env:
                return env[token]
            if required:
                raise EngineError(f"insufficient binding for {token}")
            return _UNBOUND
        return token

    def _project(self, db: MemoryDb, term: Any, env: dict[str, Any]) -> Any:
        if _is_var(term):
            if term not in env:
                raise EngineError(f"find variable is not bound by the query: {term}")
            return env[term]
        if isinstance(term, (list, tuple)) and len(term) == 3 and term[0] == "pull":
            var, pattern = term[1], term[2]
            if var not in env:
                raise EngineError(f"pull variable is not bound by the query: {var}")
            return self._pull(db, pattern, env[var])
        raise EngineError(f"unsupported find element: {term!r}")

    def _pull(self, db: MemoryDb, pattern: Sequence[Any], eid: int) -> dict[str, Any]:
        if not isinstance(pattern, (list, tuple)):
            raise EngineError(f"pull pattern must be a list: {pattern!r}")
        out: dict[str, Any] = {}
        own = [d for d in db.datoms if d.e == eid]
        for item in pattern:
            if item == "*":
                out["db/id"] = eid
                for datom in own:
                    self._pull_value(db, out, db.attributes[datom.a], datom.v, None)
            elif item == "db/id":
                out["db/id"] = eid
            elif isinstance(item, str):
                attr_eid = db.attribute_eid(item)
                for datom in own:
                    if datom.a == attr_eid:
                        self._pull_value(db, out, db.attributes[attr_eid], datom.v, None)
            elif isinstance(item, Mapping):
                for attr_ident, sub_pattern in item.items():
                    attr_eid = db.attribute_eid(attr_ident)
                    for datom in own:
                        if datom.a == attr_eid:
                            self._pull_value(db, out, db.attributes[attr_eid], datom.v, sub_pattern)
            else:
                raise EngineError(f"unsupported pull pattern element: {item!r}")
        return out

    def _pull_value(
        self,
        db: MemoryDb,
        out: dict[str, Any],
        attr: AttributeSchema,
        value: Any,
        sub_pattern: Sequence[Any] | None,
    ) -> None:
        if attr.is_ref:
            value = self._pull(db, sub_pattern, value) if sub_pattern is not None else {"db/id": value}
        if attr.many:
            out.setdefault(attr.ident, []).append(value)
        else:
            out[attr.ident] = value

    # -------- bootstrap --------
    def _allocate(self, part_index: int) -> int:
        serial = self._serials.get(part_index, 0)
        self._serials[part_index] = serial + 1
        return _eid(part_index, serial)

    def _bootstrap(self) -> MemoryDb:
        part_eids = [self._allocate(0) for _ in _BASE_PARTITIONS]
        self._serials[0] = 10
        attr_eids = {schema.ident: self._allocate(0) for schema in _BUILTIN_ATTRIBUTES}
        tx = self._allocate(1)
        ident = attr_eids["db/ident"]

        datoms: list[Datom] = []
        for name, eid in zip(_BASE_PARTITIONS, part_eids):
            datoms.append(Datom(eid, ident, name, tx))
            datoms.append(Datom(part_eids[0], attr_eids["db.install/partition"], eid, tx))
        for schema in _BUILTIN_ATTRIBUTES:
            eid = attr_eids[schema.ident]
            for key, value in schema.to_tx().items():
                if key in _ATTRIBUTE_FIELDS:
                    datoms.append(Datom(eid, attr_eids[key], value, tx))
            datoms.append(Datom(part_eids[0], attr_eids["db.install/attribute"], eid, tx))
        datoms.append(Datom(tx, attr_eids["db/txInstant"], self._clock(), tx))

        idents = {name: eid for name, eid in zip(_BASE_PARTITIONS, part_eids)}
        idents.update(attr_eids)
        return MemoryDb(
            basis_t=0,
            datoms=tuple(datoms),
            idents=MappingProxyType(idents),
            attributes=MappingProxyType({attr_eids[s.ident]: s for s in _BUILTIN_ATTRIBUTES}),
            partitions=_BASE_PARTITIONS,
        )


class _Transaction:
    """Applies tx items to working copies of a MemoryDb."""

    def __init__(self, db: MemoryDb, allocate: Callable[[int], int], instant: datetime) -> None:
        self.db = db
        self._allocate = allocate
        self.datoms: list[Datom] = list(db.datoms)
        self.tx_data: list[Datom] = []
        self.tempids: dict[TempId, int] = {}
        self.tx = allocate(db.partitions.index("db.part/tx"))
        self._assert(self.tx, db.attribute_eid("db/txInstant"), instant)

    def apply(self, item: Any) -> None:
        if isinstance(item, Mapping):
            self._apply_map(item)
            return
        if isinstance(item, (list, tuple)) and item:
            op = item[0]
            if op in ("db/add", "db/retract"):
                if len(item) != 4:
                    raise EngineError(f"{op} needs [op e a v]: {item!r}")
                _, entity_spec, attribute, value = item
                eid = self._entity(entity_spec)
                attr_eid = self.db.attribute_eid(attribute)
                for resolved in self._values(attr_eid, value):
                    if op == "db/add":
                        self._assert(eid, attr_eid, resolved)
                    else:
                        self._retract(eid, attr_eid, resolved)
                return
            if op == "db.fn/retractEntity":
                if len(item) != 2:
                    raise EngineError(f"{op} needs [op e]: {item!r}")
                self._retract_entity(self._entity(item[1]))
                return
        raise EngineError(f"unsupported tx item: {item!r}")

    def commit(self) -> MemoryDb:
        idents = dict(self.db.idents)
        ident_attr = self.db.attribute_eid("db/ident")
        for datom in self.tx_data:
            if datom.a != ident_attr:
                continue
            if datom.added:
                idents[datom.v] = datom.e
            elif idents.get(datom.v) == datom.e:
                del idents[datom.v]

        attributes = dict(self.db.attributes)
        partitions = list(self.db.partitions)
        install_attr = self.db.attribute_eid("db.install/attribute")
        install_part = self.db.attribute_eid("db.install/partition")
        by_eid = {eid: ident for ident, eid in idents.items()}
        for datom in self.tx_data:
            if not datom.added:
                continue
            if datom.a == install_attr:
                attributes[datom.v] = self._attribute_schema(datom.v)
            elif datom.a == install_part:
                name = by_eid.get(datom.v)
                if name is None:
                    raise EngineError("installed partition has no db/ident")
                if name not in partitions:
                    partitions.append(name)

        return MemoryDb(
            basis_t=self.db.basis_t + 1,
            datoms=tuple(self.datoms),
            idents=MappingProxyType(idents),
            attributes=MappingProxyType(attributes),
            partitions=tuple(partitions),
        )

    def _apply_map(self, item: Mapping[str, Any]) -> None:
        eid = self._entity(item["db/id"] if "db/id" in item else tempid())
        for attribute, value in item.items():
            if attribute == "db/id":
                continue
            if not is_keyword(attribute):
                raise EngineError(f"attribute must be keyword: {attribute!r}")
            forward = forward_attribute(attribute)
            if forward != attribute:
                target = self._entity(value)
                self._assert(target, self.db.attribute_eid(forward), eid)
                continue
            attr_eid = self.db.attribute_eid(attribute)
            for resolved in self._values(attr_eid, value):
                self._assert(eid, attr_eid, resolved)

    def _entity(self, entity_spec: Any) -> int:
        if isinstance(entity_spec, TempId):
            if entity_spec not in self.tempids:
                if entity_spec.partition not in self.db.partitions:
                    raise EngineError(f"unknown partition: {entity_spec.partition}")
                self.tempids[entity_spec] = self._allocate(self.db.partitions.index(entity_spec.partition))
            return self.tempids[entity_spec]
        eid = self._working_db().resolve(entity_spec)
        if eid is None:
            raise EngineError(f"cannot resolve entity: {entity_spec!r}")
        return eid

    def _values(self, attr_eid: int, value: Any) -> list[Any]:
        attr = self.db.attributes[attr_eid]
        if attr.many and isinstance(value, (list, set, frozenset)):
            values = list(value)
        else:
            values = [value]
        if attr.is_ref:
            return [v if isinstance(v, int) and not isinstance(v, bool) else self._entity(v) for v in values]
        return values

    def _assert(self, eid: int, attr_eid: int, value: Any) -> None:
        attr = self.db.attributes[attr_eid]
        existing = [d for d in self.datoms if d.e == eid and d.a == attr_eid]
        if any(d.v == value for d in existing):
            return
        if not attr.many:
            for datom in existing:
                self._retract(eid, attr_eid, datom.v)
        datom = Datom(eid, attr_eid, value, self.tx, True)
        self.datoms.append(datom)
        self.tx_data.append(datom)

    def _retract(self, eid: int, attr_eid: int, value: Any) -> None:
        for idx, datom in enumerate(self.datoms):
            if datom.e == eid and datom.a == attr_eid and datom.v == value:
                del self.datoms[idx]
                self.tx_data.append(Datom(eid, attr_eid, value, self.tx, False))
                return

    def _retract_entity(self, eid: int) -> None:
        components: list[int] = []
        for datom in [d for d in self.datoms if d.e == eid]:
            attr = self.db.attributes[datom.a]
            if attr.is_component:
                components.append(datom.v)
            self._retract(datom.e, datom.a, datom.v)
        for datom in [d for d in self.datoms if d.v == eid and self.db.attributes[d.a].is_ref]:
            self._retract(datom.e, datom.a, datom.v)
        for component in components:
            self._retract_entity(component)

    def _attribute_schema(self, eid: int) -> AttributeSchema:
        by_attr = {self.db.ident_of(d.a): d.v for d in self.datoms if d.e == eid}
        try:
            return AttributeSchema.from_tx(by_attr)
        except (InvalidIdentifier, InvalidValueType) as exc:
            raise EngineError(f"invalid attribute definition for entity {eid}: {exc}") from exc

    def _working_db(self) -> MemoryDb:
        return MemoryDb(
            basis_t=self.db.basis_t,
            datoms=tuple(self.datoms),
            idents=self.db.idents,
            attributes=self.db.attributes,
            partitions=self.db.partitions,
        )
