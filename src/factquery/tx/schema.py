"""Attribute schema definitions, registry and on-disk cache."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional
import itertools
import os
import re
import tempfile

from diskcache import Cache

from factquery.errors import InvalidIdentifier, InvalidValueType


_ATTRIBUTE_CACHE_ENV = "FACTQUERY_ATTRIBUTE_CACHE_DIR"
_CACHE_ENV = "FACTQUERY_CACHE_DIR"
_SCHEMA_VERSION = 1

_KEYWORD_RE = re.compile(r"^[A-Za-z_*+!<>=.-][\w*+!<>=.?-]*(/[A-Za-z_*+!<>=.-][\w*+!<>=.?-]*)?$")

# Permissible values for the built-in attributes that define user attributes.
RESERVED_ATTRVALS: dict[str, frozenset[str]] = {
    "db/valueType": frozenset(
        {
            "db.type/keyword",
            "db.type/string",
            "db.type/boolean",
            "db.type/long",
            "db.type/bigint",
            "db.type/float",
            "db.type/double",
            "db.type/bigdec",
            "db.type/bytes",
            "db.type/instant",
            "db.type/uuid",
            "db.type/uri",
            "db.type/ref",
        }
    ),
    "db/cardinality": frozenset({"db.cardinality/one", "db.cardinality/many"}),
    "db/unique": frozenset({"db.unique/value", "db.unique/identity"}),
}

BUILTIN_NAMESPACES = ("db", "db.install", "db.fn", "db.part", "db.type", "db.cardinality", "db.unique")


def is_keyword(value: object) -> bool:
    return isinstance(value, str) and bool(_KEYWORD_RE.match(value))


def keyword_namespace(ident: str) -> str | None:
    if "/" not in ident:
        return None
    return ident.split("/", 1)[0]


def forward_attribute(ident: str) -> str:
    """Return the forward ident of a reverse reference: ``a/_b`` -> ``a/b``."""
    ns = keyword_namespace(ident)
    if ns is None:
        return ident
    name = ident.split("/", 1)[1]
    if name.startswith("_"):
        return f"{ns}/{name[1:]}"
    return ident


@dataclass(frozen=True)
class TempId:
    """Placeholder entity id, resolved to a real eid when a transaction commits."""

    partition: str
    serial: int

    def __repr__(self) -> str:
        return f"#db/id[{self.partition} {self.serial}]"


_TEMPID_SERIALS = itertools.count(1000001)


def tempid(partition: str = "db.part/user") -> TempId:
    """Allocate a fresh, process-unique tempid in a partition."""
    if not is_keyword(partition):
        raise InvalidIdentifier(f"partition must be a keyword: {partition!r}")
    return TempId(partition=partition, serial=-next(_TEMPID_SERIALS))


@dataclass(frozen=True)
class AttributeSchema:
    """User attribute definition."""

    ident: str
    value_type: str
    cardinality: str = "db.cardinality/one"
    unique: Optional[str] = None
    index: bool = True
    fulltext: bool = False
    is_component: bool = False
    no_history: bool = False
    doc: Optional[str] = None

    def __post_init__(self) -> None:
        if not is_keyword(self.ident):
            raise InvalidIdentifier(f"attribute ident must be keyword: {self.ident!r}")
        if self.value_type not in RESERVED_ATTRVALS["db/valueType"]:
            raise InvalidValueType(f"attribute value-type invalid: {self.ident} {self.value_type!r}")
        if self.cardinality not in RESERVED_ATTRVALS["db/cardinality"]:
            raise InvalidIdentifier(f"attribute cardinality invalid: {self.cardinality!r}")
        if self.unique is not None and self.unique not in RESERVED_ATTRVALS["db/unique"]:
            raise InvalidIdentifier(f"attribute unique invalid: {self.unique!r}")
        if self.doc is not None and not isinstance(self.doc, str):
            raise InvalidIdentifier("attribute doc must be a string")

    @property
    def many(self) -> bool:
        return self.cardinality == "db.cardinality/many"

    @property
    def is_ref(self) -> bool:
        return self.value_type == "db.type/ref"

    def to_tx(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "db/id": tempid("db.part/db"),
            "db.install/_attribute": "db.part/db",
            "db/cardinality": self.cardinality,
            "db/index": self.index,
            "db/ident": self.ident,
            "db/valueType": self.value_type,
        }
        if self.unique is not None:
            data["db/unique"] = self.unique
        if self.fulltext:
            data["db/fulltext"] = True
        if self.is_component:
            data["db/isComponent"] = True
        if self.no_history:
            data["db/noHistory"] = True
        if self.doc is not None:
            data["db/doc"] = self.doc
        return data

    @staticmethod
    def from_tx(data: Mapping[str, Any]) -> "AttributeSchema":
        if "db/ident" not in data or "db/valueType" not in data:
            raise InvalidIdentifier("attribute tx-data needs db/ident and db/valueType")
        return AttributeSchema(
            ident=data["db/ident"],
            value_type=data["db/valueType"],
            cardinality=data.get("db/cardinality", "db.cardinality/one"),
            unique=data.get("db/unique"),
            index=bool(data.get("db/index", True)),
            fulltext=bool(data.get("db/fulltext", False)),
            is_component=bool(data.get("db/isComponent", False)),
            no_history=bool(data.get("db/noHistory", False)),
            doc=data.get("db/doc"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": _SCHEMA_VERSION,
            "ident": self.ident,
            "value_type": self.value_type,
            "cardinality": self.cardinality,
            "unique": self.unique,
            "index": self.index,
            "fulltext": self.fulltext,
            "is_component": self.is_component,
            "no_history": self.no_history,
            "doc": self.doc,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "AttributeSchema":
        return AttributeSchema(
            ident=data["ident"],
            value_type=data["value_type"],
            cardinality=data.get("cardinality", "db.cardinality/one"),
            unique=data.get("unique"),
            index=bool(data.get("index", True)),
            fulltext=bool(data.get("fulltext", False)),
            is_component=bool(data.get("is_component", False)),
            no_history=bool(data.get("no_history", False)),
            doc=data.get("doc"),
        )


class AttributeRegistry:
    """Declared attributes, keyed by ident. Built-in ``db*`` idents are implied."""

    def __init__(self, schemas: Iterable[AttributeSchema] = ()) -> None:
        self._by_ident: dict[str, AttributeSchema] = {}
        for schema in schemas:
            self.register(schema)

    def register(self, schema: AttributeSchema) -> None:
        if not isinstance(schema, AttributeSchema):
            raise InvalidIdentifier("AttributeRegistry only accepts AttributeSchema entries")
        self._by_ident[schema.ident] = schema

    def get(self, ident: str) -> AttributeSchema | None:
        return self._by_ident.get(forward_attribute(ident))

    def is_declared(self, ident: str) -> bool:
        if keyword_namespace(ident) in BUILTIN_NAMESPACES:
            return True
        return forward_attribute(ident) in self._by_ident

    def undeclared(self, idents: Iterable[str]) -> list[str]:
        return [ident for ident in idents if not self.is_declared(ident)]

    def __contains__(self, ident: object) -> bool:
        return isinstance(ident, str) and self.is_declared(ident)

    def __iter__(self) -> Iterator[AttributeSchema]:
        return iter(self._by_ident.values())

    def __len__(self) -> int:
        return len(self._by_ident)

    @classmethod
    def from_tx_data(cls, tx_data: Iterable[Any]) -> "AttributeRegistry":
        """Collect attribute definitions from transaction data."""
        return cls(
            AttributeSchema.from_tx(item)
            for item in tx_data
            if isinstance(item, Mapping) and "db.install/_attribute" in item
        )

    @classmethod
    def from_cache(cls) -> "AttributeRegistry":
        return cls(load_attribute_schemas_from_cache())


def _attribute_cache_dir() -> Path:
    env_dir = os.environ.get(_ATTRIBUTE_CACHE_ENV) or os.environ.get(_CACHE_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path(tempfile.gettempdir()) / "factquery" / "attribute_cache"


def _open_attribute_cache() -> Cache:
    return Cache(str(_attribute_cache_dir()))


def cache_attribute_schema(schema: AttributeSchema) -> None:
    cache = _open_attribute_cache()
    try:
        cache.set(schema.ident, schema.to_dict())
    finally:
        cache.close()


def load_attribute_schemas_from_cache() -> list[AttributeSchema]:
    cache = _open_attribute_cache()
    try:
        items = [cache[key] for key in cache]
    finally:
        cache.close()
    schemas = [AttributeSchema.from_dict(item) for item in items]
    return sorted(schemas, key=lambda item: item.ident)


def clear_attribute_schema_cache() -> None:
    cache = _open_attribute_cache()
    try:
        cache.clear()
    finally:
        cache.close()
