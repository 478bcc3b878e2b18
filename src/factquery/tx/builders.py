"""Transaction-data builders.

Every builder returns plain tx-data (a dict or a tuple) ready to be passed to
``transact``; nothing here talks to an engine.
"""

from __future__ import annotations

from typing import Any, Mapping

from factquery.errors import InvalidIdentifier
from factquery.tx.schema import AttributeSchema, TempId, is_keyword, keyword_namespace, tempid


# option keyword -> (schema field, value)
_ATTRIBUTE_OPTIONS: dict[str, tuple[str, Any]] = {
    "db.unique/value": ("unique", "db.unique/value"),
    "db.unique/identity": ("unique", "db.unique/identity"),
    "db.cardinality/one": ("cardinality", "db.cardinality/one"),
    "db.cardinality/many": ("cardinality", "db.cardinality/many"),
    "db/index": ("index", True),
    "db/noindex": ("index", False),
    "db/fulltext": ("fulltext", True),
    "db/isComponent": ("is_component", True),
    "db/noHistory": ("no_history", True),
}

_OPTION_NAMESPACES = {"db", "db.unique", "db.cardinality"}


def new_partition(ident: str) -> dict[str, Any]:
    """Tx-data installing a new partition named ``ident``."""
    if not is_keyword(ident):
        raise InvalidIdentifier(f"partition ident must be keyword: {ident!r}")
    return {
        "db/id": tempid("db.part/db"),
        "db.install/_partition": "db.part/db",
        "db/ident": ident,
    }


def new_attribute(ident: str, value_type: str, *options: str) -> dict[str, Any]:
    """Tx-data installing a new attribute.

    Attributes default to ``db.cardinality/one`` and ``db/index`` true.
    Options are the keywords ``db.unique/value``, ``db.unique/identity``,
    ``db.cardinality/one``, ``db.cardinality/many``, ``db/index``,
    ``db/noindex``, ``db/fulltext``, ``db/isComponent`` and
    ``db/noHistory``; any other string is taken as the ``db/doc`` text.
    """
    fields: dict[str, Any] = {}
    for option in options:
        if not isinstance(option, str):
            raise InvalidIdentifier(f"attribute option must be a keyword or doc string: {option!r}")
        if option in _ATTRIBUTE_OPTIONS:
            name, value = _ATTRIBUTE_OPTIONS[option]
            fields[name] = value
        elif is_keyword(option) and keyword_namespace(option) in _OPTION_NAMESPACES:
            raise InvalidIdentifier(f"unknown attribute option: {option}")
        else:
            fields["doc"] = option
    return AttributeSchema(ident=ident, value_type=value_type, **fields).to_tx()


def new_entity(partition_or_attrs: str | Mapping[str, Any], attrs: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Tx-data creating an entity: ``new_entity(attrs)`` or ``new_entity(partition, attrs)``.

    The default partition is ``db.part/user``.
    """
    if attrs is None:
        partition, values = "db.part/user", partition_or_attrs
    else:
        partition, values = partition_or_attrs, attrs
    if not isinstance(partition, str):
        raise InvalidIdentifier(f"partition must be a keyword: {partition!r}")
    return {"db/id": tempid(partition), **_attr_map(values)}


def new_enum(ident: str) -> dict[str, Any]:
    """Tx-data creating an enumeration entity named ``ident``."""
    if not is_keyword(ident):
        raise InvalidIdentifier(f"enum ident must be keyword: {ident!r}")
    return new_entity({"db/ident": ident})


def update(entity_spec: Any, attrs: Mapping[str, Any]) -> dict[str, Any]:
    """Tx-data asserting attribute values on an existing entity.

    Cardinality-one values replace the previous value; cardinality-many values
    accumulate.
    """
    return {"db/id": ensure_entity_spec(entity_spec), **_attr_map(attrs)}


def add_value(entity_spec: Any, attribute: str, value: Any) -> tuple[str, Any, str, Any]:
    return ("db/add", ensure_entity_spec(entity_spec), _attribute(attribute), value)


def retract_value(entity_spec: Any, attribute: str, value: Any) -> tuple[str, Any, str, Any]:
    """Tx-data retracting one attribute value of an entity."""
    return ("db/retract", ensure_entity_spec(entity_spec), _attribute(attribute), value)


def retract_entity(entity_spec: Any) -> tuple[str, Any]:
    """Tx-data retracting an entity, every reference to it and its components."""
    return ("db.fn/retractEntity", ensure_entity_spec(entity_spec))


def ensure_entity_spec(entity_spec: Any) -> Any:
    """Accept an eid, a tempid, an ident keyword or a lookup ref ``(attr, value)``."""
    if isinstance(entity_spec, bool):
        raise InvalidIdentifier(f"invalid entity spec: {entity_spec!r}")
    if isinstance(entity_spec, (int, TempId)):
        return entity_spec
    if isinstance(entity_spec, str) and is_keyword(entity_spec):
        return entity_spec
    if isinstance(entity_spec, (list, tuple)) and len(entity_spec) == 2 and is_keyword(entity_spec[0]):
        return (entity_spec[0], entity_spec[1])
    raise InvalidIdentifier(f"invalid entity spec: {entity_spec!r}")


def _attr_map(values: Any) -> dict[str, Any]:
    if not isinstance(values, Mapping):
        raise InvalidIdentifier("attribute values must be a mapping")
    return {_attribute(key): value for key, value in values.items()}


def _attribute(attribute: Any) -> str:
    if not is_keyword(attribute):
        raise InvalidIdentifier(f"attribute must be keyword: {attribute!r}")
    return attribute
