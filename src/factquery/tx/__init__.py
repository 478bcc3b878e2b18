"""Transaction-data builders and attribute schema."""

from factquery.tx.schema import (
    RESERVED_ATTRVALS,
    AttributeRegistry,
    AttributeSchema,
    TempId,
    cache_attribute_schema,
    clear_attribute_schema_cache,
    load_attribute_schemas_from_cache,
    tempid,
)
from factquery.tx.builders import (
    add_value,
    ensure_entity_spec,
    new_attribute,
    new_entity,
    new_enum,
    new_partition,
    retract_entity,
    retract_value,
    update,
)

__all__ = [
    "RESERVED_ATTRVALS",
    "AttributeRegistry",
    "AttributeSchema",
    "TempId",
    "cache_attribute_schema",
    "clear_attribute_schema_cache",
    "load_attribute_schemas_from_cache",
    "tempid",
    "add_value",
    "ensure_entity_spec",
    "new_attribute",
    "new_entity",
    "new_enum",
    "new_partition",
    "retract_entity",
    "retract_value",
    "update",
]
