import os
import tempfile
import unittest
from unittest import mock

from factquery.tx.schema import (
    AttributeRegistry,
    AttributeSchema,
    cache_attribute_schema,
    clear_attribute_schema_cache,
    load_attribute_schemas_from_cache,
)


class TestAttributeSchemaCache(unittest.TestCase):
    def test_cache_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with mock.patch.dict(os.environ, {"FACTQUERY_ATTRIBUTE_CACHE_DIR": tmpdir}):
                name = AttributeSchema("person/name", "db.type/string", doc="Full name")
                age = AttributeSchema("person/age", "db.type/long")
                cache_attribute_schema(name)
                cache_attribute_schema(age)

                loaded = load_attribute_schemas_from_cache()
                self.assertEqual([item.ident for item in loaded], ["person/age", "person/name"])
                self.assertEqual(loaded[1], name)

                registry = AttributeRegistry.from_cache()
                self.assertEqual(registry.get("person/name"), name)

                clear_attribute_schema_cache()
                self.assertEqual(load_attribute_schemas_from_cache(), [])

    def test_general_cache_dir_fallback(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            env = {"FACTQUERY_CACHE_DIR": tmpdir}
            with mock.patch.dict(os.environ, env):
                os.environ.pop("FACTQUERY_ATTRIBUTE_CACHE_DIR", None)
                cache_attribute_schema(AttributeSchema("city/name", "db.type/string"))
                self.assertTrue(os.listdir(tmpdir))
                self.assertEqual(
                    [item.ident for item in load_attribute_schemas_from_cache()], ["city/name"]
                )


if __name__ == "__main__":
    unittest.main()
