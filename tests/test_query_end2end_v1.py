from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from factquery.errors import MalformedBindingList, OrphanSymbolError, OverusedWildcardError
from factquery.query_api import (
    CompileOptions,
    AttributeRegistry,
    MemoryEngine,
    compile_query,
    new_attribute,
    new_entity,
    new_enum,
    preflight_query,
    query,
    query_map,
    query_pull,
    transact,
)


@pytest.fixture()
def engine() -> MemoryEngine:
    engine = MemoryEngine()
    schema = [
        new_attribute("person/name", "db.type/string", "db.unique/identity"),
        new_attribute("person/born", "db.type/long"),
        new_attribute("person/likes", "db.type/ref", "db.cardinality/many"),
    ]
    transact(engine, *schema)
    transact(engine, new_enum("food/pizza"), new_enum("food/soup"))
    transact(
        engine,
        new_entity({"person/name": "Ada", "person/born": 1815, "person/likes": ["food/soup"]}),
        new_entity({"person/name": "Grace", "person/born": 1906, "person/likes": ["food/pizza", "food/soup"]}),
        new_entity({"person/name": "Alan", "person/born": 1912}),
    )
    return engine


def test_document_matches_reference_vector() -> None:
    db1 = object()
    doc = compile_query(
        {
            "let": ["$", db1],
            "yield": ["?e", "?name"],
            "where": [{"db/id": "?e", "person_name": "?name"}],
        }
    )
    assert doc.find == ("?e", "?name")
    assert doc.in_ == ("$",)
    assert doc.where == (("?e", "person_name", "?name"),)
    assert doc.args == (db1,)
    assert doc.canonical_json_bytes() == (
        b'{"find":["?e","?name"],"in":["$"],"where":[["?e","person_name","?name"]]}'
    )


def test_query_born_before(engine: MemoryEngine) -> None:
    result = query(
        engine,
        {
            "let": ["$", engine.db()],
            "yield": ["?name", "?born"],
            "where": [{"db/id": "?p", "person/name": "?name", "person/born": "?born"}],
            "preds": [("<", "?born", 1900)],
        },
    )
    assert result == {("Ada", 1815)}


def test_query_map_by_enum(engine: MemoryEngine) -> None:
    rows = query_map(
        engine,
        {
            "let": ["$", engine.db()],
            "yield": ["?name"],
            "where": [{"db/id": "?p", "person/likes": "food/soup", "person/name": "?name"}],
        },
    )
    assert rows == [{"name": "Ada"}, {"name": "Grace"}]


def test_query_pull_nested(engine: MemoryEngine) -> None:
    rows = query_pull(
        engine,
        {
            "let": ["$", engine.db()],
            "yield": [("pull", "?p", ["person/name", {"person/likes": ["db/ident"]}])],
            "where": [{"db/id": "?p", "person/name": "Grace"}],
        },
    )
    assert rows == [
        (
            {
                "person/name": "Grace",
                "person/likes": [{"db/ident": "food/pizza"}, {"db/ident": "food/soup"}],
            },
        )
    ]


def test_strict_attribute_registry_from_schema_tx() -> None:
    registry = AttributeRegistry.from_tx_data([new_attribute("person/name", "db.type/string")])
    report = preflight_query(
        {
            "let": ["$", "db"],
            "yield": ["?e"],
            "where": [{"db/id": "?e", "person/nickname": "?n*"}],
        },
        options=CompileOptions(attributes=registry),
    )
    assert report["ok"] is False
    assert report["errors"][0]["symbols"] == ["person/nickname"]


@pytest.mark.parametrize(
    ("context", "error"),
    [
        (
            {"let": ["$"], "yield": ["?e"], "where": [{"db/id": "?e", "a/b": "?e"}]},
            MalformedBindingList,
        ),
        (
            {"let": [], "yield": ["?e"], "where": [{"db/id": "?e", "a/b": "?name"}]},
            OrphanSymbolError,
        ),
        (
            {"let": [], "yield": ["?e"], "where": [{"db/id": "?e", "a/b": "?x*", "a/c": "?x*"}]},
            OverusedWildcardError,
        ),
    ],
)
def test_structural_errors_raise_before_engine(engine: MemoryEngine, context, error) -> None:
    with pytest.raises(error):
        query(engine, context)
