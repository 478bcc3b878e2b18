from datetime import datetime, timezone
import threading
import unittest

from factquery.errors import EngineError
from factquery.fact_store.introspect import transact
from factquery.fact_store.memory import MemoryEngine
from factquery.tx.builders import (
    new_attribute,
    new_entity,
    new_enum,
    new_partition,
    retract_entity,
    retract_value,
    update,
)
from factquery.tx.schema import tempid


FIXED = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def _people_engine() -> tuple[MemoryEngine, dict[str, int]]:
    engine = MemoryEngine(clock=lambda: FIXED)
    transact(
        engine,
        new_attribute("person/name", "db.type/string", "db.unique/identity"),
        new_attribute("person/age", "db.type/long"),
        new_attribute("person/friends", "db.type/ref", "db.cardinality/many"),
        new_attribute("person/color", "db.type/ref"),
    )
    transact(engine, new_enum("color/red"), new_enum("color/blue"))
    james = tempid()
    honey = tempid()
    result = transact(
        engine,
        {"db/id": james, "person/name": "James", "person/age": 40, "person/color": "color/red"},
        {"db/id": honey, "person/name": "Honey", "person/age": 30},
    )
    return engine, {"james": result.tempids[james], "honey": result.tempids[honey]}


class TestMemoryTransactions(unittest.TestCase):
    def test_bootstrap_schema(self) -> None:
        engine = MemoryEngine()
        db = engine.db()
        self.assertEqual(db.basis_t, 0)
        self.assertEqual(db.partitions, ("db.part/db", "db.part/tx", "db.part/user"))
        self.assertEqual(engine.entid(db, "db.part/db"), 0)
        self.assertEqual(engine.resolve_ident(db, engine.entid(db, "db/ident")), "db/ident")

    def test_entities_and_enum_refs(self) -> None:
        engine, eids = _people_engine()
        db = engine.db()
        self.assertEqual(
            engine.entity(db, eids["james"]),
            {"person/name": "James", "person/age": 40, "person/color": "color/red"},
        )
        self.assertEqual(engine.entid(db, ("person/name", "Honey")), eids["honey"])
        self.assertEqual(engine.partition_of(db, eids["james"]), "db.part/user")
        self.assertEqual(eids["james"] >> 42, 2)

    def test_cardinality_one_replaces(self) -> None:
        engine, eids = _people_engine()
        result = transact(engine, update(("person/name", "James"), {"person/age": 41}))
        self.assertEqual(engine.entity(result.db_after, eids["james"])["person/age"], 41)
        ages = [d for d in result.tx_data if engine.resolve_ident(result.db_after, d.a) == "person/age"]
        self.assertEqual([(d.v, d.added) for d in ages], [(40, False), (41, True)])
        # the previous database value is untouched
        self.assertEqual(engine.entity(result.db_before, eids["james"])["person/age"], 40)

    def test_cardinality_many_accumulates(self) -> None:
        engine, eids = _people_engine()
        transact(engine, update(eids["james"], {"person/friends": [("person/name", "Honey")]}))
        transact(engine, update(eids["honey"], {"person/friends": eids["james"]}))
        transact(engine, update(eids["honey"], {"person/friends": [eids["honey"]]}))
        db = engine.db()
        self.assertEqual(engine.entity(db, eids["james"])["person/friends"], {eids["honey"]})
        self.assertEqual(
            engine.entity(db, eids["honey"])["person/friends"], {eids["james"], eids["honey"]}
        )

    def test_retractions(self) -> None:
        engine, eids = _people_engine()
        transact(engine, update(eids["james"], {"person/friends": [eids["honey"]]}))
        transact(engine, retract_value(eids["james"], "person/age", 40))
        self.assertNotIn("person/age", engine.entity(engine.db(), eids["james"]))

        transact(engine, retract_entity(("person/name", "Honey")))
        db = engine.db()
        self.assertEqual(engine.entity(db, eids["honey"]), {})
        self.assertNotIn("person/friends", engine.entity(db, eids["james"]))
        self.assertIsNone(engine.entid(db, ("person/name", "Honey")))

    def test_user_partition(self) -> None:
        engine = MemoryEngine()
        transact(engine, new_partition("people"))
        transact(engine, new_attribute("person/name", "db.type/string"))
        result = transact(engine, new_entity("people", {"person/name": "Q"}))
        (eid,) = result.tempids.values()
        self.assertEqual(engine.partition_of(result.db_after, eid), "people")
        self.assertEqual(engine.entid_at(result.db_after, "people", 0), 3 << 42)

    def test_failed_transaction_leaves_db_unchanged(self) -> None:
        engine, _ = _people_engine()
        before = engine.db()
        with self.assertRaisesRegex(EngineError, "unknown attribute"):
            transact(engine, new_entity({"person/name": "Max"}), new_entity({"person/shoe": 44}))
        self.assertIs(engine.db(), before)
        with self.assertRaisesRegex(EngineError, "unknown partition"):
            transact(engine, new_entity("nowhere", {"person/name": "Max"}))
        with self.assertRaises(EngineError):
            transact(engine, ("db/frobnicate", 1))

    def test_concurrent_transactions(self) -> None:
        engine, _ = _people_engine()

        def worker(idx: int) -> None:
            transact(engine, new_entity({"person/name": f"worker-{idx}"}))

        threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        db = engine.db()
        names = {d.v for d in engine.scan_datoms(db, "aevt", "person/name")}
        self.assertEqual(len(names), 10)
        self.assertEqual(db.basis_t, 3 + 8)


class TestMemoryIndexes(unittest.TestCase):
    def test_avet_orders_by_value(self) -> None:
        engine, eids = _people_engine()
        datoms = list(engine.scan_datoms(engine.db(), "avet", "person/age"))
        self.assertEqual([(d.e, d.v) for d in datoms], [(eids["honey"], 30), (eids["james"], 40)])

    def test_vaet_holds_refs_only(self) -> None:
        engine, eids = _people_engine()
        db = engine.db()
        red = engine.entid(db, "color/red")
        datoms = list(engine.scan_datoms(db, "vaet", "color/red"))
        self.assertEqual([(d.v, d.e) for d in datoms], [(red, eids["james"])])

    def test_seek_starts_at_component(self) -> None:
        engine, eids = _people_engine()
        db = engine.db()
        entities = {d.e for d in engine.seek_datoms(db, "eavt", eids["honey"])}
        self.assertEqual(entities, {eids["honey"]})

    def test_unknown_index(self) -> None:
        engine = MemoryEngine()
        with self.assertRaises(EngineError):
            list(engine.scan_datoms(engine.db(), "tvae"))


class TestMemoryQueries(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.eids = _people_engine()
        self.db = self.engine.db()

    def run_query(self, find, where, in_=("$",), args=None):
        return self.engine.execute_query(find, in_, where, args if args is not None else (self.db,))

    def test_join_and_predicate(self) -> None:
        rows = self.run_query(
            ("?name", "?age"),
            (("?e", "person/name", "?name"), ("?e", "person/age", "?age"), ((">", "?age", 35),)),
        )
        self.assertEqual(rows, [("James", 40)])

    def test_ref_value_by_ident(self) -> None:
        rows = self.run_query(("?name",), (("?e", "person/color", "color/red"), ("?e", "person/name", "?name")))
        self.assertEqual(rows, [("James",)])

    def test_scalar_and_collection_inputs(self) -> None:
        rows = self.run_query(
            ("?e",),
            (("?e", "person/name", "?name"),),
            in_=("$", ("?name", "...")),
            args=(self.db, ["Honey", "Nobody"]),
        )
        self.assertEqual(rows, [(self.eids["honey"],)])
        rows = self.run_query(
            ("?age",),
            (("?e", "person/name", "?name"), ("?e", "person/age", "?age")),
            in_=("$", "?name"),
            args=(self.db, "James"),
        )
        self.assertEqual(rows, [(40,)])

    def test_pull(self) -> None:
        (row,) = self.run_query(
            (("pull", "?e", ["person/name", "person/color"]),),
            (("?e", "person/name", "James"),),
        )
        red = self.engine.entid(self.db, "color/red")
        self.assertEqual(row[0], {"person/name": "James", "person/color": {"db/id": red}})
        (row,) = self.run_query((("pull", "?e", ["*"]),), (("?e", "person/name", "Honey"),))
        self.assertEqual(
            row[0], {"db/id": self.eids["honey"], "person/name": "Honey", "person/age": 30}
        )

    def test_unsupported_forms(self) -> None:
        with self.assertRaisesRegex(EngineError, "rule"):
            self.run_query(("?e",), (("adult", "?e"),))
        with self.assertRaisesRegex(EngineError, "insufficient binding"):
            self.run_query(("?e",), (("?e", "person/name", "?n"), (("<", "?age", 3),)))
        with self.assertRaisesRegex(EngineError, "unknown attribute"):
            self.run_query(("?e",), (("?e", "person/shoe", "?n"),))
        with self.assertRaises(EngineError):
            self.run_query(("?e",), (("?e", "person/name", "?n"),), in_=("$", "?x"))


if __name__ == "__main__":
    unittest.main()
