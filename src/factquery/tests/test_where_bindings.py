import unittest

from factquery.errors import MalformedBindingList, MalformedClauseShape
from factquery.ir.terms import Lit, Var
from factquery.query.bindings import split_bindings
from factquery.query.where import clause_attributes, normalize_where


class TestNormalizeWhere(unittest.TestCase):
    def test_preserves_map_and_entry_order(self) -> None:
        clauses = normalize_where(
            [
                {"db/id": "?a", "p/x": "?x", "p/y": "?y"},
                {"db/id": "?b", "p/z": "?z"},
            ]
        )
        self.assertEqual(
            clauses,
            [
                (Var("?a"), Lit("p/x"), Var("?x")),
                (Var("?a"), Lit("p/y"), Var("?y")),
                (Var("?b"), Lit("p/z"), Var("?z")),
            ],
        )

    def test_entity_only_map_emits_nothing(self) -> None:
        clauses = normalize_where([{"db/id": "?a"}, {"db/id": "?a", "p/x": 1}])
        self.assertEqual(clauses, [(Var("?a"), Lit("p/x"), Lit(1))])

    def test_missing_entity_binding(self) -> None:
        with self.assertRaisesRegex(MalformedClauseShape, r"where\[1\].*db/id"):
            normalize_where([{"db/id": "?a"}, {"p/x": "?x"}])

    def test_rejects_empty_and_non_mapping(self) -> None:
        with self.assertRaises(MalformedClauseShape):
            normalize_where([])
        with self.assertRaises(MalformedClauseShape):
            normalize_where([("?a", "p/x", "?x")])

    def test_clause_attributes_first_occurrence(self) -> None:
        clauses = normalize_where(
            [{"db/id": "?a", "p/x": "?x", "?attr": "?v"}, {"db/id": "?b", "p/x": "?x", "p/y": 2}]
        )
        self.assertEqual(clause_attributes(clauses), ["p/x", "p/y"])


class TestSplitBindings(unittest.TestCase):
    def test_even_odd_split(self) -> None:
        self.assertEqual(
            split_bindings(["$", "db", "?name", "Joe"]),
            (["$", "?name"], ["db", "Joe"]),
        )

    def test_empty(self) -> None:
        self.assertEqual(split_bindings([]), ([], []))

    def test_odd_length(self) -> None:
        with self.assertRaises(MalformedBindingList):
            split_bindings(["$", "db", "?name"])

    def test_not_a_list(self) -> None:
        with self.assertRaises(MalformedClauseShape):
            split_bindings({"$": "db"})


if __name__ == "__main__":
    unittest.main()
