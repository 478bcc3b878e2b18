import unittest

from factquery.errors import MalformedClauseShape, ResultCardinalityError
from factquery.query.shaping import freeze_value, only_scalar, only_tuple, require_shape, shape_rows


ROWS = [(1, "a"), (1, "a"), (2, "b")]


class TestShapeRows(unittest.TestCase):
    def test_tuple_set_deduplicates(self) -> None:
        self.assertEqual(shape_rows(ROWS, "tuple_set"), {(1, "a"), (2, "b")})

    def test_row_list_keeps_order_and_duplicates(self) -> None:
        self.assertEqual(shape_rows(ROWS, "row_list"), [(1, "a"), (1, "a"), (2, "b")])

    def test_map_set(self) -> None:
        self.assertEqual(
            shape_rows([(42, "Joe")], "map_set", labels=["eid", "name"]),
            [{"eid": 42, "name": "Joe"}],
        )
        self.assertEqual(
            shape_rows(ROWS, "map_set", labels=["n", "s"]),
            [{"n": 1, "s": "a"}, {"n": 2, "s": "b"}],
        )

    def test_map_set_needs_matching_labels(self) -> None:
        with self.assertRaises(MalformedClauseShape):
            shape_rows(ROWS, "map_set")
        with self.assertRaises(MalformedClauseShape):
            shape_rows(ROWS, "map_set", labels=["only"])

    def test_unknown_shape(self) -> None:
        with self.assertRaisesRegex(MalformedClauseShape, "Unknown result shape"):
            shape_rows(ROWS, "scalar")  # type: ignore[arg-type]

    def test_collection_values_deduplicate(self) -> None:
        rows = [(1, [1, 2]), (1, [1, 2]), (2, {"k": {3}})]
        self.assertEqual(shape_rows(rows, "tuple_set"), {(1, (1, 2)), (2, (("k", frozenset({3})),))})
        self.assertEqual(
            shape_rows([(1, ["x"]), (1, ["x"])], "map_set", labels=["n", "xs"]),
            [{"n": 1, "xs": ["x"]}],
        )

    def test_empty_rows(self) -> None:
        self.assertEqual(shape_rows([], "tuple_set"), set())
        self.assertEqual(shape_rows([], "map_set", labels=["a"]), [])



class TestFreezeValue(unittest.TestCase):
    def test_nested_collections(self) -> None:
        self.assertEqual(freeze_value([1, [2, 3]]), (1, (2, 3)))
        self.assertEqual(freeze_value({"b": [1], "a": 2}), (("a", 2), ("b", (1,))))
        self.assertEqual(freeze_value({1, 2}), frozenset({1, 2}))
        self.assertEqual(freeze_value("s"), "s")
        hash(freeze_value({"pull": [{"x": {1}}]}))

    def test_require_shape(self) -> None:
        for shape in ("tuple_set", "map_set", "row_list"):
            require_shape(shape)
        with self.assertRaises(MalformedClauseShape):
            require_shape("set")

class TestCardinalityHelpers(unittest.TestCase):
    def test_only_tuple(self) -> None:
        self.assertEqual(only_tuple({(1, "a")}), (1, "a"))
        with self.assertRaises(ResultCardinalityError):
            only_tuple(set())
        with self.assertRaises(ResultCardinalityError):
            only_tuple([(1,), (2,)])

    def test_only_scalar(self) -> None:
        self.assertEqual(only_scalar({(7,)}), 7)
        self.assertEqual(only_scalar([{"n": 7}]), 7)
        with self.assertRaises(ResultCardinalityError):
            only_scalar({(1, 2)})


if __name__ == "__main__":
    unittest.main()
