"""Result shaping: raw engine rows -> tuple sets, keyed maps or ordered rows."""

from __future__ import annotations

from typing import Any, Iterable, Literal, Sequence

from factquery.errors import MalformedClauseShape, ResultCardinalityError


ResultShape = Literal["tuple_set", "map_set", "row_list"]
RESULT_SHAPES: tuple[str, ...] = ("tuple_set", "map_set", "row_list")


def shape_rows(
    rows: Iterable[Sequence[Any]],
    shape: ResultShape,
    *,
    labels: Sequence[str] | None = None,
) -> set[tuple[Any, ...]] | list[dict[str, Any]] | list[tuple[Any, ...]]:
    """Reshape engine rows according to the caller-selected policy.

    - ``tuple_set``: a set of unique tuples. Collection values are frozen
      (list -> tuple, dict -> sorted item tuple, set -> frozenset).
    - ``map_set``: unique ``{label: value}`` dicts, first-seen order. Uniqueness
      is tracked on the frozen row values; output keeps the original values.
    - ``row_list``: every row as a tuple, engine order, duplicates kept. Use
      it when a projection is a pull expression.
    """
    require_shape(shape)
    if shape == "tuple_set":
        return {tuple(freeze_value(value) for value in row) for row in rows}
    if shape == "row_list":
        return [tuple(row) for row in rows]
    if labels is None:
        raise MalformedClauseShape("map_set results need projection labels")
    return _keyed_rows(rows, list(labels))


def require_shape(shape: str) -> None:
    if shape not in RESULT_SHAPES:
        raise MalformedClauseShape(f"Unknown result shape: {shape!r}; expected one of {RESULT_SHAPES}")


def freeze_value(value: Any) -> Any:
    """Hashable stand-in for a row value, used for deduplication."""
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(item) for item in value)
    if isinstance(value, dict):
        return tuple(sorted(((key, freeze_value(item)) for key, item in value.items()), key=repr))
    if isinstance(value, (set, frozenset)):
        return frozenset(freeze_value(item) for item in value)
    return value


def _keyed_rows(rows: Iterable[Sequence[Any]], labels: list[str]) -> list[dict[str, Any]]:
    seen: set[tuple[Any, ...]] = set()
    out: list[dict[str, Any]] = []
    for row in rows:
        values = tuple(row)
        if len(values) != len(labels):
            raise MalformedClauseShape(
                f"row width {len(values)} does not match {len(labels)} projection labels"
            )
        key = tuple(freeze_value(value) for value in values)
        if key in seen:
            continue
        seen.add(key)
        out.append(dict(zip(labels, values)))
    return out


def only_tuple(result: Iterable[Any]) -> Any:
    """Return the single row of a shaped result."""
    items = list(result)
    if len(items) != 1:
        raise ResultCardinalityError(f"expected exactly one result row, got {len(items)}")
    return items[0]


def only_scalar(result: Iterable[Any]) -> Any:
    """Return the single value of a single-row, single-column result."""
    row = only_tuple(result)
    values = list(row.values()) if isinstance(row, dict) else list(row)
    if len(values) != 1:
        raise ResultCardinalityError(f"expected exactly one result value, got {len(values)}")
    return values[0]
