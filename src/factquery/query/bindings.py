"""Let-binding splitting."""

from __future__ import annotations

from typing import Any, Sequence

from factquery.errors import MalformedBindingList, MalformedClauseShape


def split_bindings(items: Sequence[Any]) -> tuple[list[Any], list[Any]]:
    """Separate ``[a, 1, b, 2]`` into ``([a, b], [1, 2])``."""
    if not isinstance(items, (list, tuple)):
        raise MalformedClauseShape(f"let must be a list, got {type(items).__name__}")
    if len(items) % 2 != 0:
        raise MalformedBindingList(
            f"let must hold variable/source pairs; got {len(items)} items"
        )
    return list(items[0::2]), list(items[1::2])
