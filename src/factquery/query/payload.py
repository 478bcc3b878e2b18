"""Pydantic model validating the shape of a query context payload."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from factquery.errors import MalformedClauseShape
from factquery.ir.context import QueryContext
from factquery.query.where import ENTITY_KEY


class QueryContextPayload(BaseModel):
    """Strict shape of a query context; unknown sections are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    let: list[Any]
    yield_: list[Any] = Field(alias="yield")
    where: list[Any] = Field(min_length=1)
    preds: list[Any] = Field(default_factory=list)
    rules: list[Any] = Field(default_factory=list)

    @field_validator("let", "yield_", "where", "preds", "rules", mode="before")
    @classmethod
    def _ordered_section(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"section must be an ordered list, got {type(value).__name__}")
        return list(value)

    @field_validator("where")
    @classmethod
    def _clause_maps(cls, value: list[Any]) -> list[Any]:
        for idx, item in enumerate(value):
            if not isinstance(item, Mapping):
                raise ValueError(f"where[{idx}] must be a mapping")
            if ENTITY_KEY not in item:
                raise ValueError(f"where[{idx}] is missing the '{ENTITY_KEY}' entity binding")
        return value

    @field_validator("preds", "rules")
    @classmethod
    def _call_forms(cls, value: list[Any]) -> list[Any]:
        for idx, item in enumerate(value):
            if not isinstance(item, (list, tuple)) or not item:
                raise ValueError(f"entry {idx} must be a non-empty call form like (op, *args)")
        return value


def validate_context_payload(payload: Mapping[str, Any] | QueryContext) -> QueryContext:
    """Validate a context payload and return it as a QueryContext."""
    data = payload.to_dict() if isinstance(payload, QueryContext) else payload
    if not isinstance(data, Mapping):
        raise MalformedClauseShape("Query context must be a mapping.")
    try:
        model = QueryContextPayload.model_validate(dict(data))
    except ValidationError as exc:
        raise MalformedClauseShape(_format_validation_error(exc)) from exc
    return QueryContext(
        let=model.let,
        yield_=model.yield_,
        where=model.where,
        preds=model.preds,
        rules=model.rules,
    )


def _format_validation_error(exc: ValidationError) -> str:
    parts: list[str] = []
    for item in exc.errors():
        loc = ".".join(str(part) for part in item.get("loc", ()))
        parts.append(f"{loc or '$'}: {item.get('msg')}")
    return "Invalid query context: " + "; ".join(parts)


def payload_error_sections(exc: BaseException) -> set[str]:
    """Top-level context sections named by a strict validation failure."""
    cause = exc.__cause__
    if not isinstance(cause, ValidationError):
        return set()
    return {str(item["loc"][0]) for item in cause.errors() if item.get("loc")}
