"""Custom exceptions for the query authoring layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from factquery.query.symbols import SymbolUsageReport


class QueryLayerError(Exception):
    """Base exception for query/transaction authoring failures."""


class MalformedClauseShape(QueryLayerError):
    """Raised when a query context section does not have the expected shape."""


class MalformedBindingList(QueryLayerError):
    """Raised when a let-binding list cannot be split into pairs."""


class SymbolUsageError(QueryLayerError):
    """Raised when query variables violate the orphan/wildcard usage rules.

    Attributes:
        symbols: Offending variable names for this error kind.
        report: Full usage report, carrying both orphan and wildcard findings.
    """

    def __init__(
        self,
        message: str,
        symbols: list[str],
        report: "SymbolUsageReport | None" = None,
    ) -> None:
        super().__init__(f"{message} {symbols}")
        self.symbols = list(symbols)
        self.report = report


class OrphanSymbolError(SymbolUsageError):
    """Raised when a regular query variable occurs exactly once."""


class OverusedWildcardError(SymbolUsageError):
    """Raised when a wildcard query variable occurs more than once."""


class UnknownAttributeError(QueryLayerError):
    """Raised when strict compilation finds an undeclared attribute."""

    def __init__(self, attributes: list[str]) -> None:
        super().__init__(f"Unknown attributes in where clauses: {attributes}")
        self.attributes = list(attributes)


class InvalidIdentifier(QueryLayerError):
    """Raised when an ident, option keyword or entity spec is malformed."""


class InvalidValueType(QueryLayerError):
    """Raised when an attribute definition names an unsupported value type."""


class ResultCardinalityError(QueryLayerError):
    """Raised when a shaped result does not hold exactly one row/value."""


class WrongResultVariantError(QueryLayerError):
    """Raised when a result variant is used with an incompatible projection."""


class FactStoreError(QueryLayerError):
    """Raised when fact store data violates an introspection contract."""


class EngineError(QueryLayerError):
    """Raised by the in-memory engine for malformed queries or transactions."""
