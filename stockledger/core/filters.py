"""
Filter expressions for record store queries.

A small closed expression language: equality, case-insensitive equality,
substring, substring-in-joined-array, AND, OR. Every node renders to an
Airtable formula (evaluated server-side) and can also be evaluated against a
plain record dict (used by the in-memory store and for exact post-filtering).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Literal

# Airtable's ARRAYJOIN default separator
ARRAY_SEPARATOR = ", "


def quote(value: Any) -> str:
    """Render a literal for a formula."""
    if isinstance(value, bool):
        return "TRUE()" if value else "FALSE()"
    if isinstance(value, int | float):
        return repr(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def as_text(value: Any) -> str:
    """Coerce a field value to text the way the store does for comparisons."""
    if value is None:
        return ""
    if isinstance(value, list):
        return ARRAY_SEPARATOR.join(as_text(v) for v in value)
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class Expr(ABC):
    """Filter expression node."""

    @abstractmethod
    def to_formula(self) -> str:
        """Render as an Airtable ``filterByFormula`` expression."""

    @abstractmethod
    def matches(self, record: dict[str, Any]) -> bool:
        """Evaluate against a record."""

    def __and__(self, other: "Expr") -> "And":
        return And(self, other)

    def __or__(self, other: "Expr") -> "Or":
        return Or(self, other)


@dataclass(frozen=True)
class Eq(Expr):
    """``{field} = value``."""

    field: str
    value: Any

    def to_formula(self) -> str:
        return f"{{{self.field}}} = {quote(self.value)}"

    def matches(self, record: dict[str, Any]) -> bool:
        actual = record.get(self.field)
        if isinstance(self.value, int | float) and not isinstance(self.value, bool):
            if isinstance(actual, int | float) and not isinstance(actual, bool):
                return actual == self.value
        return as_text(actual) == as_text(self.value)


def fold_text(value: str) -> str:
    """Trimmed, lower-cased text with internal whitespace runs collapsed."""
    return " ".join(value.split()).lower()


@dataclass(frozen=True)
class IEq(Expr):
    """Case-insensitive text equality, ignoring surrounding and repeated spaces."""

    field: str
    value: str

    def to_formula(self) -> str:
        folded = f'LOWER(TRIM(REGEX_REPLACE({{{self.field}}}, " +", " ")))'
        return f"{folded} = {quote(fold_text(self.value))}"

    def matches(self, record: dict[str, Any]) -> bool:
        return fold_text(as_text(record.get(self.field))) == fold_text(self.value)


@dataclass(frozen=True)
class Contains(Expr):
    """Case-insensitive substring match on a text field."""

    field: str
    value: str

    def to_formula(self) -> str:
        return f"FIND({quote(self.value.lower())}, LOWER({{{self.field}}})) > 0"

    def matches(self, record: dict[str, Any]) -> bool:
        return self.value.lower() in as_text(record.get(self.field)).lower()


@dataclass(frozen=True)
class ArrayContains(Expr):
    """
    Substring of the joined link array: ``FIND(value, ARRAYJOIN({field}))``.

    Substring semantics mean ``"b1"`` also matches ``["b12"]``; callers
    needing exact membership post-filter with :func:`has_link`.
    """

    field: str
    value: str

    def to_formula(self) -> str:
        return f"FIND({quote(self.value)}, ARRAYJOIN({{{self.field}}}))"

    def matches(self, record: dict[str, Any]) -> bool:
        return str(self.value) in as_text(record.get(self.field))


class And(Expr):
    """All sub-expressions hold."""

    def __init__(self, *exprs: Expr):
        self.exprs = tuple(exprs)

    def to_formula(self) -> str:
        if len(self.exprs) == 1:
            return self.exprs[0].to_formula()
        return "AND(" + ", ".join(e.to_formula() for e in self.exprs) + ")"

    def matches(self, record: dict[str, Any]) -> bool:
        return all(e.matches(record) for e in self.exprs)

    def __repr__(self) -> str:
        return f"And{self.exprs!r}"


class Or(Expr):
    """Any sub-expression holds."""

    def __init__(self, *exprs: Expr):
        self.exprs = tuple(exprs)

    def to_formula(self) -> str:
        if len(self.exprs) == 1:
            return self.exprs[0].to_formula()
        return "OR(" + ", ".join(e.to_formula() for e in self.exprs) + ")"

    def matches(self, record: dict[str, Any]) -> bool:
        return any(e.matches(record) for e in self.exprs)

    def __repr__(self) -> str:
        return f"Or{self.exprs!r}"


def all_of(*exprs: Expr | None) -> Expr | None:
    """AND together the non-None expressions; None when nothing remains."""
    present = [e for e in exprs if e is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(*present)


@dataclass(frozen=True)
class SortSpec:
    """Sort key for ``find``."""

    field: str
    direction: Literal["asc", "desc"] = "asc"


def has_link(record: dict[str, Any], field: str, record_id: str) -> bool:
    """Exact membership of an id in a link field (list or scalar)."""
    value = record.get(field)
    if isinstance(value, list):
        return record_id in value
    return value == record_id


def first_link(value: Any) -> str | None:
    """First id of a link field, tolerating scalar values."""
    if isinstance(value, list):
        return value[0] if value else None
    return value or None
