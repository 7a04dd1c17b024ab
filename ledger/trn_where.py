"""Composable filter conditions over transactions.

A condition is a tree of ``TrnWhere`` nodes. ``to_where_clause`` turns the
tree into a SQL fragment with positional ``?`` placeholders and the values to
bind to them, in the same left-to-right order as the placeholders appear.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID

from ledger.domain import Account, Category, Period, TrnType


class TrnWhere:
    def __and__(self, other: "TrnWhere") -> "And":
        return And(self, other)

    def __or__(self, other: "TrnWhere") -> "Or":
        return Or(self, other)

    def __invert__(self) -> "Not":
        return Not(self)


def _non_empty(values: Iterable[Any], field_name: str) -> tuple:
    items = tuple(values)
    if not items:
        raise ValueError(f"{field_name} must contain at least one element.")
    return items


@dataclass(frozen=True)
class ById(TrnWhere):
    id: UUID


@dataclass(frozen=True)
class ByIdIn(TrnWhere):
    ids: tuple[UUID, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "ids", _non_empty(self.ids, "ids"))


@dataclass(frozen=True)
class ByCategory(TrnWhere):
    # None selects transactions without a category.
    category: Category | None


@dataclass(frozen=True)
class ByCategoryIn(TrnWhere):
    categories: tuple[Category | None, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "categories", _non_empty(self.categories, "categories"))


@dataclass(frozen=True)
class ByAccount(TrnWhere):
    account: Account


@dataclass(frozen=True)
class ByAccountIn(TrnWhere):
    accounts: tuple[Account, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "accounts", _non_empty(self.accounts, "accounts"))


@dataclass(frozen=True)
class ByToAccount(TrnWhere):
    to_account: Account


@dataclass(frozen=True)
class ByToAccountIn(TrnWhere):
    to_accounts: tuple[Account, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "to_accounts", _non_empty(self.to_accounts, "to_accounts"))


@dataclass(frozen=True)
class ByType(TrnWhere):
    trn_type: TrnType


@dataclass(frozen=True)
class ByTypeIn(TrnWhere):
    types: tuple[TrnType, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "types", _non_empty(self.types, "types"))


@dataclass(frozen=True)
class DueBetween(TrnWhere):
    """Due date within the inclusive period."""

    period: Period


@dataclass(frozen=True)
class ActualBetween(TrnWhere):
    """Actual date within the inclusive period."""

    period: Period


@dataclass(frozen=True)
class Brackets(TrnWhere):
    cond: TrnWhere


@dataclass(frozen=True)
class And(TrnWhere):
    cond1: TrnWhere
    cond2: TrnWhere


@dataclass(frozen=True)
class Or(TrnWhere):
    cond1: TrnWhere
    cond2: TrnWhere


@dataclass(frozen=True)
class Not(TrnWhere):
    cond: TrnWhere


def brackets(cond: TrnWhere) -> Brackets:
    return Brackets(cond)


def and_(cond1: TrnWhere, cond2: TrnWhere) -> And:
    return And(cond1, cond2)


def or_(cond1: TrnWhere, cond2: TrnWhere) -> Or:
    return Or(cond1, cond2)


def not_(cond: TrnWhere) -> Not:
    return Not(cond)


@dataclass(frozen=True)
class WhereClause:
    query: str
    args: tuple[Any, ...]

    def placeholder_count(self) -> int:
        return self.query.count("?")


def placeholders(count: int) -> str:
    return ", ".join("?" * count)


def storage_key(entity_id: UUID | None) -> str | None:
    return str(entity_id) if entity_id is not None else None


UNARY_TEMPLATES = {Brackets: "({})", Not: "NOT({})"}
BINARY_OPERATORS = {And: "AND", Or: "OR"}


def to_where_clause(where: TrnWhere) -> WhereClause:
    # Post-order walk with an explicit stack; tree depth is not bounded by
    # the interpreter recursion limit.
    stack: list[tuple[TrnWhere, bool]] = [(where, False)]
    compiled: list[tuple[str, list[Any]]] = []
    while stack:
        node, children_done = stack.pop()
        node_type = type(node)
        if node_type in UNARY_TEMPLATES:
            if not children_done:
                stack.append((node, True))
                stack.append((node.cond, False))
                continue
            query, args = compiled.pop()
            compiled.append((UNARY_TEMPLATES[node_type].format(query), args))
        elif node_type in BINARY_OPERATORS:
            if not children_done:
                stack.append((node, True))
                stack.append((node.cond2, False))
                stack.append((node.cond1, False))
                continue
            query2, args2 = compiled.pop()
            query1, args1 = compiled.pop()
            operator = BINARY_OPERATORS[node_type]
            compiled.append((f"{query1} {operator} {query2}", args1 + args2))
        else:
            compiled.append(_compile_leaf(node))

    query, args = compiled.pop()
    return WhereClause(query=query, args=tuple(args))


def _membership(field: str, keys: list[Any]) -> tuple[str, list[Any]]:
    return f"{field} IN ({placeholders(len(keys))})", keys


def _between(field: str, period: Period) -> tuple[str, list[Any]]:
    query = f"({field} IS NOT NULL AND {field} >= ? AND {field} <= ?)"
    return query, list(period.to_range())


def _compile_leaf(where: TrnWhere) -> tuple[str, list[Any]]:
    if isinstance(where, ById):
        return "id = ?", [storage_key(where.id)]
    if isinstance(where, ByIdIn):
        return _membership("id", [storage_key(trn_id) for trn_id in where.ids])

    if isinstance(where, ByType):
        return "type = ?", [where.trn_type.value]
    if isinstance(where, ByTypeIn):
        return _membership("type", [trn_type.value for trn_type in where.types])

    if isinstance(where, ByAccount):
        return "accountId = ?", [storage_key(where.account.id)]
    if isinstance(where, ByAccountIn):
        return _membership("accountId", [storage_key(acc.id) for acc in where.accounts])
    if isinstance(where, ByToAccount):
        return "toAccountId = ?", [storage_key(where.to_account.id)]
    if isinstance(where, ByToAccountIn):
        return _membership(
            "toAccountId", [storage_key(acc.id) for acc in where.to_accounts]
        )

    if isinstance(where, ByCategory):
        if where.category is None:
            return "categoryId IS NULL", []
        return "categoryId = ?", [storage_key(where.category.id)]
    if isinstance(where, ByCategoryIn):
        # Uncategorized entries stay in the list as NULL.
        return _membership(
            "categoryId",
            [storage_key(cat.id if cat is not None else None) for cat in where.categories],
        )

    if isinstance(where, DueBetween):
        return _between("dueDate", where.period)
    if isinstance(where, ActualBetween):
        return _between("dateTime", where.period)

    raise TypeError(f"Unsupported condition: {where!r}")
