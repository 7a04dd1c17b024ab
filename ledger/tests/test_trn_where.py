import unittest
from datetime import datetime, timezone
from functools import reduce
from uuid import UUID, uuid4

from ledger.domain import Account, Category, Period, TrnType
from ledger.trn_where import (
    ActualBetween,
    And,
    ByAccount,
    ByAccountIn,
    ByCategory,
    ByCategoryIn,
    ById,
    ByIdIn,
    ByToAccount,
    ByToAccountIn,
    ByType,
    ByTypeIn,
    DueBetween,
    Not,
    Or,
    WhereClause,
    and_,
    brackets,
    not_,
    or_,
    to_where_clause,
)

TRN_1 = UUID("00000000-0000-0000-0000-000000000001")
TRN_2 = UUID("00000000-0000-0000-0000-000000000002")
TRN_3 = UUID("00000000-0000-0000-0000-000000000003")

CASH = Account(id=UUID("10000000-0000-0000-0000-000000000001"), name="Cash")
BANK = Account(id=UUID("10000000-0000-0000-0000-000000000002"), name="Bank")
FOOD = Category(id=UUID("20000000-0000-0000-0000-000000000001"), name="Food")
RENT = Category(id=UUID("20000000-0000-0000-0000-000000000002"), name="Rent")

MAY = Period(from_=datetime(2024, 5, 1), to=datetime(2024, 5, 31, 23, 59, 59))


class LeafConditionTests(unittest.TestCase):
    def test_by_id_binds_storage_key(self) -> None:
        clause = to_where_clause(ById(TRN_1))

        self.assertEqual(clause, WhereClause(query="id = ?", args=(str(TRN_1),)))

    def test_by_id_in_keeps_input_order(self) -> None:
        clause = to_where_clause(ByIdIn([TRN_3, TRN_1, TRN_2]))

        self.assertEqual(clause.query, "id IN (?, ?, ?)")
        self.assertEqual(clause.args, (str(TRN_3), str(TRN_1), str(TRN_2)))

    def test_single_element_membership_has_one_placeholder(self) -> None:
        clause = to_where_clause(ByTypeIn([TrnType.EXPENSE]))

        self.assertEqual(clause.query, "type IN (?)")
        self.assertEqual(clause.args, ("expense",))

    def test_by_type_binds_type_code(self) -> None:
        self.assertEqual(
            to_where_clause(ByType(TrnType.INCOME)),
            WhereClause(query="type = ?", args=("income",)),
        )

    def test_account_conditions_bind_account_ids(self) -> None:
        self.assertEqual(
            to_where_clause(ByAccount(CASH)),
            WhereClause(query="accountId = ?", args=(str(CASH.id),)),
        )
        self.assertEqual(
            to_where_clause(ByAccountIn([CASH, BANK])),
            WhereClause(
                query="accountId IN (?, ?)", args=(str(CASH.id), str(BANK.id))
            ),
        )

    def test_to_account_conditions_bind_account_ids(self) -> None:
        self.assertEqual(
            to_where_clause(ByToAccount(BANK)),
            WhereClause(query="toAccountId = ?", args=(str(BANK.id),)),
        )
        self.assertEqual(
            to_where_clause(ByToAccountIn([BANK])),
            WhereClause(query="toAccountId IN (?)", args=(str(BANK.id),)),
        )

    def test_by_category_binds_category_id(self) -> None:
        self.assertEqual(
            to_where_clause(ByCategory(FOOD)),
            WhereClause(query="categoryId = ?", args=(str(FOOD.id),)),
        )

    def test_no_category_compiles_to_is_null_without_args(self) -> None:
        clause = to_where_clause(ByCategory(None))

        self.assertEqual(clause.query, "categoryId IS NULL")
        self.assertEqual(clause.args, ())

    def test_category_in_binds_none_for_uncategorized(self) -> None:
        clause = to_where_clause(ByCategoryIn([FOOD, None, RENT]))

        self.assertEqual(clause.query, "categoryId IN (?, ?, ?)")
        self.assertEqual(clause.args, (str(FOOD.id), None, str(RENT.id)))

    def test_due_between_guards_null_due_date(self) -> None:
        clause = to_where_clause(DueBetween(MAY))

        self.assertEqual(
            clause.query,
            "(dueDate IS NOT NULL AND dueDate >= ? AND dueDate <= ?)",
        )
        self.assertEqual(clause.args, (MAY.from_, MAY.to))

    def test_actual_between_guards_null_date_time(self) -> None:
        clause = to_where_clause(ActualBetween(MAY))

        self.assertEqual(
            clause.query,
            "(dateTime IS NOT NULL AND dateTime >= ? AND dateTime <= ?)",
        )
        self.assertEqual(clause.args, (MAY.from_, MAY.to))


class CombinatorTests(unittest.TestCase):
    def test_and_concatenates_args_in_order(self) -> None:
        left = ByAccount(CASH)
        right = ByCategoryIn([FOOD, RENT])

        clause = to_where_clause(and_(left, right))

        self.assertEqual(clause.query, "accountId = ? AND categoryId IN (?, ?)")
        self.assertEqual(
            clause.args, to_where_clause(left).args + to_where_clause(right).args
        )

    def test_or_concatenates_args_in_order(self) -> None:
        clause = to_where_clause(or_(ByType(TrnType.EXPENSE), ById(TRN_2)))

        self.assertEqual(clause.query, "type = ? OR id = ?")
        self.assertEqual(clause.args, ("expense", str(TRN_2)))

    def test_brackets_and_not_pass_args_through(self) -> None:
        clause = to_where_clause(not_(brackets(ByIdIn([TRN_1, TRN_2]))))

        self.assertEqual(clause.query, "NOT((id IN (?, ?)))")
        self.assertEqual(clause.args, (str(TRN_1), str(TRN_2)))

    def test_operators_build_combinator_nodes(self) -> None:
        cash = ByAccount(CASH)
        food = ByCategory(FOOD)

        self.assertEqual(cash & food, And(cash, food))
        self.assertEqual(cash | food, Or(cash, food))
        self.assertEqual(~cash, Not(cash))

    def test_null_category_inside_composition_keeps_alignment(self) -> None:
        where = brackets(ByCategory(None) | ByCategory(RENT)) & ActualBetween(MAY)

        clause = to_where_clause(where)

        self.assertEqual(
            clause.query,
            "(categoryId IS NULL OR categoryId = ?) AND "
            "(dateTime IS NOT NULL AND dateTime >= ? AND dateTime <= ?)",
        )
        self.assertEqual(clause.args, (str(RENT.id), MAY.from_, MAY.to))

    def test_placeholders_match_args_for_deep_tree(self) -> None:
        where = ~brackets(
            (ByIdIn([TRN_1, TRN_2]) & ByCategory(None))
            | (DueBetween(MAY) & ByToAccountIn([CASH, BANK]))
        ) & (ByType(TrnType.TRANSFER) | ByCategoryIn([None]))

        clause = to_where_clause(where)

        self.assertEqual(clause.placeholder_count(), len(clause.args))
        self.assertEqual(
            clause.args,
            (
                str(TRN_1),
                str(TRN_2),
                MAY.from_,
                MAY.to,
                str(CASH.id),
                str(BANK.id),
                "transfer",
                None,
            ),
        )

    def test_very_deep_tree_compiles(self) -> None:
        ids = [uuid4() for _ in range(5000)]
        left = reduce(and_, [ById(trn_id) for trn_id in ids])
        right = reduce(and_, [ById(trn_id) for trn_id in ids])

        clause = to_where_clause(brackets(left) | ~right)

        chain = " AND ".join(["id = ?"] * len(ids))
        self.assertEqual(clause.query, f"({chain}) OR NOT({chain})")
        self.assertEqual(clause.args, tuple(str(trn_id) for trn_id in ids) * 2)

    def test_compiling_twice_gives_identical_output(self) -> None:
        where = (ByAccountIn([BANK, CASH]) & DueBetween(MAY)) | ~ByCategory(FOOD)

        self.assertEqual(to_where_clause(where), to_where_clause(where))


class ConstructionTests(unittest.TestCase):
    def test_empty_membership_is_rejected(self) -> None:
        for factory in (ByIdIn, ByCategoryIn, ByAccountIn, ByToAccountIn, ByTypeIn):
            with self.subTest(factory=factory.__name__):
                with self.assertRaises(ValueError):
                    factory([])

    def test_membership_accepts_generators(self) -> None:
        condition = ByIdIn(trn_id for trn_id in (TRN_1, TRN_2))

        self.assertEqual(condition.ids, (TRN_1, TRN_2))

    def test_period_rejects_mixed_timezone_awareness(self) -> None:
        with self.assertRaises(ValueError):
            Period(
                from_=datetime(2024, 5, 1, tzinfo=timezone.utc),
                to=datetime(2024, 6, 1),
            )

    def test_reversed_period_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Period(from_=datetime(2024, 6, 1), to=datetime(2024, 5, 1))

    def test_unknown_condition_raises_type_error(self) -> None:
        with self.assertRaises(TypeError):
            to_where_clause("id = 1")


if __name__ == "__main__":
    unittest.main()
