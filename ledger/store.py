from __future__ import annotations

from decimal import Decimal
import logging
import re
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    bindparam,
    insert,
    select,
    text,
)
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import TextClause

from ledger.domain import Transaction, TrnPurpose, TrnType, Value
from ledger.trn_where import TrnWhere, WhereClause, storage_key, to_where_clause

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\?")

metadata = MetaData()

transactions = Table(
    "transactions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("accountId", String(36), nullable=False),
    Column("toAccountId", String(36)),
    Column("categoryId", String(36)),
    Column("type", String(20), nullable=False),
    Column("purpose", String(20)),
    Column("amount", Numeric(18, 4), nullable=False),
    Column("currency", String(3), nullable=False),
    Column("dateTime", DateTime),
    Column("dueDate", DateTime),
    Column("title", String(255)),
)


def bind_where_clause(clause: WhereClause) -> TextClause:
    """Turn positional ``?`` placeholders into named bind parameters."""
    if clause.placeholder_count() != len(clause.args):
        raise ValueError(
            f"Where clause has {clause.placeholder_count()} placeholders "
            f"but {len(clause.args)} arguments."
        )
    counter = iter(range(len(clause.args)))
    sql = PLACEHOLDER.sub(lambda _: f":arg_{next(counter)}", clause.query)
    params = [
        bindparam(f"arg_{index}", value=value)
        for index, value in enumerate(clause.args)
    ]
    return text(sql).bindparams(*params)


def select_transactions(conn: Connection, where: TrnWhere | None = None) -> list[Transaction]:
    stmt = select(transactions)
    if where is not None:
        clause = to_where_clause(where)
        logger.debug("Selecting transactions where %s %s", clause.query, clause.args)
        stmt = stmt.where(bind_where_clause(clause))
    stmt = stmt.order_by(transactions.c.dateTime.desc(), transactions.c.id)
    rows = conn.execute(stmt).mappings().all()
    return [_row_to_transaction(row) for row in rows]


def insert_transaction(conn: Connection, trn: Transaction) -> None:
    conn.execute(
        insert(transactions).values(
            id=storage_key(trn.id),
            accountId=storage_key(trn.account_id),
            toAccountId=storage_key(trn.to_account_id),
            categoryId=storage_key(trn.category_id),
            type=trn.type.value,
            purpose=trn.purpose.value if trn.purpose else None,
            amount=trn.value.amount,
            currency=trn.value.currency,
            dateTime=trn.date_time,
            dueDate=trn.due_date,
            title=trn.title,
        )
    )


def _row_to_transaction(row) -> Transaction:
    amount = row["amount"]
    return Transaction(
        id=UUID(row["id"]),
        account_id=UUID(row["accountId"]),
        to_account_id=_to_uuid(row["toAccountId"]),
        category_id=_to_uuid(row["categoryId"]),
        type=TrnType(row["type"]),
        purpose=TrnPurpose(row["purpose"]) if row["purpose"] else None,
        value=Value(
            amount=amount if isinstance(amount, Decimal) else Decimal(str(amount)),
            currency=row["currency"],
        ),
        date_time=row["dateTime"],
        due_date=row["dueDate"],
        title=row["title"],
    )


def _to_uuid(value: str | None) -> UUID | None:
    return UUID(value) if value is not None else None
