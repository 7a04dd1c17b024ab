from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from functools import reduce
import logging
import os
from uuid import UUID, uuid4

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from sqlalchemy import create_engine

from ledger.calculate import calculate_stats
from ledger.currency_conversion import DEFAULT_RATES, ExchangeRates, normalize_currency
from ledger.domain import Account, Category, Period, Transaction, TrnPurpose, TrnType, Value
from ledger.store import insert_transaction, metadata, select_transactions
from ledger.trn_where import (
    ActualBetween,
    ByAccount,
    ByCategory,
    ByType,
    ByTypeIn,
    TrnWhere,
    and_,
)

logger = logging.getLogger(__name__)

app = FastAPI()

frontend_origin = os.getenv("FRONTEND_ORIGIN", "http://localhost:3000")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[frontend_origin],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

database_url = os.getenv("DATABASE_URL", "sqlite:///./ledger.db")
connect_args = {}
if database_url.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(database_url, connect_args=connect_args)


def get_system_default_currency() -> str:
    raw = os.getenv("DEFAULT_CURRENCY", "USD")
    try:
        currency = normalize_currency(raw)
    except ValueError:
        return "USD"
    return currency if currency in DEFAULT_RATES else "USD"


SYSTEM_DEFAULT_CURRENCY = get_system_default_currency()
RATES = ExchangeRates.default(SYSTEM_DEFAULT_CURRENCY)


@app.on_event("startup")
def init_db() -> None:
    metadata.create_all(engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


class TransactionPayload(BaseModel):
    account_id: UUID
    amount: Decimal
    currency: str | None = None
    type: str
    purpose: str | None = None
    category_id: UUID | None = None
    to_account_id: UUID | None = None
    date_time: datetime | None = None
    due_date: datetime | None = None
    title: str | None = None

    @classmethod
    def validate_payload(cls, payload: "TransactionPayload") -> "TransactionPayload":
        payload.type = TrnType.validate(payload.type).value
        if payload.purpose is not None:
            purpose = payload.purpose.strip().lower()
            if purpose not in {item.value for item in TrnPurpose}:
                raise ValueError("Invalid transaction purpose.")
            payload.purpose = purpose
        payload.currency = (
            normalize_currency(payload.currency)
            if payload.currency
            else SYSTEM_DEFAULT_CURRENCY
        )
        payload.title = payload.title.strip() if payload.title else None
        if payload.amount <= 0:
            raise ValueError("Amount must be greater than zero.")
        return payload


class TransactionResponse(TransactionPayload):
    id: UUID
    currency: str


class StatsResponse(BaseModel):
    currency: str
    balance: Decimal
    income: Decimal
    expense: Decimal
    incomes_count: int
    expenses_count: int


def build_filter(
    account_id: UUID | None,
    category_id: str | None,
    types: list[str] | None,
    start: datetime | None,
    end: datetime | None,
) -> TrnWhere | None:
    conditions: list[TrnWhere] = []
    if account_id is not None:
        conditions.append(ByAccount(Account(id=account_id)))
    if category_id is not None:
        if category_id.strip().lower() == "none":
            conditions.append(ByCategory(None))
        else:
            conditions.append(ByCategory(Category(id=UUID(category_id))))
    if types:
        trn_types = [TrnType.validate(value) for value in types]
        if len(trn_types) == 1:
            conditions.append(ByType(trn_types[0]))
        else:
            conditions.append(ByTypeIn(trn_types))
    if start is not None or end is not None:
        if start is None or end is None:
            raise ValueError("Both from and to are required for a date range.")
        conditions.append(ActualBetween(Period(from_=start, to=end)))
    if not conditions:
        return None
    return reduce(and_, conditions)


def to_response(trn: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=trn.id,
        account_id=trn.account_id,
        amount=trn.value.amount,
        currency=trn.value.currency,
        type=trn.type.value,
        purpose=trn.purpose.value if trn.purpose else None,
        category_id=trn.category_id,
        to_account_id=trn.to_account_id,
        date_time=trn.date_time,
        due_date=trn.due_date,
        title=trn.title,
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/transactions", response_model=TransactionResponse)
def create_transaction(payload: TransactionPayload) -> TransactionResponse:
    try:
        payload = TransactionPayload.validate_payload(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    trn = Transaction(
        id=uuid4(),
        account_id=payload.account_id,
        type=TrnType(payload.type),
        purpose=TrnPurpose(payload.purpose) if payload.purpose else None,
        value=Value(amount=payload.amount, currency=payload.currency),
        category_id=payload.category_id,
        to_account_id=payload.to_account_id,
        date_time=payload.date_time,
        due_date=payload.due_date,
        title=payload.title,
    )
    with engine.begin() as conn:
        insert_transaction(conn, trn)
    return to_response(trn)


@app.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    account_id: UUID | None = None,
    category_id: str | None = None,
    type: list[str] | None = Query(None),
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
) -> list[TransactionResponse]:
    try:
        where = build_filter(account_id, category_id, type, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        trns = select_transactions(conn, where)
    return [to_response(trn) for trn in trns]


@app.get("/stats", response_model=StatsResponse)
def transaction_stats(
    account_id: UUID | None = None,
    category_id: str | None = None,
    type: list[str] | None = Query(None),
    start: datetime | None = Query(None, alias="from"),
    end: datetime | None = Query(None, alias="to"),
    include_transfers: bool = False,
    currency: str | None = None,
) -> StatsResponse:
    try:
        where = build_filter(account_id, category_id, type, start, end)
        output_currency = normalize_currency(currency) if currency else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    with engine.begin() as conn:
        trns = select_transactions(conn, where)
    stats = calculate_stats(
        trns,
        include_transfers=include_transfers,
        rates=RATES,
        output_currency=output_currency,
    )
    return StatsResponse(
        currency=stats.balance.currency,
        balance=stats.balance.amount,
        income=stats.income.amount,
        expense=stats.expense.amount,
        incomes_count=stats.incomes_count,
        expenses_count=stats.expenses_count,
    )
