"""Income/expense statistics for a list of transactions in one currency."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import logging
from typing import Callable, Iterable, Iterator, List, Sequence

from ledger.currency_conversion import ExchangeRates, exchange, normalize_currency
from ledger.domain import ZERO, ONE, Stats, Transaction, TrnType, Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SumArg:
    rates: ExchangeRates
    output_currency: str


Selector = Callable[[Transaction, SumArg], Decimal]


def sum_transactions(
    transactions: Iterable[Transaction],
    selectors: Sequence[Selector],
    arg: SumArg,
) -> List[Decimal]:
    """Fold ``transactions`` once, keeping one running total per selector."""
    totals = [ZERO] * len(selectors)
    for trn in transactions:
        for index, selector in enumerate(selectors):
            totals[index] += selector(trn, arg)
    return totals


def calculate_stats(
    transactions: Iterable[Transaction],
    include_transfers: bool,
    rates: ExchangeRates,
    output_currency: str | None = None,
) -> Stats:
    """Calculate income, expense, counts and balance in ``output_currency``.

    ``include_transfers=False`` drops both legs of every transfer.
    ``output_currency=None``, or a malformed code, uses the base currency
    of ``rates``.
    Amounts that cannot be converted count as zero.
    """
    currency = _resolve_currency(output_currency, rates)
    selected = (
        trn for trn in transactions if include_transfers or not trn.is_transfer_leg
    )
    income, expense, incomes_count, expenses_count = sum_transactions(
        selected,
        selectors=(_income, _expense, _count_income, _count_expense),
        arg=SumArg(rates=rates, output_currency=currency),
    )

    return Stats(
        balance=Value(amount=income - expense, currency=currency),
        income=Value(amount=income, currency=currency),
        expense=Value(amount=expense, currency=currency),
        incomes_count=int(incomes_count),
        expenses_count=int(expenses_count),
    )


def iter_stats(
    transactions: Sequence[Transaction],
    include_transfers: bool,
    rates_snapshots: Iterable[ExchangeRates],
    output_currency: str | None = None,
) -> Iterator[Stats]:
    """Recalculate stats from scratch for every new rates snapshot."""
    for rates in rates_snapshots:
        yield calculate_stats(
            transactions,
            include_transfers=include_transfers,
            rates=rates,
            output_currency=output_currency,
        )


def _resolve_currency(output_currency: str | None, rates: ExchangeRates) -> str:
    if not output_currency:
        return rates.base_currency
    try:
        return normalize_currency(output_currency)
    except ValueError:
        logger.warning(
            "Invalid output currency %r, using %s", output_currency, rates.base_currency
        )
        return rates.base_currency


def _income(trn: Transaction, arg: SumArg) -> Decimal:
    if trn.type is TrnType.INCOME:
        return _amount_in_currency(trn, arg)
    return ZERO


def _expense(trn: Transaction, arg: SumArg) -> Decimal:
    if trn.type is TrnType.EXPENSE:
        return _amount_in_currency(trn, arg)
    return ZERO


def _count_income(trn: Transaction, arg: SumArg) -> Decimal:
    return ONE if trn.type is TrnType.INCOME else ZERO


def _count_expense(trn: Transaction, arg: SumArg) -> Decimal:
    return ONE if trn.type is TrnType.EXPENSE else ZERO


def _amount_in_currency(trn: Transaction, arg: SumArg) -> Decimal:
    converted = exchange(
        arg.rates,
        from_currency=trn.value.currency,
        to_currency=arg.output_currency,
        amount=trn.value.amount,
    )
    if converted is None:
        logger.debug(
            "Transaction %s counted as 0: no rate %s -> %s",
            trn.id,
            trn.value.currency,
            arg.output_currency,
        )
        return ZERO
    return converted
