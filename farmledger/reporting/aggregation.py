"""
Ledger Reporting

Pure functions over a transaction collection. They do not care whether the
transactions came from the backend, the local cache or an archive.
"""

from typing import Iterable, Optional

from farmledger.models.ledger import (
    LedgerSummary,
    MonthlyPoint,
    Transaction,
    TransactionType,
)


def summarize(transactions: Iterable[Transaction]) -> LedgerSummary:
    """Total income, expense and profit in a single pass."""
    income = 0.0
    expense = 0.0
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount
    return LedgerSummary(income=income, expense=expense, profit=income - expense)


def monthly_series(transactions: Iterable[Transaction]) -> list[MonthlyPoint]:
    """
    Income and expense per calendar month, oldest first.

    Periods are keyed "M/YYYY" so the same month in different years never
    collides. Transactions with an unparseable date are skipped.
    """
    grouped: dict[tuple[int, int], MonthlyPoint] = {}

    for tx in transactions:
        tx_date = tx.parsed_date
        if tx_date is None:
            continue

        key = (tx_date.year, tx_date.month)
        point = grouped.get(key)
        if point is None:
            point = MonthlyPoint(
                period=f"{tx_date.month}/{tx_date.year}",
                year=tx_date.year,
                month=tx_date.month,
            )
            grouped[key] = point

        if tx.type == TransactionType.INCOME:
            point.income += tx.amount
        else:
            point.expense += tx.amount

    return [grouped[key] for key in sorted(grouped)]


def category_breakdown(
    transactions: Iterable[Transaction],
    type: Optional[TransactionType] = None,
) -> dict[str, float]:
    """Total amount per category, largest first."""
    totals: dict[str, float] = {}
    for tx in transactions:
        if type is not None and tx.type != type:
            continue
        totals[tx.category] = totals.get(tx.category, 0.0) + tx.amount
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def filter_by_type(
    transactions: Iterable[Transaction],
    type: TransactionType,
) -> list[Transaction]:
    """Transactions of one type, newest first."""
    return sorted(
        (tx for tx in transactions if tx.type == type),
        key=lambda tx: tx.timestamp,
        reverse=True,
    )
