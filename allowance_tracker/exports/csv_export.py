"""
CSV export of the transaction log.

One row per transaction in the order given (the log is newest first).
Every field is quoted so free-text descriptions with commas or quotes
survive a round trip through spreadsheet software.
"""

import csv
import io
from datetime import date
from typing import Iterable

from allowance_tracker.models.ledger import Transaction


CSV_COLUMNS = ["Date", "Time", "Child", "Bucket", "Kind", "Amount", "Description"]


def transaction_row(transaction: Transaction) -> dict[str, str]:
    return {
        "Date": transaction.timestamp.date().isoformat(),
        "Time": transaction.timestamp.strftime("%H:%M:%S"),
        "Child": transaction.child_name,
        "Bucket": transaction.bucket.value,
        "Kind": transaction.kind.value,
        "Amount": f"{transaction.amount:.2f}",
        "Description": transaction.description,
    }


def export_transactions(transactions: Iterable[Transaction]) -> bytes:
    """Render transactions as UTF-8 CSV bytes with a header row."""
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, quoting=csv.QUOTE_ALL)
    writer.writeheader()
    for transaction in transactions:
        writer.writerow(transaction_row(transaction))
    return buffer.getvalue().encode("utf-8")


def transactions_filename(today: date) -> str:
    return f"transactions-{today.isoformat()}.csv"
