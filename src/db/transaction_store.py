"""SQLite-backed transaction store used by the batch orchestrator."""

import math
import re
import sqlite3
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Protocol
import pandas as pd
from src.constants import TransactionCategory
from src.db.schemas import create_all_tables, SUMMARY_QUERY, SPEND_BY_CATEGORY_QUERY
from src.models.transaction import Transaction
from src.utils.errors import StoreError
from src.utils.logging import get_logger

logger = get_logger(__name__)

_READ_ONLY_SQL = re.compile(r"^\s*(select|with)\b", re.IGNORECASE)

_COLUMNS = [
    "source", "target", "amount", "date_of_transaction", "type", "mode",
    "category", "other_info", "original_message", "created_at", "updated_at",
]


class TransactionStore(Protocol):
    """Persistence operations the orchestrator relies on"""

    def add(self, transaction: Transaction) -> int: ...

    def list_all(self) -> List[Transaction]: ...

    def clear_all(self) -> None: ...


class SqliteTransactionStore:
    """Transactions table in a local SQLite database"""

    def __init__(self, db_path: str = ":memory:"):
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.connection = sqlite3.connect(db_path, check_same_thread=False)
            create_all_tables(self.connection)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open transaction store at {db_path}: {e}")

        self.db_path = db_path
        logger.info("Transaction store ready", db_path=db_path)

    def add(self, transaction: Transaction) -> int:
        """Insert a transaction and return its row id"""
        amount = float(transaction.amount)
        if not math.isfinite(amount):
            raise StoreError(f"Amount out of range for storage: {transaction.amount}")

        values = (
            transaction.source,
            transaction.target,
            amount,
            transaction.date_of_transaction,
            transaction.type.value,
            transaction.mode.value,
            transaction.category.value,
            transaction.other_info,
            transaction.original_message,
            transaction.created_at,
            transaction.updated_at,
        )
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            cursor = self.connection.execute(
                f"INSERT INTO transactions ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                values,
            )
            self.connection.commit()
        except (sqlite3.Error, OverflowError) as e:
            raise StoreError(f"Failed to insert transaction: {e}")
        return cursor.lastrowid

    def list_all(self) -> List[Transaction]:
        """All transactions, most recent transaction date first"""
        rows = self._fetch_rows(
            "SELECT * FROM transactions ORDER BY date_of_transaction DESC, id DESC"
        )
        return [self._row_to_transaction(row) for row in rows]

    def clear_all(self) -> None:
        try:
            self.connection.execute("DELETE FROM transactions")
            self.connection.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to clear transactions: {e}")

    def summary(self) -> Dict[str, Any]:
        """
        Aggregate counters for the spends overview.

        Returns:
            {'total_count', 'total_debits', 'total_credits', 'distinct_category_count'}
        """
        row = self._fetch_rows(SUMMARY_QUERY)[0]
        return {
            'total_count': row['total_count'],
            'total_debits': float(row['total_debits']),
            'total_credits': float(row['total_credits']),
            'distinct_category_count': row['distinct_category_count'],
        }

    def spend_by_category(self) -> Dict[str, Decimal]:
        """Debit totals per category, largest first"""
        rows = self._fetch_rows(SPEND_BY_CATEGORY_QUERY)
        return {row['category']: Decimal(str(row['total'])) for row in rows}

    def raw_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Run an ad-hoc read-only query for analytics.

        Args:
            sql: A single SELECT (or WITH ... SELECT) statement

        Returns:
            List of row dicts

        Raises:
            StoreError: If the statement is not read-only or fails
        """
        statement = sql.strip().rstrip(";").strip()
        if not _READ_ONLY_SQL.match(statement) or ";" in statement:
            raise StoreError("Only single SELECT statements are allowed")

        try:
            df = pd.read_sql_query(statement, self.connection)
        except Exception as e:
            raise StoreError(f"Query failed: {e}")

        # NaN -> None so rows stay JSON friendly
        df = df.astype(object).where(pd.notnull(df), None)
        return df.to_dict('records')

    def _fetch_rows(self, sql: str) -> List[sqlite3.Row]:
        cursor = self.connection.cursor()
        cursor.row_factory = sqlite3.Row
        try:
            return cursor.execute(sql).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}")
        finally:
            cursor.close()

    def close(self) -> None:
        self.connection.close()

    @staticmethod
    def _row_to_transaction(row: sqlite3.Row) -> Transaction:
        try:
            category = TransactionCategory(row['category'])
        except ValueError:
            category = TransactionCategory.OTHER

        return Transaction(
            id=row['id'],
            source=row['source'],
            target=row['target'],
            amount=Decimal(str(row['amount'])),
            date_of_transaction=row['date_of_transaction'],
            type=row['type'],
            mode=row['mode'],
            category=category,
            other_info=row['other_info'],
            original_message=row['original_message'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
        )
