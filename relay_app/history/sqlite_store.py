"""SQLite-backed trade history for audit trails exported from the terminal."""

import sqlite3
import threading
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Optional

import structlog

from ..models.history import TradeRecord, TradeSide
from ..utils.time import format_timestamp, parse_timestamp
from .provider import HistoryProvider

logger = structlog.get_logger(__name__)


class SqliteHistoryProvider(HistoryProvider):
    """Reads closed trades from a ``trades`` table."""

    def __init__(self, db_path: str = "history.db"):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS trades (
                    ticket INTEGER PRIMARY KEY,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    open_time TEXT NOT NULL,
                    close_time TEXT,
                    lots TEXT NOT NULL,
                    open_price TEXT NOT NULL,
                    close_price TEXT,
                    profit TEXT NOT NULL,
                    pips INTEGER NOT NULL DEFAULT 0
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_trades_symbol ON trades(symbol)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_trades_close_time ON trades(close_time)
            """)

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error("History database error", db_path=str(self.db_path), error=str(e))
            raise
        finally:
            if conn:
                conn.close()

    def add_trade(self, record: TradeRecord) -> None:
        """Insert or replace a trade, keyed by ticket."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT OR REPLACE INTO trades (
                        ticket, symbol, side, open_time, close_time,
                        lots, open_price, close_price, profit, pips
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.ticket,
                    record.symbol,
                    record.side.value,
                    format_timestamp(record.open_time),
                    format_timestamp(record.close_time),
                    str(record.lots),
                    str(record.open_price),
                    str(record.close_price) if record.close_price is not None else None,
                    str(record.profit),
                    record.pips,
                ))
                conn.commit()

    def fetch(self, symbol: Optional[str] = None, limit: Optional[int] = None) -> list[TradeRecord]:
        query = "SELECT * FROM trades"
        params: list = []

        if symbol is not None:
            query += " WHERE symbol = ?"
            params.append(symbol)

        query += " ORDER BY COALESCE(close_time, open_time) DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()

        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: sqlite3.Row) -> TradeRecord:
        return TradeRecord(
            ticket=row["ticket"],
            symbol=row["symbol"],
            side=TradeSide(row["side"]),
            open_time=parse_timestamp(row["open_time"]),
            close_time=parse_timestamp(row["close_time"]) if row["close_time"] else None,
            lots=Decimal(row["lots"]),
            open_price=Decimal(row["open_price"]),
            close_price=Decimal(row["close_price"]) if row["close_price"] is not None else None,
            profit=Decimal(row["profit"]),
            pips=row["pips"],
        )
