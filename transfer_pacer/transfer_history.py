"""
Transfer History Database

SQLite ledger of every quota slot outcome (sent, skipped, failed) for
reconciliation after the fact.

Tables:
- transfers: one row per attempted transfer
"""

import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from .transfer_executor import Failed, Sent, Skipped, TransferOutcome


@dataclass
class TransferRecord:
    """One recorded outcome"""
    account: str
    destination: str
    amount_wei: int
    outcome: str
    created_at: datetime
    pending_id: Optional[str] = None
    confirmation_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def day(self) -> str:
        return self.created_at.astimezone(timezone.utc).date().isoformat()

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['created_at'] = self.created_at.isoformat()
        data['day'] = self.day
        return data

    @classmethod
    def from_outcome(
        cls,
        account: str,
        destination: str,
        amount: int,
        outcome: TransferOutcome,
        created_at: Optional[datetime] = None
    ) -> 'TransferRecord':
        record = cls(
            account=account,
            destination=destination,
            amount_wei=amount,
            outcome=outcome.kind,
            created_at=created_at or datetime.now(timezone.utc),
        )
        if isinstance(outcome, Sent):
            record.pending_id = outcome.pending_id
            record.confirmation_id = outcome.confirmation_id
        elif isinstance(outcome, Skipped):
            record.reason = outcome.reason
        elif isinstance(outcome, Failed):
            record.pending_id = outcome.pending_id
            record.error = outcome.error
        return record


class TransferHistoryDB:
    """
    SQLite database for transfer outcomes

    Features:
    - Outcome logging per quota slot
    - Per-day queries
    - Aggregate statistics
    """

    def __init__(self, db_path: str = "transfer_history.db"):
        """
        Initialize database

        Args:
            db_path: Path to SQLite database (":memory:" for tests)
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self.conn: Optional[sqlite3.Connection] = None
        self._initialize_db()
        logger.info(f"Transfer history database initialized: {self.db_path}")

    def _initialize_db(self):
        self.conn = sqlite3.connect(str(self.db_path))
        self.conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self):
        cursor = self.conn.cursor()

        # Amounts are stored as TEXT: wei values overflow SQLite's 64-bit INTEGER
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transfers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TIMESTAMP NOT NULL,
                day TEXT NOT NULL,
                account TEXT NOT NULL,
                destination TEXT NOT NULL,
                amount_wei TEXT NOT NULL,
                outcome TEXT NOT NULL,
                pending_id TEXT,
                confirmation_id TEXT,
                reason TEXT,
                error TEXT,
                CONSTRAINT valid_outcome CHECK (outcome IN ('sent', 'skipped', 'failed'))
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_transfers_day ON transfers(day)")

        self.conn.commit()
        logger.debug("Database tables created successfully")

    def record(self, record: TransferRecord) -> bool:
        """
        Record an outcome

        Args:
            record: Transfer record

        Returns:
            Success status
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute("""
                INSERT INTO transfers (
                    created_at, day, account, destination, amount_wei, outcome,
                    pending_id, confirmation_id, reason, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.created_at.isoformat(),
                record.day,
                record.account,
                record.destination,
                str(record.amount_wei),
                record.outcome,
                record.pending_id,
                record.confirmation_id,
                record.reason,
                record.error,
            ))

            self.conn.commit()
            logger.debug(f"Transfer outcome recorded: {record.outcome} {record.pending_id or ''}")
            return True

        except sqlite3.Error as e:
            logger.error(f"✗ Error recording transfer outcome: {e}")
            self.conn.rollback()
            return False

    def record_outcome(
        self,
        account: str,
        destination: str,
        amount: int,
        outcome: TransferOutcome
    ) -> bool:
        return self.record(TransferRecord.from_outcome(account, destination, amount, outcome))

    def get_outcomes_for_day(self, day: str) -> List[Dict]:
        """All outcomes recorded on a UTC day (YYYY-MM-DD), oldest first"""
        cursor = self.conn.cursor()
        cursor.execute("SELECT * FROM transfers WHERE day = ? ORDER BY id", (day,))
        return [self._row_to_dict(row) for row in cursor.fetchall()]

    def get_statistics(self) -> Dict[str, Any]:
        """
        Aggregate statistics

        Returns:
            Statistics dictionary
        """
        cursor = self.conn.cursor()

        cursor.execute("SELECT outcome, COUNT(*) FROM transfers GROUP BY outcome")
        counts = {row[0]: row[1] for row in cursor.fetchall()}

        cursor.execute("SELECT amount_wei FROM transfers WHERE outcome = 'sent'")
        total_sent_wei = sum(int(row[0]) for row in cursor.fetchall())

        total = sum(counts.values())
        sent = counts.get('sent', 0)

        return {
            'total_attempts': total,
            'sent': sent,
            'skipped': counts.get('skipped', 0),
            'failed': counts.get('failed', 0),
            'success_rate': (sent / total * 100) if total > 0 else 0,
            'total_sent_wei': total_sent_wei,
        }

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict:
        data = dict(row)
        data['amount_wei'] = int(data['amount_wei'])
        return data

    def close(self):
        """Close database connection"""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed")
