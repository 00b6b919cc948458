"""Result sinks: durable, append-only outcome records for audit.

Every sink persists a record as soon as ``write`` returns.
"""

import csv
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Protocol

from xrpl_payout.models import OutcomeRecord

log = logging.getLogger("xrpl_payout.sinks")

CSV_FIELDS = ["row", "name", "address", "destination_tag", "usd_amount", "outcome", "tx_hash", "detail"]


class ResultSink(Protocol):
    def write(self, record: OutcomeRecord) -> None: ...
    def close(self) -> None: ...


class InMemorySink:
    def __init__(self) -> None:
        self.records: list[OutcomeRecord] = []

    def write(self, record: OutcomeRecord) -> None:
        self.records.append(record)

    def close(self) -> None:
        pass


class CsvResultSink:
    """Writes one CSV line per outcome, flushed immediately."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._fh = self.path.open("w", newline="", encoding="utf-8")
        self._writer = csv.DictWriter(self._fh, fieldnames=CSV_FIELDS)
        self._writer.writeheader()
        self._fh.flush()

    def write(self, record: OutcomeRecord) -> None:
        self._writer.writerow(record.as_row())
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "CsvResultSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class SQLiteResultSink:
    """Append-only outcome table, one committed row per recipient."""

    def __init__(self, db_path: str | Path = "payout_audit.db", run_id: str | None = None) -> None:
        self.db_path = Path(db_path)
        self.run_id = run_id or uuid.uuid4().hex
        self._conn = sqlite3.connect(self.db_path)
        self._init_db()

    def _init_db(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS outcomes (
                run_id TEXT NOT NULL,
                row_index INTEGER NOT NULL,
                name TEXT NOT NULL,
                address TEXT NOT NULL,
                destination_tag INTEGER,
                usd_amount TEXT NOT NULL,
                outcome TEXT NOT NULL,
                tx_hash TEXT,
                detail TEXT,
                recorded_at REAL NOT NULL,
                PRIMARY KEY (run_id, row_index)
            );
            CREATE INDEX IF NOT EXISTS idx_outcome_kind ON outcomes(outcome);
            CREATE INDEX IF NOT EXISTS idx_outcome_tx ON outcomes(tx_hash);
            """
        )
        self._conn.commit()
        log.debug("SQLite audit database initialized at %s (run %s)", self.db_path, self.run_id)

    def write(self, record: OutcomeRecord) -> None:
        r = record.recipient
        self._conn.execute(
            """
            INSERT INTO outcomes
                (run_id, row_index, name, address, destination_tag, usd_amount, outcome, tx_hash, detail, recorded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                self.run_id,
                record.row_index,
                r.name,
                r.address,
                r.destination_tag,
                str(r.usd_amount),
                record.kind.value,
                record.tx_hash,
                record.outcome.detail,
                time.time(),
            ),
        )
        self._conn.commit()

    def load_run(self, run_id: str | None = None) -> list[dict]:
        cursor = self._conn.execute(
            "SELECT row_index, name, address, destination_tag, usd_amount, outcome, tx_hash, detail "
            "FROM outcomes WHERE run_id = ? ORDER BY row_index",
            (run_id or self.run_id,),
        )
        cols = [c[0] for c in cursor.description]
        return [dict(zip(cols, row)) for row in cursor.fetchall()]

    def close(self) -> None:
        self._conn.close()


class FanOutSink:
    """Writes each record to several sinks in order."""

    def __init__(self, *sinks: ResultSink) -> None:
        self.sinks = sinks

    def write(self, record: OutcomeRecord) -> None:
        for s in self.sinks:
            s.write(record)

    def close(self) -> None:
        for s in self.sinks:
            s.close()
