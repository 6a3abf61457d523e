from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from types import TracebackType

from .config import SyncParameters

logger = logging.getLogger(__name__)

INSERTIONS_PER_TRANSACTION = 100

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS statistics (
    c INTEGER,
    chs TEXT,
    s INTEGER,
    pEB REAL,
    averagePsr REAL,
    Psr TEXT,
    tSCAN INTEGER,
    relativeErrorInAVG REAL,
    maxAbsoluteErrorInCDF REAL
)
"""

_INSERT = "INSERT INTO statistics VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)"


class StatisticsStore:
    """SQLite table of model-vs-simulator comparisons.

    Use as a context manager: pending inserts are committed and the connection
    is closed on every exit path. Inserts are grouped into transactions of
    INSERTIONS_PER_TRANSACTION rows.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._conn: sqlite3.Connection | None = None
        self._pending = 0
        self.inserted = 0

    def open(self) -> "StatisticsStore":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # check_same_thread=False: callers serialize access with their own lock
        self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
        self._conn.execute(_CREATE_TABLE)
        self._conn.execute("PRAGMA cache_size=10000")
        self._conn.commit()
        return self

    def close(self) -> None:
        if self._conn is None:
            return
        try:
            if self._pending:
                self._conn.commit()
                self._pending = 0
        finally:
            self._conn.close()
            self._conn = None
            logger.debug("closed %s after %d insertions", self.path, self.inserted)

    def __enter__(self) -> "StatisticsStore":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def save(self, params: SyncParameters, relative_error_avg: float, max_abs_error_cdf: float) -> None:
        if self._conn is None:
            raise RuntimeError("StatisticsStore is not open")
        chs = "[" + ",".join(str(ch) for ch in params.channels) + "]"
        psr = "{" + ",".join(f"{ch}:{p:g}" for ch, p in sorted(params.p_sr.items())) + "}"
        self._conn.execute(
            _INSERT,
            (
                params.channel_count,
                chs,
                params.slots,
                params.p_eb,
                params.average_psr,
                psr,
                params.t_scan_ns,
                relative_error_avg,
                max_abs_error_cdf,
            ),
        )
        self._pending += 1
        self.inserted += 1
        if self._pending >= INSERTIONS_PER_TRANSACTION:
            self._conn.commit()
            self._pending = 0

    def count(self) -> int:
        if self._conn is None:
            raise RuntimeError("StatisticsStore is not open")
        return self._conn.execute("SELECT COUNT(*) FROM statistics").fetchone()[0]
