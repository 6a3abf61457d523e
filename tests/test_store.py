import sqlite3
from pathlib import Path

import pytest

from tsch_sync.config import SyncParameters
from tsch_sync.store import INSERTIONS_PER_TRANSACTION, StatisticsStore


def _rows(path: Path) -> list[tuple]:
    conn = sqlite3.connect(str(path))
    try:
        return conn.execute("SELECT c, chs, s, Psr, tSCAN, relativeErrorInAVG FROM statistics").fetchall()
    finally:
        conn.close()


def test_rows_are_committed_on_close(tmp_path: Path, concrete_params: SyncParameters) -> None:
    db = tmp_path / "stats" / "validation.db"
    with StatisticsStore(db) as store:
        for i in range(INSERTIONS_PER_TRANSACTION + 5):
            store.save(concrete_params, 0.001 * i, 0.002)
        assert store.count() == INSERTIONS_PER_TRANSACTION + 5

    rows = _rows(db)
    assert len(rows) == INSERTIONS_PER_TRANSACTION + 5
    c, chs, s, psr, t_scan, rel = rows[1]
    assert (c, chs, s, t_scan) == (4, "[11,13,14,12]", 101, 5_250_000_000)
    assert psr == "{11:0.1,12:1,13:0.9,14:0.5}"
    assert rel == pytest.approx(0.001)


def test_rows_are_committed_when_block_raises(tmp_path: Path, concrete_params: SyncParameters) -> None:
    db = tmp_path / "validation.db"
    with pytest.raises(RuntimeError, match="boom"):
        with StatisticsStore(db) as store:
            store.save(concrete_params, 0.0, 0.0)
            raise RuntimeError("boom")
    assert len(_rows(db)) == 1


def test_save_requires_open_store(tmp_path: Path, concrete_params: SyncParameters) -> None:
    store = StatisticsStore(tmp_path / "validation.db")
    with pytest.raises(RuntimeError, match="not open"):
        store.save(concrete_params, 0.0, 0.0)
