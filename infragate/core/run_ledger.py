"""SQLite run ledger: one hash-chained row per state transition.

Everything the orchestrator knows about a run after a restart comes from
here: the run context, every stage transition, the approval signals and
the artifacts handed between stages.  Rows are only ever inserted.  Each
row carries the hash of the row before it in the same run, so editing or
deleting a row breaks the chain and ``verify_chain`` reports where.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from infragate.core.hasher import compute_entry_hash
from infragate.models.ledger import LedgerEntry

_SCHEMA = """
CREATE TABLE IF NOT EXISTS run_ledger (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    entry_id              TEXT NOT NULL UNIQUE,
    run_id                TEXT NOT NULL,
    stage_id              TEXT NOT NULL,
    state_transition      TEXT NOT NULL,
    timestamp_utc         TEXT NOT NULL,
    input_hash            TEXT NOT NULL DEFAULT '',
    output_hash           TEXT NOT NULL DEFAULT '',
    artifact_refs_json    TEXT NOT NULL DEFAULT '[]',
    approval_refs_json    TEXT NOT NULL DEFAULT '[]',
    details_json          TEXT NOT NULL DEFAULT '{}',
    pipeline_version      TEXT NOT NULL,
    previous_entry_hash   TEXT NOT NULL DEFAULT '',
    entry_hash            TEXT NOT NULL UNIQUE
);
CREATE INDEX IF NOT EXISTS idx_ledger_run ON run_ledger(run_id, id);
CREATE INDEX IF NOT EXISTS idx_ledger_run_stage ON run_ledger(run_id, stage_id, id);
"""

# Entry fields kept as JSON text, and the column each one lives in.
_JSON_COLUMNS = {
    "artifact_references": "artifact_refs_json",
    "approval_references": "approval_refs_json",
    "details": "details_json",
}


class LedgerIntegrityError(RuntimeError):
    """Raised when a run's rows no longer form an unbroken hash chain."""


def _to_row(entry: LedgerEntry) -> dict[str, Any]:
    row = entry.model_dump(mode="json")
    for field, column in _JSON_COLUMNS.items():
        row[column] = json.dumps(row.pop(field), sort_keys=True)
    return row


def _from_row(row: sqlite3.Row) -> LedgerEntry:
    data = {key: row[key] for key in row.keys() if key != "id"}
    for field, column in _JSON_COLUMNS.items():
        data[field] = json.loads(data.pop(column))
    return LedgerEntry(**data)


class RunLedger:
    """Insert-only store of ``LedgerEntry`` rows, chained per run.

    Parameters
    ----------
    db_path:
        SQLite file; missing parent directories are created.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _select(
        self, where: str, params: tuple, *, newest_first: bool = False, limit: int = -1
    ) -> list[LedgerEntry]:
        order = "DESC" if newest_first else "ASC"
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM run_ledger WHERE {where} ORDER BY id {order} LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        """Link *entry* to the run's last row, seal it and insert it.

        The returned copy carries ``previous_entry_hash`` and ``entry_hash``.
        """
        latest = self.get_latest(entry.run_id)
        linked = entry.model_copy(
            update={"previous_entry_hash": latest.entry_hash if latest else ""}
        )
        sealed = linked.model_copy(
            update={"entry_hash": compute_entry_hash(linked.model_dump(mode="json"))}
        )
        row = _to_row(sealed)
        columns = ", ".join(row)
        placeholders = ", ".join(f":{column}" for column in row)
        with self._connect() as conn:
            conn.execute(f"INSERT INTO run_ledger ({columns}) VALUES ({placeholders})", row)
        return sealed

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_latest(self, run_id: str) -> LedgerEntry | None:
        entries = self._select("run_id = ?", (run_id,), newest_first=True, limit=1)
        return entries[0] if entries else None

    def get_stage_history(self, run_id: str, stage_id: str) -> list[LedgerEntry]:
        """Oldest-first transitions of one stage."""
        return self._select("run_id = ? AND stage_id = ?", (run_id, stage_id))

    def get_run_entries(self, run_id: str) -> list[LedgerEntry]:
        """Oldest-first transitions of every stage of a run."""
        return self._select("run_id = ?", (run_id,))

    def get_all_run_ids(self) -> list[str]:
        """Known runs, the most recently written first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT run_id FROM run_ledger GROUP BY run_id ORDER BY MAX(id) DESC"
            ).fetchall()
        return [row["run_id"] for row in rows]

    def verify_chain(self, run_id: str) -> bool:
        """Re-derive every seal of *run_id* and check each link.

        Returns True for an intact (or empty) run.  Raises
        ``LedgerIntegrityError`` naming the first row that does not fit.
        """
        previous = ""
        for position, entry in enumerate(self.get_run_entries(run_id), start=1):
            if entry.previous_entry_hash != previous:
                raise LedgerIntegrityError(
                    f"Run {run_id}: chain is broken before row {position} "
                    f"({entry.entry_id}); it links to {entry.previous_entry_hash!r} "
                    f"but the row before it is sealed as {previous!r}"
                )
            recomputed = compute_entry_hash(entry.model_dump(mode="json"))
            if recomputed != entry.entry_hash:
                raise LedgerIntegrityError(
                    f"Run {run_id}: row {position} ({entry.entry_id}) was altered "
                    f"after it was sealed"
                )
            previous = entry.entry_hash
        return True
