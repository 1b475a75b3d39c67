"""Signal repository — SQLite CRUD for the signals table."""

import json
import logging
import sqlite3
from datetime import datetime
from typing import Optional

from marketscan.lifecycle.models import OUTCOME_STATUSES, OutcomeDetail, Signal
from marketscan.repos.db import get_connection

logger = logging.getLogger("marketscan.signal_repo")

FILTER_COLUMNS = ("symbol", "timeframe", "mode", "status", "outcome")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_signal(row: sqlite3.Row) -> Signal:
    detail = row["outcome_detail"]
    return Signal(
        id=row["id"],
        symbol=row["symbol"],
        timeframe=row["timeframe"],
        mode=row["mode"],
        direction=row["direction"],
        entry=row["entry"],
        stop_loss=row["stop_loss"],
        take_profits=tuple(json.loads(row["take_profits"])),
        confidence=row["confidence"],
        reason=row["reason"],
        candidate_reason=row["candidate_reason"],
        management_hint=row["management_hint"],
        status=row["status"],
        created_at=datetime.fromisoformat(row["created_at"]),
        triggered_at=_parse(row["triggered_at"]),
        closed_at=_parse(row["closed_at"]),
        outcome=row["outcome"],
        outcome_detail=OutcomeDetail.from_dict(json.loads(detail)) if detail else None,
    )


class SignalRepo:
    """Data access layer for signal records.

    Args:
        db_path: Path to the SQLite database file.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    # ── Write ────────────────────────────────────────────────────────────

    def insert_signal(self, signal: Signal) -> Optional[int]:
        """Insert a new signal and return its ``id``.

        Returns ``None`` when a signal with the same symbol, timeframe, mode
        and creation time already exists.
        """
        conn = get_connection(self._db_path)
        try:
            cur = conn.execute(
                """
                INSERT INTO signals
                    (symbol, timeframe, mode, direction, entry, stop_loss,
                     take_profits, confidence, reason, candidate_reason,
                     management_hint, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    signal.symbol, signal.timeframe, signal.mode,
                    signal.direction, signal.entry, signal.stop_loss,
                    json.dumps(list(signal.take_profits)), signal.confidence,
                    signal.reason, signal.candidate_reason,
                    signal.management_hint, signal.status,
                    signal.created_at.isoformat(),
                ),
            )
            conn.commit()
            return cur.lastrowid
        except sqlite3.IntegrityError:
            logger.info(
                "Duplicate signal %s %s %s at %s ignored",
                signal.symbol, signal.timeframe, signal.mode,
                signal.created_at.isoformat(),
            )
            return None
        finally:
            conn.close()

    def update_signal(self, signal: Signal) -> None:
        """Persist the lifecycle fields of *signal*.

        The trade parameters are immutable once inserted and are never
        rewritten.
        """
        if signal.id is None:
            raise ValueError("Cannot update a signal without an id")

        detail = signal.outcome_detail
        conn = get_connection(self._db_path)
        try:
            conn.execute(
                """
                UPDATE signals
                SET status = ?, triggered_at = ?, closed_at = ?,
                    outcome = ?, outcome_detail = ?
                WHERE id = ?
                """,
                (
                    signal.status,
                    _iso(signal.triggered_at),
                    _iso(signal.closed_at),
                    signal.outcome,
                    json.dumps(detail.to_dict()) if detail else None,
                    signal.id,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    # ── Read ─────────────────────────────────────────────────────────────

    def get_signal(self, signal_id: int) -> Optional[Signal]:
        conn = get_connection(self._db_path)
        try:
            row = conn.execute(
                "SELECT * FROM signals WHERE id = ?", (signal_id,)
            ).fetchone()
            return _row_to_signal(row) if row else None
        finally:
            conn.close()

    def get_signals_by_status(self, status: str) -> list[Signal]:
        """All signals with *status*, oldest first."""
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                "SELECT * FROM signals WHERE status = ? ORDER BY created_at ASC, id ASC",
                (status,),
            ).fetchall()
            return [_row_to_signal(r) for r in rows]
        finally:
            conn.close()

    def get_signals(
        self,
        filters: Optional[dict] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        """Return a page of signals, newest first.

        Args:
            filters: Optional equality filters keyed by ``symbol``,
                ``timeframe``, ``mode``, ``status`` or ``outcome``.  Other
                keys are rejected.

        Returns:
            ``{"signals": [...], "total": int}``
        """
        conditions: list[str] = []
        params: list = []
        for key, value in (filters or {}).items():
            if key not in FILTER_COLUMNS:
                raise ValueError(f"Unknown filter: {key}")
            if value is None:
                continue
            conditions.append(f"{key} = ?")
            params.append(value)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                f"SELECT * FROM signals {where_clause} "
                "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, limit, offset),
            ).fetchall()
            total = conn.execute(
                f"SELECT COUNT(*) FROM signals {where_clause}",
                params,
            ).fetchone()[0]
            return {"signals": [_row_to_signal(r) for r in rows], "total": total}
        finally:
            conn.close()

    def get_closed_signals(self) -> list[Signal]:
        """Signals with a final outcome, in close order."""
        placeholders = ", ".join("?" for _ in OUTCOME_STATUSES)
        conn = get_connection(self._db_path)
        try:
            rows = conn.execute(
                f"SELECT * FROM signals WHERE status IN ({placeholders}) "
                "ORDER BY closed_at ASC, id ASC",
                OUTCOME_STATUSES,
            ).fetchall()
            return [_row_to_signal(r) for r in rows]
        finally:
            conn.close()
