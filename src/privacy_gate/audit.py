"""Audit trail backed by SQLite.

Entries record who called which model and which *kinds* of PII were
found.  The sensitive values themselves never reach this module.

Usage:
    log = SqliteAuditLog("~/.privacy-gate/audit.db")
    log.record(AuditEntry(user_id="u1", action="chat_completion",
                          provider="anthropic", model="claude-sonnet-4",
                          pii_detected=[PIIType.EMAIL]))
    log.stats("u1")
"""

from __future__ import annotations
import json
import math
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .types import PIIType


_SCHEMA = """
CREATE TABLE IF NOT EXISTS audit_logs (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    action TEXT NOT NULL,
    provider TEXT NOT NULL,
    model TEXT NOT NULL,
    tokens_input INTEGER,
    tokens_output INTEGER,
    pii_detected TEXT,
    credential_pool_id TEXT,
    conversation_id TEXT,
    timestamp REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_audit_user_time
    ON audit_logs(user_id, timestamp);
"""


def safe_token_count(value: float | int | None) -> int | None:
    """Providers sometimes report NaN, infinity or nothing for usage."""
    if value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return math.floor(value)


@dataclass(slots=True)
class AuditEntry:
    """One audited provider call."""
    user_id: str
    action: str
    provider: str
    model: str
    tokens_input: int | None = None
    tokens_output: int | None = None
    pii_detected: list[PIIType] = field(default_factory=list)
    credential_pool_id: str | None = None
    conversation_id: str | None = None
    timestamp: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action,
            "provider": self.provider,
            "model": self.model,
            "tokensInput": self.tokens_input,
            "tokensOutput": self.tokens_output,
            "piiDetected": [t.value for t in self.pii_detected] or None,
            "credentialPoolId": self.credential_pool_id,
            "conversationId": self.conversation_id,
            "timestamp": self.timestamp,
        }


class SqliteAuditLog:
    """Append-only audit store."""

    __slots__ = ("_db",)

    def __init__(self, db_path: str | Path = "audit.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.executescript(_SCHEMA)

    def record(self, entry: AuditEntry) -> AuditEntry:
        pii = json.dumps([t.value for t in entry.pii_detected]) if entry.pii_detected else None
        self._db.execute(
            "INSERT INTO audit_logs (id, user_id, action, provider, model, tokens_input,"
            " tokens_output, pii_detected, credential_pool_id, conversation_id, timestamp)"
            " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                entry.id, entry.user_id, entry.action, entry.provider, entry.model,
                entry.tokens_input, entry.tokens_output, pii,
                entry.credential_pool_id, entry.conversation_id, entry.timestamp,
            ),
        )
        self._db.commit()
        return entry

    def entries(
        self,
        user_id: str,
        *,
        provider: str | None = None,
        action: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[AuditEntry], int]:
        """Newest first, paginated.  Returns (entries, total)."""
        where = "user_id = ?"
        params: list[Any] = [user_id]
        if provider:
            where += " AND provider = ?"
            params.append(provider)
        if action:
            where += " AND action = ?"
            params.append(action)

        (total,) = self._db.execute(
            f"SELECT COUNT(*) FROM audit_logs WHERE {where}", params
        ).fetchone()
        rows = self._db.execute(
            "SELECT id, user_id, action, provider, model, tokens_input, tokens_output,"
            " pii_detected, credential_pool_id, conversation_id, timestamp"
            f" FROM audit_logs WHERE {where} ORDER BY timestamp DESC LIMIT ? OFFSET ?",
            [*params, limit, offset],
        ).fetchall()
        return [_row_to_entry(r) for r in rows], total

    def stats(self, user_id: str) -> dict[str, Any]:
        total, tin, tout = self._db.execute(
            "SELECT COUNT(*), COALESCE(SUM(tokens_input), 0), COALESCE(SUM(tokens_output), 0)"
            " FROM audit_logs WHERE user_id = ?",
            (user_id,),
        ).fetchone()
        by_provider = dict(self._db.execute(
            "SELECT provider, COUNT(*) FROM audit_logs WHERE user_id = ? GROUP BY provider",
            (user_id,),
        ).fetchall())
        (pii_count,) = self._db.execute(
            "SELECT COUNT(*) FROM audit_logs WHERE user_id = ? AND pii_detected IS NOT NULL",
            (user_id,),
        ).fetchone()
        return {
            "total_requests": total,
            "total_tokens_input": tin,
            "total_tokens_output": tout,
            "requests_by_provider": by_provider,
            "pii_detection_count": pii_count,
        }

    def delete_user(self, user_id: str) -> None:
        self._db.execute("DELETE FROM audit_logs WHERE user_id = ?", (user_id,))
        self._db.commit()

    def close(self) -> None:
        self._db.close()


def _row_to_entry(row: tuple) -> AuditEntry:
    (id_, user_id, action, provider, model, tin, tout, pii, pool, conv, ts) = row
    return AuditEntry(
        id=id_,
        user_id=user_id,
        action=action,
        provider=provider,
        model=model,
        tokens_input=tin,
        tokens_output=tout,
        pii_detected=[PIIType(v) for v in json.loads(pii)] if pii else [],
        credential_pool_id=pool,
        conversation_id=conv,
        timestamp=ts,
    )
