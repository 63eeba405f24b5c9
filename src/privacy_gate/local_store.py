"""Local conversation store for the sovereign tier, backed by SQLite.

Sovereign conversations never touch the server database; they live
here on the user's device.  When an ``EncryptionSession`` is attached,
message content is encrypted at rest and flagged per row so plaintext
and ciphertext rows can coexist.

Usage:
    with EncryptionSession.from_password(pw, salt) as session:
        store = LocalStore("~/.privacy-gate/local.db", session=session)
        conv = store.create_conversation("Taxes", model="claude-sonnet-4")
        store.add_message(conv, "user", "hello")
"""

from __future__ import annotations
import sqlite3
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from .encryption import EncryptionError, EncryptionSession


_SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    model TEXT NOT NULL,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    encrypted INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id, created_at);
"""


@dataclass(frozen=True, slots=True)
class LocalMessage:
    id: str
    conversation_id: str
    role: str
    content: str
    created_at: float


class LocalStore:
    """Device-local store of conversations and messages."""

    __slots__ = ("_db", "_session")

    def __init__(
        self,
        db_path: str | Path = "local.db",
        *,
        session: EncryptionSession | None = None,
    ) -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path), check_same_thread=False)
        self._db.execute("PRAGMA foreign_keys = ON")
        self._db.executescript(_SCHEMA)
        self._session = session

    def create_conversation(self, title: str, *, model: str) -> str:
        conv_id = uuid.uuid4().hex
        now = time.time()
        self._db.execute(
            "INSERT INTO conversations (id, title, model, created_at, updated_at)"
            " VALUES (?, ?, ?, ?, ?)",
            (conv_id, title, model, now, now),
        )
        self._db.commit()
        return conv_id

    def add_message(self, conversation_id: str, role: str, content: str) -> str:
        msg_id = uuid.uuid4().hex
        now = time.time()
        encrypted = self._session is not None
        stored = self._session.encrypt(content) if encrypted else content
        self._db.execute(
            "INSERT INTO messages (id, conversation_id, role, content, encrypted, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (msg_id, conversation_id, role, stored, int(encrypted), now),
        )
        self._db.execute(
            "UPDATE conversations SET updated_at = ? WHERE id = ?",
            (now, conversation_id),
        )
        self._db.commit()
        return msg_id

    def get_messages(self, conversation_id: str) -> list[LocalMessage]:
        """Messages oldest first, decrypted.

        Raises EncryptionError for an encrypted row when no open session
        is attached.
        """
        rows = self._db.execute(
            "SELECT id, conversation_id, role, content, encrypted, created_at"
            " FROM messages WHERE conversation_id = ? ORDER BY created_at, rowid",
            (conversation_id,),
        ).fetchall()
        return [
            LocalMessage(
                id=mid, conversation_id=cid, role=role,
                content=self._decrypt(content) if enc else content,
                created_at=ts,
            )
            for mid, cid, role, content, enc, ts in rows
        ]

    def list_conversations(self) -> list[dict]:
        rows = self._db.execute(
            "SELECT id, title, model, created_at, updated_at FROM conversations"
            " ORDER BY updated_at DESC"
        ).fetchall()
        return [
            {"id": r[0], "title": r[1], "model": r[2], "created_at": r[3], "updated_at": r[4]}
            for r in rows
        ]

    def delete_conversation(self, conversation_id: str) -> None:
        self._db.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
        self._db.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        self._db.commit()

    def close(self) -> None:
        self._db.close()

    def _decrypt(self, content: str) -> str:
        if self._session is None:
            raise EncryptionError("encrypted message but no session attached")
        return self._session.decrypt(content)
