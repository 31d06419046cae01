"""SQLite storage backend (aiosqlite) storing JSON documents with indexed columns."""
import json
from datetime import datetime
from logging import Logger
from pathlib import Path
from typing import Any, Iterable, Optional

import aiosqlite
from scitrera_app_framework import Variables as Variables

from .base import EntryOrder, StorageBackend, StoragePluginBase
from ...config import TIEREDMEMORY_SQLITE_STORAGE_PATH, DEFAULT_TIEREDMEMORY_SQLITE_STORAGE_PATH
from ...models import (
    AuditAction, AuditRecord, Conversation, ConversationTurn, MemoryCategory, MemoryEntry, MemoryKind, MemoryStatus,
    UserProfile,
)
from ...utils import ensure_utc, parse_datetime_utc

_ORDER_COLUMNS = {
    EntryOrder.IMPORTANCE: 'importance DESC, last_accessed_at DESC, id DESC',
    EntryOrder.LAST_ACCESSED: 'last_accessed_at DESC, id DESC',
    EntryOrder.CREATED: 'created_at DESC, id DESC',
}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None


class SQLiteStorageBackend(StorageBackend):
    """
    SQLite storage backend.

    Memory entries and profiles are stored as JSON documents; the fields used for
    filtering and ordering are duplicated into indexed columns. All timestamps are
    UTC ISO-8601 strings so lexical comparison matches chronological order.
    """

    def __init__(self, db_path: str = DEFAULT_TIEREDMEMORY_SQLITE_STORAGE_PATH, v: Variables = None):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file (":memory:" for a private in-memory database)
            v: Variables for logging context
        """
        super().__init__(v)
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> None:
        if self.db_path != ':memory:':
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.logger.info("Connecting to SQLite database at %s", self.db_path)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        # WAL for better concurrent read performance
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._create_tables()
        self.logger.info("Connected to SQLite database at %s", self.db_path)

    async def disconnect(self) -> None:
        if self._connection:
            await self._connection.close()
            self._connection = None
            self.logger.info("Disconnected from SQLite database")

    async def health_check(self) -> bool:
        try:
            if self._connection:
                await self._connection.execute("SELECT 1")
                return True
            return False
        except Exception as e:
            self.logger.error("Health check failed: %s", e)
            return False

    async def _create_tables(self) -> None:
        await self._connection.executescript("""
            CREATE TABLE IF NOT EXISTS memory_entries (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                kind TEXT NOT NULL,
                category TEXT NOT NULL,
                importance REAL NOT NULL,
                confidence REAL NOT NULL,
                pinned INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                last_accessed_at TEXT NOT NULL,
                expires_at TEXT,
                data TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_entries_user_status ON memory_entries(user_id, status);
            CREATE INDEX IF NOT EXISTS idx_entries_user_importance ON memory_entries(user_id, importance);
            CREATE INDEX IF NOT EXISTS idx_entries_user_accessed ON memory_entries(user_id, last_accessed_at);
            CREATE INDEX IF NOT EXISTS idx_entries_user_category ON memory_entries(user_id, category);
            CREATE INDEX IF NOT EXISTS idx_entries_status_expiry ON memory_entries(status, expires_at);

            CREATE TABLE IF NOT EXISTS user_profiles (
                user_id TEXT PRIMARY KEY,
                updated_at TEXT NOT NULL,
                data TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS conversations (
                user_id TEXT NOT NULL,
                id TEXT NOT NULL,
                started_at TEXT NOT NULL,
                last_message_at TEXT NOT NULL,
                turn_count INTEGER NOT NULL DEFAULT 0,
                last_turn_id TEXT,
                consolidated INTEGER NOT NULL DEFAULT 0,
                consolidated_at TEXT,
                PRIMARY KEY (user_id, id)
            );
            CREATE INDEX IF NOT EXISTS idx_conversations_pending ON conversations(consolidated, last_message_at);

            CREATE TABLE IF NOT EXISTS conversation_turns (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                conversation_id TEXT NOT NULL,
                seq INTEGER NOT NULL,
                role TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_turns_conversation ON conversation_turns(user_id, conversation_id, seq);
        """)
        await self._connection.commit()

    # ========== Memory Entries ==========

    @staticmethod
    def _entry_row(entry: MemoryEntry) -> tuple:
        return (
            entry.user_id,
            entry.status.value,
            entry.kind.value,
            entry.namespace.category.value,
            entry.importance.score,
            entry.provenance.confidence,
            1 if entry.is_pinned else 0,
            _iso(entry.temporal.created_at),
            _iso(entry.temporal.last_accessed_at),
            _iso(entry.temporal.expires_at),
            entry.model_dump_json(),
        )

    @staticmethod
    def _row_to_entry(row) -> MemoryEntry:
        return MemoryEntry.model_validate_json(row['data'])

    async def create_entry(self, entry: MemoryEntry) -> MemoryEntry:
        await self._connection.execute(
            """INSERT INTO memory_entries
               (user_id, status, kind, category, importance, confidence, pinned, created_at, last_accessed_at,
                expires_at, data, id)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (*self._entry_row(entry), entry.id),
        )
        await self._connection.commit()
        return entry

    async def get_entry(self, user_id: str, entry_id: str) -> Optional[MemoryEntry]:
        async with self._connection.execute(
                "SELECT data FROM memory_entries WHERE user_id = ? AND id = ?", (user_id, entry_id)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    async def get_entries(self, user_id: str, entry_ids: Iterable[str]) -> list[MemoryEntry]:
        entry_ids = list(entry_ids)
        if not entry_ids:
            return []
        placeholders = ','.join('?' for _ in entry_ids)
        async with self._connection.execute(
                f"SELECT id, data FROM memory_entries WHERE user_id = ? AND id IN ({placeholders})",
                (user_id, *entry_ids),
        ) as cursor:
            rows = await cursor.fetchall()
        by_id = {row['id']: self._row_to_entry(row) for row in rows}
        return [by_id[i] for i in entry_ids if i in by_id]

    async def update_entry(self, entry: MemoryEntry) -> MemoryEntry:
        cursor = await self._connection.execute(
            """UPDATE memory_entries
               SET user_id = ?, status = ?, kind = ?, category = ?, importance = ?, confidence = ?, pinned = ?,
                   created_at = ?, last_accessed_at = ?, expires_at = ?, data = ?
               WHERE id = ?""",
            (*self._entry_row(entry), entry.id),
        )
        await self._connection.commit()
        if cursor.rowcount == 0:
            raise KeyError(f"Memory entry not found: {entry.id}")
        return entry

    async def record_access(self, user_id: str, entry_ids: Iterable[str], at: datetime,
                            actor: str = "retrieval") -> int:
        entry_ids = list(entry_ids)
        if not entry_ids:
            return 0
        audit = AuditRecord(action=AuditAction.ACCESSED, timestamp=ensure_utc(at), actor=actor).model_dump(mode='json')
        placeholders = ','.join('?' for _ in entry_ids)
        # single statement, so the status column and document are never rewritten from a stale read
        cursor = await self._connection.execute(
            f"""UPDATE memory_entries
                SET last_accessed_at = ?,
                    data = json_insert(
                        json_set(data,
                                 '$.importance.factors.access_count',
                                 json_extract(data, '$.importance.factors.access_count') + 1,
                                 '$.temporal.last_accessed_at', ?),
                        '$.audit[#]', json(?))
                WHERE user_id = ? AND id IN ({placeholders})""",
            (_iso(at), audit['timestamp'], json.dumps(audit), user_id, *entry_ids),
        )
        await self._connection.commit()
        return cursor.rowcount

    async def delete_entry(self, user_id: str, entry_id: str) -> bool:
        cursor = await self._connection.execute(
            "DELETE FROM memory_entries WHERE user_id = ? AND id = ?", (user_id, entry_id)
        )
        await self._connection.commit()
        return cursor.rowcount > 0

    async def list_entries(
            self,
            user_id: str,
            statuses: Optional[Iterable[MemoryStatus]] = None,
            kinds: Optional[Iterable[MemoryKind]] = None,
            categories: Optional[Iterable[MemoryCategory]] = None,
            accessed_before: Optional[datetime] = None,
            expires_before: Optional[datetime] = None,
            pinned: Optional[bool] = None,
            order_by: EntryOrder = EntryOrder.IMPORTANCE,
            limit: Optional[int] = None,
    ) -> list[MemoryEntry]:
        clauses = ["user_id = ?"]
        params: list[Any] = [user_id]

        for column, values in (('status', statuses), ('kind', kinds), ('category', categories)):
            if values is None:
                continue
            values = [getattr(x, 'value', x) for x in values]
            if not values:
                return []
            clauses.append(f"{column} IN ({','.join('?' for _ in values)})")
            params.extend(values)

        if accessed_before is not None:
            clauses.append("last_accessed_at < ?")
            params.append(_iso(accessed_before))
        if expires_before is not None:
            clauses.append("expires_at IS NOT NULL AND expires_at < ?")
            params.append(_iso(expires_before))
        if pinned is not None:
            clauses.append("pinned = ?")
            params.append(1 if pinned else 0)

        sql = f"SELECT data FROM memory_entries WHERE {' AND '.join(clauses)} ORDER BY {_ORDER_COLUMNS[order_by]}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        async with self._connection.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_entry(row) for row in rows]

    async def delete_user_entries(self, user_id: str) -> int:
        cursor = await self._connection.execute("DELETE FROM memory_entries WHERE user_id = ?", (user_id,))
        await self._connection.commit()
        return cursor.rowcount

    async def list_user_ids(self) -> list[str]:
        async with self._connection.execute(
                "SELECT DISTINCT user_id FROM memory_entries ORDER BY user_id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [row['user_id'] for row in rows]

    async def entry_statistics(self, user_id: Optional[str] = None) -> dict[str, Any]:
        where, params = ("WHERE user_id = ?", (user_id,)) if user_id is not None else ("", ())

        async with self._connection.execute(
                f"SELECT COUNT(*) AS total, AVG(confidence) AS avg_confidence, AVG(importance) AS avg_importance "
                f"FROM memory_entries {where}", params
        ) as cursor:
            totals = await cursor.fetchone()
        async with self._connection.execute(
                f"SELECT status, COUNT(*) AS n FROM memory_entries {where} GROUP BY status", params
        ) as cursor:
            by_status = {row['status']: row['n'] for row in await cursor.fetchall()}
        async with self._connection.execute(
                f"SELECT kind, COUNT(*) AS n FROM memory_entries {where} GROUP BY kind", params
        ) as cursor:
            by_kind = {row['kind']: row['n'] for row in await cursor.fetchall()}

        return {
            'total': totals['total'] or 0,
            'by_status': by_status,
            'by_kind': by_kind,
            'avg_confidence': totals['avg_confidence'] or 0.0,
            'avg_importance': totals['avg_importance'] or 0.0,
        }

    # ========== Profiles ==========

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        async with self._connection.execute(
                "SELECT data FROM user_profiles WHERE user_id = ?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return UserProfile.model_validate_json(row['data']) if row else None

    async def save_profile(self, profile: UserProfile) -> UserProfile:
        await self._connection.execute(
            """INSERT INTO user_profiles (user_id, updated_at, data) VALUES (?, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET updated_at = excluded.updated_at, data = excluded.data""",
            (profile.user_id, _iso(profile.updated_at), profile.model_dump_json()),
        )
        await self._connection.commit()
        return profile

    # ========== Conversations ==========

    @staticmethod
    def _row_to_conversation(row) -> Conversation:
        return Conversation(
            id=row['id'],
            user_id=row['user_id'],
            started_at=parse_datetime_utc(row['started_at']),
            last_message_at=parse_datetime_utc(row['last_message_at']),
            turn_count=row['turn_count'],
            last_turn_id=row['last_turn_id'],
            consolidated=bool(row['consolidated']),
            consolidated_at=parse_datetime_utc(row['consolidated_at']),
        )

    async def append_turn(self, turn: ConversationTurn) -> Conversation:
        created = _iso(turn.created_at)
        await self._connection.execute(
            """INSERT INTO conversations (user_id, id, started_at, last_message_at, turn_count, last_turn_id, consolidated)
               VALUES (?, ?, ?, ?, 1, ?, 0)
               ON CONFLICT(user_id, id) DO UPDATE SET
                   turn_count = turn_count + 1,
                   last_turn_id = excluded.last_turn_id,
                   last_message_at = MAX(last_message_at, excluded.last_message_at),
                   consolidated = 0,
                   consolidated_at = NULL""",
            (turn.user_id, turn.conversation_id, created, created, turn.id),
        )
        async with self._connection.execute(
                "SELECT turn_count FROM conversations WHERE user_id = ? AND id = ?",
                (turn.user_id, turn.conversation_id),
        ) as cursor:
            seq = (await cursor.fetchone())['turn_count']
        await self._connection.execute(
            """INSERT INTO conversation_turns (id, user_id, conversation_id, seq, role, content, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (turn.id, turn.user_id, turn.conversation_id, seq, turn.role.value, turn.content, created),
        )
        await self._connection.commit()
        return await self.get_conversation(turn.user_id, turn.conversation_id)

    async def get_turns(self, user_id: str, conversation_id: str, last: Optional[int] = None) -> list[ConversationTurn]:
        if last is not None and last <= 0:
            return []
        sql = "SELECT * FROM conversation_turns WHERE user_id = ? AND conversation_id = ? ORDER BY seq DESC"
        params: list[Any] = [user_id, conversation_id]
        if last is not None:
            sql += " LIMIT ?"
            params.append(last)
        async with self._connection.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        turns = [
            ConversationTurn(
                id=row['id'],
                user_id=row['user_id'],
                conversation_id=row['conversation_id'],
                role=row['role'],
                content=row['content'],
                created_at=parse_datetime_utc(row['created_at']),
            )
            for row in rows
        ]
        turns.reverse()
        return turns

    async def get_conversation(self, user_id: str, conversation_id: str) -> Optional[Conversation]:
        async with self._connection.execute(
                "SELECT * FROM conversations WHERE user_id = ? AND id = ?", (user_id, conversation_id)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_conversation(row) if row else None

    async def list_pending_conversations(self, idle_before: datetime, limit: int = 10) -> list[Conversation]:
        async with self._connection.execute(
                """SELECT * FROM conversations
                   WHERE consolidated = 0 AND last_message_at < ?
                   ORDER BY last_message_at ASC LIMIT ?""",
                (_iso(idle_before), limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_conversation(row) for row in rows]

    async def mark_conversation_consolidated(self, user_id: str, conversation_id: str, at: datetime) -> bool:
        cursor = await self._connection.execute(
            "UPDATE conversations SET consolidated = 1, consolidated_at = ? WHERE user_id = ? AND id = ?",
            (_iso(at), user_id, conversation_id),
        )
        await self._connection.commit()
        return cursor.rowcount > 0

    async def delete_user_conversations(self, user_id: str) -> int:
        cursor = await self._connection.execute("DELETE FROM conversation_turns WHERE user_id = ?", (user_id,))
        removed = cursor.rowcount
        await self._connection.execute("DELETE FROM conversations WHERE user_id = ?", (user_id,))
        await self._connection.commit()
        return removed


class SqliteStorageBackendPlugin(StoragePluginBase):
    PROVIDER_NAME = 'sqlite'

    def initialize(self, v: Variables, logger: Logger) -> object | None:
        return SQLiteStorageBackend(
            db_path=v.environ(TIEREDMEMORY_SQLITE_STORAGE_PATH, default=DEFAULT_TIEREDMEMORY_SQLITE_STORAGE_PATH),
            v=v
        )
