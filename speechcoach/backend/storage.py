import os
import threading
import time
from typing import Dict, List, Optional, Protocol

from .models import ConversationRecord, ConversationStatus, Token

try:
    import psycopg
    from psycopg.types.json import Jsonb
except Exception:  # pragma: no cover - only relevant when Postgres is enabled.
    psycopg = None
    Jsonb = None


def normalize_database_url(database_url: str) -> str:
    if database_url.startswith("postgres://"):
        return "postgresql://" + database_url[len("postgres://") :]
    return database_url


def _epoch_seconds() -> int:
    return int(time.time())


class ConversationStore(Protocol):
    storage_name: str

    def insert_tokens(self, tokens: List[Token]) -> None:
        pass

    def list_tokens(self, conversation_id: str) -> List[Token]:
        pass

    def latest_conversation_id(self) -> Optional[str]:
        pass

    def set_status(self, conversation_id: str, status: ConversationStatus) -> ConversationRecord:
        pass

    def list_conversations(self) -> List[ConversationRecord]:
        pass


class InMemoryConversationStore:
    storage_name = "memory"

    def __init__(self) -> None:
        self._tokens: Dict[str, List[Token]] = {}
        self._conversations: Dict[str, ConversationRecord] = {}
        self._latest_conversation_id: Optional[str] = None
        self._lock = threading.Lock()

    def insert_tokens(self, tokens: List[Token]) -> None:
        if not tokens:
            return
        with self._lock:
            for token in tokens:
                self._tokens.setdefault(token.conversation_id, []).append(token)
            self._latest_conversation_id = tokens[-1].conversation_id

    def list_tokens(self, conversation_id: str) -> List[Token]:
        with self._lock:
            tokens = list(self._tokens.get(conversation_id, []))
        return sorted(tokens, key=lambda token: token.start_ms)

    def latest_conversation_id(self) -> Optional[str]:
        with self._lock:
            return self._latest_conversation_id

    def set_status(self, conversation_id: str, status: ConversationStatus) -> ConversationRecord:
        record = ConversationRecord(conversation_id=conversation_id, status=status, timestamp=_epoch_seconds())
        with self._lock:
            self._conversations[conversation_id] = record
        return record

    def list_conversations(self) -> List[ConversationRecord]:
        with self._lock:
            records = list(self._conversations.values())
        # Stable sort keeps later upserts first among equal timestamps.
        return sorted(reversed(records), key=lambda record: record.timestamp, reverse=True)


class PostgresConversationStore:
    storage_name = "postgres"

    def __init__(self, database_url: str) -> None:
        if psycopg is None or Jsonb is None:
            raise RuntimeError("psycopg is required when DATABASE_URL is set.")
        self._database_url = normalize_database_url(database_url)
        self._ensure_schema()

    def _connect(self):
        return psycopg.connect(self._database_url, autocommit=True)

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS tokens (
                        id TEXT PRIMARY KEY,
                        conversation_id TEXT NOT NULL,
                        start_ms INTEGER NOT NULL,
                        end_ms INTEGER NOT NULL,
                        text TEXT NOT NULL,
                        tags JSONB NOT NULL DEFAULT '[]'::jsonb,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_tokens_conversation_start
                    ON tokens (conversation_id, start_ms)
                    """
                )
                cur.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_tokens_created_at
                    ON tokens (created_at DESC)
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS conversations (
                        conversation_id TEXT PRIMARY KEY,
                        status TEXT NOT NULL,
                        timestamp BIGINT NOT NULL
                    )
                    """
                )

    def insert_tokens(self, tokens: List[Token]) -> None:
        if not tokens:
            return
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.executemany(
                    """
                    INSERT INTO tokens (id, conversation_id, start_ms, end_ms, text, tags)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    """,
                    [
                        (
                            token.id,
                            token.conversation_id,
                            token.start_ms,
                            token.end_ms,
                            token.text,
                            Jsonb(list(token.tags)),
                        )
                        for token in tokens
                    ],
                )

    def list_tokens(self, conversation_id: str) -> List[Token]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT id, conversation_id, start_ms, end_ms, text, tags
                    FROM tokens
                    WHERE conversation_id = %s
                    ORDER BY start_ms ASC
                    """,
                    (conversation_id,),
                )
                rows = cur.fetchall()

        return [
            Token(
                id=token_id,
                conversation_id=row_conversation_id,
                start_ms=start_ms,
                end_ms=end_ms,
                text=text,
                tags=list(tags or []),
            )
            for token_id, row_conversation_id, start_ms, end_ms, text, tags in rows
        ]

    def latest_conversation_id(self) -> Optional[str]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT conversation_id FROM tokens ORDER BY created_at DESC LIMIT 1")
                row = cur.fetchone()
                if row is None:
                    return None
                return row[0]

    def set_status(self, conversation_id: str, status: ConversationStatus) -> ConversationRecord:
        timestamp = _epoch_seconds()
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO conversations (conversation_id, status, timestamp)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (conversation_id) DO UPDATE SET
                        status = EXCLUDED.status,
                        timestamp = EXCLUDED.timestamp
                    """,
                    (conversation_id, status, timestamp),
                )
        return ConversationRecord(conversation_id=conversation_id, status=status, timestamp=timestamp)

    def list_conversations(self) -> List[ConversationRecord]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT conversation_id, status, timestamp FROM conversations ORDER BY timestamp DESC"
                )
                rows = cur.fetchall()
        return [
            ConversationRecord(conversation_id=conversation_id, status=status, timestamp=int(timestamp))
            for conversation_id, status, timestamp in rows
        ]


def build_conversation_store() -> ConversationStore:
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        return PostgresConversationStore(database_url=database_url)
    return InMemoryConversationStore()
