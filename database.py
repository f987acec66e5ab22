#!/usr/bin/env python3
"""
SQLite Storage for Claude UI
Schema creation, additive column migrations and the shared connection helper
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import aiosqlite

from config import DB_PATH

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS conversations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    title TEXT,
    hidden BOOLEAN DEFAULT 0,
    selected_files TEXT,
    model TEXT,
    cli_session_id TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER NOT NULL,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    FOREIGN KEY (conversation_id) REFERENCES conversations(id)
);

CREATE TABLE IF NOT EXISTS cli_calls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    conversation_id INTEGER,
    message_id INTEGER,
    timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
    user_message TEXT NOT NULL,
    cli_command TEXT NOT NULL,
    cli_args TEXT,
    execution_path TEXT NOT NULL,
    response TEXT,
    error TEXT,
    exit_code INTEGER,
    duration_ms INTEGER,
    success BOOLEAN DEFAULT 0,
    context_files TEXT,
    full_stdin TEXT,
    model TEXT,
    cli_session_id TEXT,
    FOREIGN KEY (conversation_id) REFERENCES conversations(id),
    FOREIGN KEY (message_id) REFERENCES messages(id)
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS prompts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    description TEXT,
    prompt_text TEXT NOT NULL,
    model TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
    updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id);
CREATE INDEX IF NOT EXISTS idx_cli_calls_conversation ON cli_calls(conversation_id);
"""

# Columns added after the first release; older databases get them on startup
MIGRATIONS = [
    ("conversations", "hidden", "BOOLEAN DEFAULT 0"),
    ("conversations", "selected_files", "TEXT"),
    ("conversations", "model", "TEXT"),
    ("conversations", "cli_session_id", "TEXT"),
    ("cli_calls", "context_files", "TEXT"),
    ("cli_calls", "full_stdin", "TEXT"),
    ("cli_calls", "model", "TEXT"),
    ("cli_calls", "cli_session_id", "TEXT"),
    ("prompts", "model", "TEXT"),
]


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection to the configured database with dict-like rows."""
    async with aiosqlite.connect(DB_PATH) as db:
        db.row_factory = aiosqlite.Row
        yield db


def row_to_dict(row: Optional[aiosqlite.Row]) -> Optional[Dict[str, Any]]:
    return dict(row) if row is not None else None


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, decl: str):
    async with db.execute(f"PRAGMA table_info({table})") as cursor:
        existing = {row["name"] for row in await cursor.fetchall()}
    if column not in existing:
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {decl}")
        logger.info(f"Added {column} column to {table} table")


async def init_db():
    """Create tables and apply additive migrations."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    try:
        async with connect() as db:
            await db.executescript(SCHEMA)
            for table, column, decl in MIGRATIONS:
                await _ensure_column(db, table, column, decl)
            await db.execute("UPDATE conversations SET hidden = 0 WHERE hidden IS NULL")
            await db.commit()
    except Exception as e:
        logger.error(f"Error initializing database at {DB_PATH}: {e}")
        raise
    logger.info(f"Database initialized at: {DB_PATH}")
