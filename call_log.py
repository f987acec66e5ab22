#!/usr/bin/env python3
"""
Invocation Log
Append-only record of every CLI bridge call, queryable by recency and id
"""

import json
import logging
from typing import Any, Dict, List, Optional

from database import connect
from models import CliCallRecord

logger = logging.getLogger(__name__)


def _decode_call(row) -> Dict[str, Any]:
    call = dict(row)
    call["success"] = bool(call.get("success"))
    if call.get("context_files"):
        call["context_files"] = json.loads(call["context_files"])
    return call


async def log_cli_call(record: CliCallRecord) -> int:
    """Append one invocation record and return its id."""
    try:
        async with connect() as db:
            cursor = await db.execute(
                """
                INSERT INTO cli_calls (
                    conversation_id, message_id, user_message, cli_command, cli_args,
                    execution_path, response, error, exit_code, duration_ms, success,
                    context_files, full_stdin, model, cli_session_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.conversation_id,
                    record.message_id,
                    record.user_message,
                    record.cli_command,
                    record.cli_args or "",
                    record.execution_path,
                    record.response or "",
                    record.error or "",
                    record.exit_code,
                    record.duration_ms,
                    1 if record.success else 0,
                    json.dumps(record.context_files) if record.context_files else None,
                    record.full_stdin,
                    record.model,
                    record.cli_session_id,
                ),
            )
            await db.commit()
            return cursor.lastrowid
    except Exception as e:
        logger.error(f"Error logging CLI call: {e}")
        raise


async def get_recent_cli_calls(limit: int = 100) -> List[Dict[str, Any]]:
    """Newest records first."""
    try:
        async with connect() as db:
            async with db.execute(
                "SELECT * FROM cli_calls ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
            ) as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting recent CLI calls: {e}")
        raise
    return [_decode_call(row) for row in rows]


async def get_all_cli_calls() -> List[Dict[str, Any]]:
    try:
        async with connect() as db:
            async with db.execute("SELECT * FROM cli_calls ORDER BY timestamp DESC, id DESC") as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting CLI calls: {e}")
        raise
    return [_decode_call(row) for row in rows]


async def get_cli_call(call_id: int) -> Optional[Dict[str, Any]]:
    try:
        async with connect() as db:
            async with db.execute("SELECT * FROM cli_calls WHERE id = ?", (call_id,)) as cursor:
                row = await cursor.fetchone()
    except Exception as e:
        logger.error(f"Error getting CLI call {call_id}: {e}")
        raise
    return _decode_call(row) if row is not None else None


async def count_cli_calls() -> int:
    async with connect() as db:
        async with db.execute("SELECT COUNT(*) FROM cli_calls") as cursor:
            row = await cursor.fetchone()
    return row[0]
