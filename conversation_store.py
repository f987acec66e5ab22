#!/usr/bin/env python3
"""
Conversation Store
Conversation metadata and ordered message history
"""

import json
import logging
from typing import Any, Dict, List, Optional

from database import connect

logger = logging.getLogger(__name__)


def _decode_conversation(row) -> Dict[str, Any]:
    conversation = dict(row)
    conversation["hidden"] = bool(conversation.get("hidden"))
    if conversation.get("selected_files"):
        conversation["selected_files"] = json.loads(conversation["selected_files"])
    return conversation


def _encode_files(selected_files: Optional[List[str]]) -> Optional[str]:
    return json.dumps(selected_files) if selected_files else None


async def create_conversation(
    title: str = "Untitled",
    selected_files: Optional[List[str]] = None,
    model: Optional[str] = None,
) -> int:
    try:
        async with connect() as db:
            cursor = await db.execute(
                "INSERT INTO conversations (title, selected_files, model) VALUES (?, ?, ?)",
                (title, _encode_files(selected_files), model),
            )
            await db.commit()
            return cursor.lastrowid
    except Exception as e:
        logger.error(f"Error creating conversation: {e}")
        raise


async def update_conversation(
    conversation_id: int,
    title: str,
    selected_files: Optional[List[str]] = None,
    model: Optional[str] = None,
) -> bool:
    """Update title/files/model and bump updated_at. Returns False if missing."""
    try:
        async with connect() as db:
            cursor = await db.execute(
                """
                UPDATE conversations
                SET updated_at = CURRENT_TIMESTAMP, title = ?, selected_files = ?, model = ?
                WHERE id = ?
                """,
                (title, _encode_files(selected_files), model, conversation_id),
            )
            await db.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Error updating conversation {conversation_id}: {e}")
        raise


async def get_conversation(conversation_id: int) -> Optional[Dict[str, Any]]:
    try:
        async with connect() as db:
            async with db.execute("SELECT * FROM conversations WHERE id = ?", (conversation_id,)) as cursor:
                row = await cursor.fetchone()
    except Exception as e:
        logger.error(f"Error getting conversation {conversation_id}: {e}")
        raise
    return _decode_conversation(row) if row is not None else None


async def get_conversations(include_hidden: bool = True) -> List[Dict[str, Any]]:
    """Most recently updated first; hidden ones only when include_hidden."""
    query = "SELECT * FROM conversations"
    if not include_hidden:
        query += " WHERE hidden = 0"
    query += " ORDER BY updated_at DESC, id DESC"
    try:
        async with connect() as db:
            async with db.execute(query) as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting conversations: {e}")
        raise
    return [_decode_conversation(row) for row in rows]


async def get_visible_conversations() -> List[Dict[str, Any]]:
    return await get_conversations(include_hidden=False)


async def hide_conversation(conversation_id: int) -> bool:
    """Soft delete: hidden from the chat UI, still visible to admins."""
    try:
        async with connect() as db:
            cursor = await db.execute("UPDATE conversations SET hidden = 1 WHERE id = ?", (conversation_id,))
            await db.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Error hiding conversation {conversation_id}: {e}")
        raise


async def delete_conversation(conversation_id: int) -> bool:
    """Permanently delete a conversation with its messages and CLI call records."""
    try:
        async with connect() as db:
            await db.execute("DELETE FROM cli_calls WHERE conversation_id = ?", (conversation_id,))
            await db.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            cursor = await db.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            await db.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Error deleting conversation {conversation_id}: {e}")
        raise


async def set_conversation_session_id(conversation_id: int, session_id: str):
    """Remember the CLI session id last reported for this conversation."""
    try:
        async with connect() as db:
            await db.execute(
                "UPDATE conversations SET cli_session_id = ? WHERE id = ?",
                (session_id, conversation_id),
            )
            await db.commit()
    except Exception as e:
        logger.error(f"Error saving session id for conversation {conversation_id}: {e}")
        raise


# ============================================================================
# Messages
# ============================================================================

async def save_message(conversation_id: int, role: str, content: str) -> int:
    try:
        async with connect() as db:
            cursor = await db.execute(
                "INSERT INTO messages (conversation_id, role, content) VALUES (?, ?, ?)",
                (conversation_id, role, content),
            )
            await db.execute(
                "UPDATE conversations SET updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (conversation_id,),
            )
            await db.commit()
            return cursor.lastrowid
    except Exception as e:
        logger.error(f"Error saving message: {e}")
        raise


async def get_messages(conversation_id: int) -> List[Dict[str, Any]]:
    """Messages in insertion order."""
    try:
        async with connect() as db:
            async with db.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY timestamp ASC, id ASC",
                (conversation_id,),
            ) as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting messages for conversation {conversation_id}: {e}")
        raise
    return [dict(row) for row in rows]
