#!/usr/bin/env python3
"""
Prompt Store
Named prompt templates, each with an optional preferred model
"""

import logging
from typing import Any, Dict, List, Optional

from config import FILE_SUMMARIZATION_MODEL, FILE_SUMMARIZATION_PROMPT, FILE_SUMMARIZATION_PROMPT_NAME
from database import connect, row_to_dict

logger = logging.getLogger(__name__)


async def create_prompt(
    name: str,
    description: Optional[str],
    prompt_text: str,
    model: Optional[str] = None,
) -> int:
    """Raises sqlite3.IntegrityError when the name is already taken."""
    try:
        async with connect() as db:
            cursor = await db.execute(
                "INSERT INTO prompts (name, description, prompt_text, model) VALUES (?, ?, ?, ?)",
                (name, description, prompt_text, model),
            )
            await db.commit()
            return cursor.lastrowid
    except Exception as e:
        logger.error(f"Error creating prompt {name}: {e}")
        raise


async def update_prompt(
    prompt_id: int,
    description: Optional[str],
    prompt_text: str,
    model: Optional[str] = None,
) -> bool:
    try:
        async with connect() as db:
            cursor = await db.execute(
                """
                UPDATE prompts SET description = ?, prompt_text = ?, model = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (description, prompt_text, model, prompt_id),
            )
            await db.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Error updating prompt {prompt_id}: {e}")
        raise


async def _fetch_one(query: str, params: tuple) -> Optional[Dict[str, Any]]:
    try:
        async with connect() as db:
            async with db.execute(query, params) as cursor:
                return row_to_dict(await cursor.fetchone())
    except Exception as e:
        logger.error(f"Error getting prompt: {e}")
        raise


async def get_prompt(prompt_id: int) -> Optional[Dict[str, Any]]:
    return await _fetch_one("SELECT * FROM prompts WHERE id = ?", (prompt_id,))


async def get_prompt_by_name(name: str) -> Optional[Dict[str, Any]]:
    return await _fetch_one("SELECT * FROM prompts WHERE name = ?", (name,))


async def get_prompts() -> List[Dict[str, Any]]:
    try:
        async with connect() as db:
            async with db.execute("SELECT * FROM prompts ORDER BY name ASC") as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting all prompts: {e}")
        raise
    return [dict(row) for row in rows]


async def delete_prompt(prompt_id: int) -> bool:
    try:
        async with connect() as db:
            cursor = await db.execute("DELETE FROM prompts WHERE id = ?", (prompt_id,))
            await db.commit()
            return cursor.rowcount > 0
    except Exception as e:
        logger.error(f"Error deleting prompt {prompt_id}: {e}")
        raise


async def initialize_default_prompts():
    if not await get_prompt_by_name(FILE_SUMMARIZATION_PROMPT_NAME):
        await create_prompt(
            FILE_SUMMARIZATION_PROMPT_NAME,
            "Summarize the content of a file",
            FILE_SUMMARIZATION_PROMPT,
            FILE_SUMMARIZATION_MODEL,  # faster, cheaper model for summaries
        )
        logger.info(f"Initialized default {FILE_SUMMARIZATION_PROMPT_NAME} prompt")
