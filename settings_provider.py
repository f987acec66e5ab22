#!/usr/bin/env python3
"""
Settings Provider for Claude UI
Key/value execution settings backed by SQLite, with hardcoded fallbacks
"""

import logging
import os
from typing import Any, Dict, List, Optional

from config import DEFAULT_CLI_ARGS, DEFAULT_CLI_COMMAND, DEFAULT_MODEL
from database import connect
from models import CliSettings

logger = logging.getLogger(__name__)

CLI_ROOT = "CLI_ROOT"
CLI_COMMAND = "CLI_COMMAND"
CLI_ARGS = "CLI_ARGS"
DEFAULT_MODEL_KEY = "DEFAULT_MODEL"


def default_settings() -> Dict[str, str]:
    """Fallback values; CLI_ROOT follows the process working directory."""
    return {
        CLI_ROOT: os.getcwd(),
        CLI_COMMAND: DEFAULT_CLI_COMMAND,
        CLI_ARGS: DEFAULT_CLI_ARGS,
        DEFAULT_MODEL_KEY: DEFAULT_MODEL,
    }


async def get_setting(key: str, default: Optional[str] = None) -> Optional[str]:
    """Lookup a setting value, returning default when the key is absent."""
    try:
        async with connect() as db:
            async with db.execute("SELECT value FROM settings WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
    except Exception as e:
        logger.error(f"Error getting setting {key}: {e}")
        raise
    return row["value"] if row is not None else default


async def set_setting(key: str, value: str):
    """Insert or update a setting."""
    try:
        async with connect() as db:
            await db.execute(
                """
                INSERT INTO settings (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
            await db.commit()
    except Exception as e:
        logger.error(f"Error setting {key}: {e}")
        raise


async def get_settings() -> List[Dict[str, Any]]:
    """All stored settings (for the admin endpoint)."""
    try:
        async with connect() as db:
            async with db.execute("SELECT * FROM settings ORDER BY key") as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error getting all settings: {e}")
        raise
    return [dict(row) for row in rows]


async def initialize_default_settings():
    """Store a default for every setting that is missing or empty."""
    for key, value in default_settings().items():
        if not await get_setting(key):
            await set_setting(key, value)
            logger.info(f"Initialized {key} setting to: {value}")


async def load_cli_settings() -> CliSettings:
    """Snapshot the execution settings for one CLI call."""
    values = default_settings()
    keys = tuple(values)
    try:
        async with connect() as db:
            async with db.execute(
                f"SELECT key, value FROM settings WHERE key IN ({', '.join('?' for _ in keys)})",
                keys,
            ) as cursor:
                rows = await cursor.fetchall()
    except Exception as e:
        logger.error(f"Error loading CLI settings: {e}")
        raise
    values.update({row["key"]: row["value"] for row in rows})
    return CliSettings(
        working_directory=values[CLI_ROOT],
        command=values[CLI_COMMAND],
        args=values[CLI_ARGS],
        default_model=values[DEFAULT_MODEL_KEY],
    )
