#!/usr/bin/env python3
"""
Configuration and Constants for Claude UI
Centralizes all environment variables, paths, and configuration settings
"""

import os
from pathlib import Path
from typing import List, Optional
import logging

# ============================================================================
# Version and Basic Configuration
# ============================================================================

VERSION = "0.4.0"
SERVER_HOST = os.getenv("CLAUDE_UI_HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("CLAUDE_UI_PORT", "3001"))

# ============================================================================
# Storage
# ============================================================================

DB_PATH = Path(os.getenv("CLAUDE_UI_DB_PATH", Path(__file__).parent / "claude-cli.db"))

# ============================================================================
# CLI Execution
# ============================================================================

# Hardcoded fallbacks used when a setting is missing from the database
DEFAULT_CLI_COMMAND = "claude"
DEFAULT_CLI_ARGS = "chat"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


def _parse_timeout(raw: str) -> Optional[float]:
    """Empty or zero means wait for the CLI indefinitely."""
    try:
        value = float(raw) if raw else 0.0
    except ValueError:
        logging.warning(f"Ignoring invalid CLAUDE_UI_CLI_TIMEOUT '{raw}'")
        return None
    return value if value > 0 else None


CLI_TIMEOUT = _parse_timeout(os.getenv("CLAUDE_UI_CLI_TIMEOUT", ""))

# Flags appended to every invocation so the CLI answers once, as JSON
PRINT_FLAG = "--print"
PRINT_FLAG_ALIASES = ("--print", "-p")
OUTPUT_FORMAT_FLAG = "--output-format"
OUTPUT_FORMAT_JSON = "json"
MODEL_FLAG = "--model"

# Shell exit statuses for "command not found" / "found but not executable"
SHELL_SPAWN_FAILURE_CODES = {126: "permission denied", 127: "command not found"}
SPAWN_FAILURE_EXIT_CODE = -1

NO_RESPONSE_ERROR = "Failed to get response from Claude CLI"

CONTEXT_FILES_HEADER = (
    "I've selected the following files from the project as context. "
    "Please read them before answering."
)

# ============================================================================
# Default Prompts
# ============================================================================

FILE_SUMMARIZATION_PROMPT_NAME = "file-summarization"
FILE_SUMMARIZATION_MODEL = "claude-3-5-haiku-20241022"
FILE_SUMMARIZATION_PROMPT = """Please provide a comprehensive summary of the following file. Include:

1. **Purpose**: What is the main purpose of this file?
2. **Key Components**: What are the main sections, functions, or classes?
3. **Dependencies**: What libraries or modules does it depend on?
4. **Key Functionality**: What are the most important features or behaviors?
5. **Notable Patterns**: Are there any design patterns or architectural decisions worth mentioning?

Keep the summary concise but informative."""

# ============================================================================
# File Browser
# ============================================================================

ALLOWED_EXTENSIONS = [
    ".md", ".ps1", ".js", ".css", ".html", ".cs", ".razor",
    ".py", ".ts", ".tsx", ".json",
]
EXCLUDED_DIRS = ["node_modules", "bin", "obj", ".git", "__pycache__", ".venv"]

# ============================================================================
# HTTP
# ============================================================================


def _parse_origins(raw: str) -> List[str]:
    """Parse comma-separated list of allowed CORS origins"""
    return [part.strip() for part in raw.split(",") if part.strip()]


CORS_ORIGINS = _parse_origins(os.getenv("CLAUDE_UI_CORS_ORIGINS", "http://localhost:5173"))

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL = os.getenv("CLAUDE_UI_LOG_LEVEL", "DEBUG").upper()

# Default to DEBUG so CLI output tracing is visible when tailing logs
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.DEBUG),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
