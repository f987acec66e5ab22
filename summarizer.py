#!/usr/bin/env python3
"""
File Summarization
Runs a stored prompt against one project file through the CLI bridge
"""

import logging
from typing import Optional

from cli_adapters.claude_adapter import run_cli_call
from config import CLI_TIMEOUT
from models import BridgeResult, CliCallRequest, CliSettings, PromptNotFoundError
from prompt_store import get_prompt_by_name
from utils.helpers import TraceFn, emit_log as _emit_log
from utils.safety import resolve_within_root

logger = logging.getLogger(__name__)


def build_summary_message(prompt_text: str, relative_path: str, content: str) -> str:
    return f"{prompt_text}\n\nFile: {relative_path}\n\n{content}"


async def summarize_file(
    relative_path: str,
    settings: CliSettings,
    prompt_name: str,
    model: Optional[str] = None,
    trace: Optional[TraceFn] = None,
) -> tuple[BridgeResult, str]:
    """
    Summarize a file under the CLI root.
    Model precedence: explicit model, then the prompt's model, then DEFAULT_MODEL.
    Returns (bridge result, model used). Raises PromptNotFoundError,
    PathOutsideRootError or OSError for bad input.
    """
    prompt = await get_prompt_by_name(prompt_name)
    if prompt is None:
        raise PromptNotFoundError(prompt_name)

    file_path = resolve_within_root(settings.working_directory, relative_path)
    content = file_path.read_text(encoding="utf-8", errors="replace")

    chosen_model = model or prompt.get("model") or settings.default_model
    _emit_log(trace, "summarize.start", f"path={relative_path} prompt={prompt_name} model={chosen_model} chars={len(content)}")

    result = await run_cli_call(
        CliCallRequest(
            message=build_summary_message(prompt["prompt_text"], relative_path, content),
            model=chosen_model,
        ),
        settings,
        trace=trace,
        timeout=CLI_TIMEOUT,
    )
    return result, chosen_model
