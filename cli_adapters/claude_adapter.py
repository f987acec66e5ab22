#!/usr/bin/env python3
"""
Claude CLI Adapter
Runs one chat message through the configured CLI, classifies the outcome
and records it in the invocation log
"""

import asyncio
import contextlib
import json
import logging
from typing import Awaitable, Callable, List, Optional

from call_log import log_cli_call
from config import (
    MODEL_FLAG, NO_RESPONSE_ERROR, OUTPUT_FORMAT_FLAG, OUTPUT_FORMAT_JSON,
    PRINT_FLAG, PRINT_FLAG_ALIASES, SHELL_SPAWN_FAILURE_CODES,
    SPAWN_FAILURE_EXIT_CODE, CONTEXT_FILES_HEADER
)
from models import (
    BridgeResult, CallPhase, CliCallRecord, CliCallRequest, CliCallState,
    CliSettings, ResponseEnvelope
)
from utils.helpers import TraceFn, emit_log as _emit_log, quote_args, safe_cmd as _safe_cmd, truncate as _truncate

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024

RecordCallFn = Callable[[CliCallRecord], Awaitable[int]]


# ============================================================================
# Request Preparation
# ============================================================================

def compose_prompt(message: str, context_files: Optional[List[str]] = None) -> str:
    """
    Build the text written to the CLI's stdin.
    Context files are listed one per line, in the order given, ahead of the question.
    """
    if not context_files:
        return message
    file_lines = "\n".join(f"- {path}" for path in context_files)
    return f"{CONTEXT_FILES_HEADER}\n{file_lines}\n\nUser question: {message}"


def resolve_cli_args(arg_string: str, model: Optional[str] = None) -> List[str]:
    """
    Split the configured argument string and add the structured-output flags.
    Splitting is on single spaces only, so repeated spaces produce empty tokens.
    """
    args = arg_string.split(" ") if arg_string else []
    if not any(flag in args for flag in PRINT_FLAG_ALIASES):
        args.append(PRINT_FLAG)
    if OUTPUT_FORMAT_FLAG not in args:
        args.extend([OUTPUT_FORMAT_FLAG, OUTPUT_FORMAT_JSON])
    if model:
        args.extend([MODEL_FLAG, model])
    return args


# ============================================================================
# Response Parsing
# ============================================================================

def decode_envelope(output: str) -> Optional[ResponseEnvelope]:
    """
    Decode the CLI's JSON response document.
    Returns None for plain-text output or anything that is not a JSON object.
    """
    try:
        document = json.loads(output)
    except (ValueError, RecursionError):
        # Not JSON, or nested too deeply to decode
        return None
    if not isinstance(document, dict):
        return None
    result = document.get("result")
    session_id = document.get("session_id")
    return ResponseEnvelope(
        result=result if isinstance(result, str) else None,
        session_id=session_id if isinstance(session_id, str) else None,
    )


# ============================================================================
# Process Execution
# ============================================================================

async def _read_stream(stream: asyncio.StreamReader, chunks: List[bytes]):
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            return
        chunks.append(chunk)


async def _communicate(process: asyncio.subprocess.Process, state: CliCallState, trace: Optional[TraceFn]) -> int:
    """Feed stdin once, collect both output streams, and wait for exit."""
    readers = asyncio.gather(
        _read_stream(process.stdout, state.stdout_chunks),
        _read_stream(process.stderr, state.stderr_chunks),
    )
    state.advance(CallPhase.COLLECTING)
    try:
        process.stdin.write((state.full_stdin + "\n").encode("utf-8"))
        await process.stdin.drain()
    except (BrokenPipeError, ConnectionResetError) as e:
        _emit_log(trace, "cli.stdin.closed", f"process closed stdin early: {e}", level=logging.WARNING)
    finally:
        process.stdin.close()

    await readers
    return await process.wait()


async def _execute(state: CliCallState, trace: Optional[TraceFn], timeout: Optional[float]):
    settings = state.settings
    cmdline = f"{settings.command} {quote_args(state.args)}".rstrip()
    try:
        process = await asyncio.create_subprocess_shell(
            cmdline,
            cwd=settings.working_directory,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        # ValueError: NUL byte in the command line or cwd
        state.spawn_error = str(e)
        return

    state.advance(CallPhase.SPAWNED)
    if timeout is None:
        state.exit_code = await _communicate(process, state, trace)
    else:
        try:
            state.exit_code = await asyncio.wait_for(_communicate(process, state, trace), timeout=timeout)
        except asyncio.TimeoutError:
            # The process may have exited between the timeout and the kill
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            state.exit_code = await process.wait()
            state.timed_out = True

    if state.exit_code in SHELL_SPAWN_FAILURE_CODES:
        # The shell itself reports a missing or non-executable command
        state.spawn_error = state.stderr_text.strip() or SHELL_SPAWN_FAILURE_CODES[state.exit_code]


# ============================================================================
# Outcome Classification
# ============================================================================

def _spawn_failure(state: CliCallState) -> tuple[BridgeResult, CliCallRecord]:
    command = state.settings.command
    result = BridgeResult(
        success=False,
        error=(
            f"Failed to start {command}: {state.spawn_error}. "
            f"Make sure {command} is installed and available in PATH."
        ),
    )
    record = _build_record(
        state,
        response="",
        error=state.spawn_error,
        exit_code=SPAWN_FAILURE_EXIT_CODE,
        success=False,
        session_id=None,
    )
    return result, record


def _process_exit(state: CliCallState, timeout: Optional[float]) -> tuple[BridgeResult, CliCallRecord]:
    raw_output = state.stdout_text
    trimmed = raw_output.strip()
    success = state.exit_code == 0 and bool(trimmed)

    envelope = decode_envelope(raw_output)
    if envelope is None:
        response_text, session_id = trimmed, None
    else:
        response_text = envelope.result if envelope.result is not None else trimmed
        session_id = envelope.session_id

    error_text = state.stderr_text
    if state.timed_out:
        error_text = "\n".join(filter(None, [error_text.strip(), f"CLI timed out after {timeout:g} seconds"]))

    if success:
        result = BridgeResult(success=True, content=response_text, session_id=session_id)
    else:
        result = BridgeResult(success=False, error=error_text if error_text.strip() else NO_RESPONSE_ERROR)

    record = _build_record(
        state,
        response=response_text,
        error=error_text,
        exit_code=state.exit_code,
        success=success,
        session_id=session_id,
    )
    return result, record


def _build_record(
    state: CliCallState,
    response: str,
    error: str,
    exit_code: Optional[int],
    success: bool,
    session_id: Optional[str],
) -> CliCallRecord:
    request = state.request
    return CliCallRecord(
        conversation_id=request.conversation_id,
        message_id=request.message_id,
        user_message=request.message,
        cli_command=state.settings.command,
        cli_args=quote_args(state.args),
        execution_path=state.settings.working_directory,
        response=response,
        error=error,
        exit_code=exit_code,
        duration_ms=state.duration_ms,
        success=success,
        context_files=request.context_files or None,
        full_stdin=state.full_stdin,
        model=request.model,
        cli_session_id=session_id,
    )


# ============================================================================
# Public Entry Point
# ============================================================================

async def run_cli_call(
    request: CliCallRequest,
    settings: CliSettings,
    trace: Optional[TraceFn] = None,
    timeout: Optional[float] = None,
    record_call: RecordCallFn = log_cli_call,
) -> BridgeResult:
    """
    Run one message through the CLI and return its classified outcome.
    Exactly one invocation record is written per call, whatever the outcome;
    a failed log write is reported but never changes the result.
    timeout=None waits for the CLI indefinitely.
    """
    state = CliCallState(
        request=request,
        settings=settings,
        args=resolve_cli_args(settings.args, request.model),
        full_stdin=compose_prompt(request.message, request.context_files),
    )

    _emit_log(trace, "cli.prompt.full", f"stdin={_truncate(state.full_stdin, limit=4000)}", level=logging.DEBUG)
    _emit_log(trace, "cli.exec.start", f"cmd={_safe_cmd(settings.command, state.args)} cwd={settings.working_directory}")

    await _execute(state, trace, timeout)
    state.finish_timing()
    state.advance(CallPhase.EXITED)

    if state.spawn_error is not None:
        _emit_log(trace, "cli.exec.spawn_error", state.spawn_error, level=logging.ERROR)
        result, record = _spawn_failure(state)
    else:
        _emit_log(
            trace,
            "cli.exec.done",
            f"rc={state.exit_code} elapsed={state.duration_ms}ms "
            f"stdout_len={len(state.stdout_text)} stderr_len={len(state.stderr_text)}",
        )
        result, record = _process_exit(state, timeout)
        if not record.success:
            _emit_log(trace, "cli.exec.failed", _truncate(result.error), level=logging.WARNING)

    try:
        result.record_id = await record_call(record)
    except Exception as e:
        _emit_log(trace, "cli.log.error", f"failed to record CLI call: {e}", level=logging.ERROR)

    state.advance(CallPhase.LOGGED_SUCCESS if record.success else CallPhase.LOGGED_FAILURE)
    return result
