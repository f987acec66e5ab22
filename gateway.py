#!/usr/bin/env python3
"""
Realtime Gateway
WebSocket chat endpoint: each inbound message runs one CLI call and the
outcome goes back to the originating connection only
"""

import asyncio
import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from cli_adapters.claude_adapter import run_cli_call
from config import CLI_TIMEOUT
from conversation_store import set_conversation_session_id
from models import ChatMessagePayload, CliCallRequest
from settings_provider import load_cli_settings
from utils.helpers import make_trace_logger, truncate as _truncate

logger = logging.getLogger(__name__)

EmitFn = Callable[[str, Dict[str, Any]], Awaitable[None]]

# Strong references so in-flight calls outlive a disconnected client
_background_tasks: Set[asyncio.Task] = set()


def parse_frame(text: str) -> tuple[Optional[ChatMessagePayload], Optional[str]]:
    """Return (payload, None) for a valid `message` frame, else (None, problem)."""
    try:
        frame = json.loads(text)
    except json.JSONDecodeError:
        return None, "Invalid frame: expected a JSON object"
    if not isinstance(frame, dict):
        return None, "Invalid frame: expected a JSON object"

    event = frame.get("event")
    if event != "message":
        return None, f"Unknown event: {event}"

    try:
        payload = ChatMessagePayload.model_validate(frame.get("data") or {})
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        return None, f"Invalid message payload: {location} {first['msg']}"

    if not payload.content.strip():
        return None, "Message content is required"
    return payload, None


async def handle_chat_message(payload: ChatMessagePayload, emit: EmitFn):
    """Run one chat message through the CLI and emit exactly one terminal event."""
    trace_id, trace = make_trace_logger()
    trace(
        "chat.message",
        f"preview={_truncate(payload.content, limit=60)!r} files={len(payload.context_files or [])} "
        f"model={payload.model} conversation={payload.conversation_id}",
    )

    try:
        settings = await load_cli_settings()
    except Exception as e:
        trace("chat.settings.error", str(e), level=logging.ERROR)
        await _safe_emit(emit, "error", {"error": f"Failed to load CLI settings: {e}"}, trace)
        return

    try:
        result = await run_cli_call(
            CliCallRequest(
                message=payload.content,
                context_files=payload.context_files,
                model=payload.model,
                conversation_id=payload.conversation_id,
                message_id=payload.message_id,
            ),
            settings,
            trace=trace,
            timeout=CLI_TIMEOUT,
        )
    except Exception as e:
        trace("chat.bridge.error", f"{type(e).__name__}: {e}", level=logging.ERROR)
        await _safe_emit(emit, "error", {"error": f"CLI call failed: {e}"}, trace)
        return

    if result.success and result.session_id and payload.conversation_id is not None:
        try:
            await set_conversation_session_id(payload.conversation_id, result.session_id)
            trace("session.map.updated", f"conversation={payload.conversation_id} session={result.session_id}")
        except Exception as e:
            trace("session.map.error", str(e), level=logging.ERROR)

    event, data = result.to_event()
    trace("chat.reply", f"event={event} record={result.record_id}")
    await _safe_emit(emit, event, data, trace)


async def _safe_emit(emit: EmitFn, event: str, data: Dict[str, Any], trace):
    try:
        await emit(event, data)
    except Exception as e:
        # Client went away while the CLI was running
        trace("chat.reply.undelivered", f"event={event} error={e!r}", level=logging.WARNING)


async def handle_connection(websocket: WebSocket):
    """Receive loop for one client connection."""
    await websocket.accept()
    connection_id = uuid.uuid4().hex[:8]
    send_lock = asyncio.Lock()
    logger.info(f"Client connected: {connection_id}")

    async def emit(event: str, data: Dict[str, Any]):
        async with send_lock:
            await websocket.send_json({"event": event, "data": data})

    await emit("connected", {"id": connection_id})

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            text = message.get("text")
            if text is None:
                logger.warning(f"[{connection_id}] rejected non-text frame")
                await emit("error", {"error": "Invalid frame: expected a text frame"})
                continue

            payload, problem = parse_frame(text)
            if problem:
                logger.warning(f"[{connection_id}] rejected frame: {problem}")
                await emit("error", {"error": problem})
                continue

            task = asyncio.create_task(handle_chat_message(payload, emit))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)
    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {connection_id}")
