#!/usr/bin/env python3
"""
Claude UI Server
Local web backend for the Claude CLI: realtime chat over WebSocket plus a
REST API for conversation history, CLI call logs, settings and prompts
"""

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import configuration
from config import CORS_ORIGINS, SERVER_HOST, SERVER_PORT, VERSION

# Import models
from models import (
    ConversationCreate, ConversationUpdate, MessageCreate, PathOutsideRootError,
    PromptCreate, PromptNotFoundError, PromptUpdate, SettingUpdate, SummarizeRequest
)

# Import storage
from database import init_db
from call_log import count_cli_calls, get_cli_call, get_recent_cli_calls
import conversation_store
import prompt_store
from settings_provider import (
    get_setting, get_settings, initialize_default_settings,
    load_cli_settings, set_setting
)

# Import realtime gateway and flows
from gateway import handle_connection
from summarizer import summarize_file

# Import utilities
from utils.file_tree import build_file_tree, count_files
from utils.helpers import make_trace_logger
from utils.safety import resolve_within_root

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    await initialize_default_settings()
    await prompt_store.initialize_default_prompts()
    logger.info("Make sure the configured CLI is installed and available in PATH")
    yield


# Initialize FastAPI app
app = FastAPI(title="Claude UI", version=VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(sqlite3.Error)
async def storage_error_handler(request: Request, exc: sqlite3.Error):
    logger.error(f"Storage error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Database operation failed"})


# ============================================================================
# Health
# ============================================================================

@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": "Claude UI API",
        "version": VERSION,
        "status": "running",
        "cli_calls": await count_cli_calls(),
    }


# ============================================================================
# Realtime Chat
# ============================================================================

@app.websocket("/ws")
async def websocket_chat(websocket: WebSocket):
    """Chat over WebSocket: `message` in, `response` or `error` out"""
    await handle_connection(websocket)


# ============================================================================
# Conversations and Messages
# ============================================================================

# Must be registered before /api/conversations/{conversation_id}
@app.get("/api/conversations/visible")
async def list_visible_conversations():
    """Conversations not hidden by the user"""
    return await conversation_store.get_visible_conversations()


@app.get("/api/conversations")
async def list_conversations():
    """All conversations, including hidden ones (admin view)"""
    return await conversation_store.get_conversations()


@app.get("/api/conversations/{conversation_id}")
async def get_conversation(conversation_id: int):
    conversation = await conversation_store.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@app.post("/api/conversations")
async def create_conversation(body: ConversationCreate):
    title = body.title or "Untitled"
    conversation_id = await conversation_store.create_conversation(title, body.selected_files, body.model)
    return {"id": conversation_id, "title": title}


@app.put("/api/conversations/{conversation_id}")
async def update_conversation(conversation_id: int, body: ConversationUpdate):
    updated = await conversation_store.update_conversation(
        conversation_id, body.title, body.selected_files, body.model
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True}


@app.put("/api/conversations/{conversation_id}/hide")
async def hide_conversation(conversation_id: int):
    """Soft delete for the user UI"""
    if not await conversation_store.hide_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True, "message": "Conversation hidden"}


@app.delete("/api/conversations/{conversation_id}")
async def delete_conversation(conversation_id: int):
    """Permanent delete, including messages and CLI call records (admin only)"""
    if not await conversation_store.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"success": True, "message": "Conversation permanently deleted"}


@app.get("/api/conversations/{conversation_id}/messages")
async def list_messages(conversation_id: int):
    return await conversation_store.get_messages(conversation_id)


@app.post("/api/conversations/{conversation_id}/messages")
async def create_message(conversation_id: int, body: MessageCreate):
    if await conversation_store.get_conversation(conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    message_id = await conversation_store.save_message(conversation_id, body.role, body.content)
    return {"id": message_id, "conversation_id": conversation_id, "role": body.role, "content": body.content}


# ============================================================================
# CLI Call Log
# ============================================================================

@app.get("/api/cli-calls")
async def list_cli_calls(limit: int = Query(100, ge=1, le=1000)):
    return await get_recent_cli_calls(limit)


@app.get("/api/cli-calls/{call_id}")
async def get_cli_call_detail(call_id: int):
    call = await get_cli_call(call_id)
    if call is None:
        raise HTTPException(status_code=404, detail="CLI call not found")
    return call


# ============================================================================
# Settings
# ============================================================================

@app.get("/api/settings")
async def list_settings():
    return await get_settings()


@app.get("/api/settings/{key}")
async def get_setting_value(key: str):
    value = await get_setting(key)
    if value is None:
        raise HTTPException(status_code=404, detail="Setting not found")
    return {"key": key, "value": value}


@app.put("/api/settings/{key}")
async def update_setting(key: str, body: SettingUpdate):
    if not body.value:
        raise HTTPException(status_code=400, detail="Value is required")
    await set_setting(key, body.value)
    logger.info(f"Setting updated: {key}={body.value}")
    return {"success": True, "key": key, "value": body.value}


# ============================================================================
# Prompts
# ============================================================================

@app.get("/api/prompts")
async def list_prompts():
    return await prompt_store.get_prompts()


@app.post("/api/prompts")
async def create_prompt(body: PromptCreate):
    try:
        prompt_id = await prompt_store.create_prompt(body.name, body.description, body.prompt_text, body.model)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=409, detail=f"Prompt '{body.name}' already exists")
    return await prompt_store.get_prompt(prompt_id)


@app.get("/api/prompts/{prompt_id}")
async def get_prompt(prompt_id: int):
    prompt = await prompt_store.get_prompt(prompt_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return prompt


@app.put("/api/prompts/{prompt_id}")
async def update_prompt(prompt_id: int, body: PromptUpdate):
    if not await prompt_store.update_prompt(prompt_id, body.description, body.prompt_text, body.model):
        raise HTTPException(status_code=404, detail="Prompt not found")
    return await prompt_store.get_prompt(prompt_id)


@app.delete("/api/prompts/{prompt_id}")
async def delete_prompt(prompt_id: int):
    if not await prompt_store.delete_prompt(prompt_id):
        raise HTTPException(status_code=404, detail="Prompt not found")
    return {"success": True}


# ============================================================================
# Files
# ============================================================================

@app.get("/api/files")
async def list_files():
    """File tree under CLI_ROOT, filtered to source/document extensions"""
    root_path = (await load_cli_settings()).working_directory
    tree = build_file_tree(root_path)
    logger.debug(f"File tree for {root_path}: {count_files(tree)} files")
    return {"root": root_path, "files": tree}


@app.get("/api/files/content")
async def read_file_content(path: Optional[str] = Query(None)):
    if not path:
        raise HTTPException(status_code=400, detail="File path is required")

    root_path = (await load_cli_settings()).working_directory
    try:
        full_path = resolve_within_root(root_path, path)
    except PathOutsideRootError:
        raise HTTPException(status_code=403, detail="Access denied")

    if not full_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    try:
        content = full_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.error(f"Error reading file {full_path}: {e}")
        raise HTTPException(status_code=500, detail="Failed to read file")
    return {"path": path, "content": content}


@app.post("/api/files/summarize")
async def summarize(body: SummarizeRequest):
    """Summarize one file with a stored prompt via the CLI"""
    trace_id, trace = make_trace_logger()
    settings = await load_cli_settings()
    try:
        result, model = await summarize_file(body.path, settings, body.prompt_name, body.model, trace=trace)
    except PromptNotFoundError:
        raise HTTPException(status_code=404, detail=f"Prompt '{body.prompt_name}' not found")
    except PathOutsideRootError:
        raise HTTPException(status_code=403, detail="Access denied")
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    except OSError as e:
        trace("summarize.read_error", str(e), level=logging.ERROR)
        raise HTTPException(status_code=500, detail="Failed to read file")

    if not result.success:
        raise HTTPException(status_code=502, detail=result.error)
    return {
        "path": body.path,
        "summary": result.content,
        "sessionId": result.session_id,
        "model": model,
        "callId": result.record_id,
    }


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
