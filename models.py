#!/usr/bin/env python3
"""
Pydantic Models and Bridge Data Structures
Request bodies for the REST/realtime API and per-call state for the CLI bridge
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


# ============================================================================
# Realtime Payloads
# ============================================================================

class ChatMessagePayload(BaseModel):
    """Inbound `message` event sent over the realtime connection"""
    content: str
    context_files: Optional[List[str]] = Field(default=None, alias="contextFiles")
    model: Optional[str] = None
    conversation_id: Optional[int] = Field(default=None, alias="conversationId")
    message_id: Optional[int] = Field(default=None, alias="messageId")


# ============================================================================
# REST Request Bodies
# ============================================================================

class ConversationCreate(BaseModel):
    title: Optional[str] = "Untitled"
    selected_files: Optional[List[str]] = Field(default=None, alias="selectedFiles")
    model: Optional[str] = None


class ConversationUpdate(BaseModel):
    title: str
    selected_files: Optional[List[str]] = Field(default=None, alias="selectedFiles")
    model: Optional[str] = None


class MessageCreate(BaseModel):
    role: str
    content: str


class SettingUpdate(BaseModel):
    value: Optional[str] = None


class PromptCreate(BaseModel):
    name: str
    description: Optional[str] = None
    prompt_text: str = Field(alias="promptText")
    model: Optional[str] = None


class PromptUpdate(BaseModel):
    description: Optional[str] = None
    prompt_text: str = Field(alias="promptText")
    model: Optional[str] = None


class SummarizeRequest(BaseModel):
    """Summarize one file under CLI_ROOT with a stored prompt"""
    path: str
    prompt_name: str = Field(default="file-summarization", alias="promptName")
    model: Optional[str] = None


# ============================================================================
# CLI Bridge Models
# ============================================================================

@dataclass(frozen=True)
class CliSettings:
    """Execution settings snapshot, read once at the start of a call"""
    working_directory: str
    command: str
    args: str
    default_model: str


@dataclass
class CliCallRequest:
    """One chat message to run through the CLI"""
    message: str
    context_files: Optional[List[str]] = None
    model: Optional[str] = None
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None


@dataclass(frozen=True)
class ResponseEnvelope:
    """Structured JSON document emitted by the CLI in --output-format json mode"""
    result: Optional[str] = None
    session_id: Optional[str] = None


class CallPhase(Enum):
    """Lifecycle of a single CLI invocation"""
    SPAWNED = "spawned"
    COLLECTING = "collecting"
    EXITED = "exited"
    LOGGED_SUCCESS = "logged_success"
    LOGGED_FAILURE = "logged_failure"


@dataclass
class CliCallState:
    """Per-call state owned by exactly one bridge invocation"""
    request: CliCallRequest
    settings: CliSettings
    args: List[str]
    full_stdin: str
    started_at: float = field(default_factory=time.monotonic)
    phase: CallPhase = CallPhase.SPAWNED
    stdout_chunks: List[bytes] = field(default_factory=list)
    stderr_chunks: List[bytes] = field(default_factory=list)
    exit_code: Optional[int] = None
    spawn_error: Optional[str] = None
    timed_out: bool = False
    duration_ms: int = 0

    def advance(self, phase: CallPhase):
        self.phase = phase

    def finish_timing(self):
        self.duration_ms = int((time.monotonic() - self.started_at) * 1000)

    @property
    def stdout_text(self) -> str:
        return b"".join(self.stdout_chunks).decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return b"".join(self.stderr_chunks).decode("utf-8", errors="replace")


@dataclass
class CliCallRecord:
    """Invocation Log row, written once per bridge call"""
    user_message: str
    cli_command: str
    cli_args: str
    execution_path: str
    response: str
    error: str
    exit_code: Optional[int]
    duration_ms: int
    success: bool
    full_stdin: str
    context_files: Optional[List[str]] = None
    model: Optional[str] = None
    cli_session_id: Optional[str] = None
    conversation_id: Optional[int] = None
    message_id: Optional[int] = None


@dataclass
class BridgeResult:
    """Outcome of one bridge call as seen by the caller"""
    success: bool
    content: str = ""
    session_id: Optional[str] = None
    error: str = ""
    record_id: Optional[int] = None

    def to_event(self) -> tuple[str, Dict[str, Any]]:
        """Return the (event name, payload) pair for the realtime client"""
        if not self.success:
            return "error", {"error": self.error}
        payload: Dict[str, Any] = {"content": self.content}
        if self.session_id:
            payload["sessionId"] = self.session_id
        return "response", payload


# ============================================================================
# Custom Exceptions
# ============================================================================

class PromptNotFoundError(Exception):
    """Raised when a named prompt template does not exist."""
    pass


class PathOutsideRootError(Exception):
    """Raised when a requested file path escapes the configured CLI root."""
    pass
