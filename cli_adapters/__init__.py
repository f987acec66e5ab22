"""CLI Adapters for the external assistant tool"""
from .claude_adapter import (
    run_cli_call, compose_prompt, resolve_cli_args, decode_envelope
)

__all__ = [
    'run_cli_call', 'compose_prompt', 'resolve_cli_args', 'decode_envelope'
]
