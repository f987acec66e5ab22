"""Utility functions package"""
from .file_tree import build_file_tree, count_files
from .safety import resolve_within_root
from .helpers import make_trace_logger, emit_log, safe_cmd, quote_args, truncate

__all__ = [
    'build_file_tree', 'count_files', 'resolve_within_root',
    'make_trace_logger', 'emit_log', 'safe_cmd', 'quote_args', 'truncate'
]
