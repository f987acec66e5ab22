#!/usr/bin/env python3
"""
Path Safety Utilities
Confine file access to the configured CLI root
"""

import logging
from pathlib import Path

from models import PathOutsideRootError

logger = logging.getLogger(__name__)


def resolve_within_root(root: str, relative_path: str) -> Path:
    """Resolve relative_path under root, refusing anything that escapes it."""
    root_path = Path(root).expanduser().resolve()
    candidate = (root_path / relative_path).resolve()
    try:
        candidate.relative_to(root_path)
    except ValueError:
        logger.warning(f"resolve_within_root: {relative_path!r} escapes {root_path}")
        raise PathOutsideRootError(relative_path)
    return candidate
