#!/usr/bin/env python3
"""
File Tree Builder
Filtered directory listing of the CLI root for the file browser
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Sequence

from config import ALLOWED_EXTENSIONS, EXCLUDED_DIRS

logger = logging.getLogger(__name__)


def build_file_tree(
    dir_path: Path,
    relative_path: str = "",
    allowed_extensions: Sequence[str] = ALLOWED_EXTENSIONS,
    excluded_dirs: Sequence[str] = EXCLUDED_DIRS,
) -> List[Dict[str, Any]]:
    """
    List matching files below dir_path.
    Directories without matching descendants are dropped; directories sort
    before files and both sort by name.
    """
    entries: List[Dict[str, Any]] = []
    try:
        items = list(Path(dir_path).iterdir())
    except OSError as e:
        logger.error(f"Error reading directory {dir_path}: {e}")
        return entries

    for item in items:
        item_relative = f"{relative_path}/{item.name}" if relative_path else item.name
        if item.is_dir():
            if item.name in excluded_dirs:
                continue
            children = build_file_tree(item, item_relative, allowed_extensions, excluded_dirs)
            if children:
                entries.append({
                    "name": item.name,
                    "path": item_relative,
                    "type": "directory",
                    "children": children,
                })
        elif item.is_file() and item.suffix in allowed_extensions:
            entries.append({
                "name": item.name,
                "path": item_relative,
                "type": "file",
                "extension": item.suffix,
            })

    entries.sort(key=lambda entry: (entry["type"] != "directory", entry["name"].lower()))
    return entries


def count_files(tree: List[Dict[str, Any]]) -> int:
    """Number of file entries in a tree (used for logging)."""
    return sum(1 if entry["type"] == "file" else count_files(entry["children"]) for entry in tree)
