import asyncio
import shlex
import sys
import textwrap
from pathlib import Path
from typing import Callable, Iterator

import pytest

import database
from models import CliSettings


@pytest.fixture
def isolated_db(tmp_path: Path, monkeypatch) -> Iterator[Path]:
    """Point every store at a fresh temp database instead of the real one."""
    db_path = tmp_path / "claude-ui-test.db"
    monkeypatch.setattr(database, "DB_PATH", db_path)
    asyncio.run(database.init_db())
    yield db_path


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Working directory for stub CLI runs."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_cli(tmp_path: Path, project_root: Path) -> Callable[..., CliSettings]:
    """
    Write a stub CLI script and return settings that run it.
    The bridge appends its own flags, which land in the script's sys.argv.
    """
    counter = {"n": 0}

    def factory(body: str, extra_args: str = "") -> CliSettings:
        counter["n"] += 1
        script = tmp_path / f"stub_cli_{counter['n']}.py"
        script.write_text(
            "import json, sys, time\n" + textwrap.dedent(body),
            encoding="utf-8",
        )
        args = str(script) + (f" {extra_args}" if extra_args else "")
        return CliSettings(
            working_directory=str(project_root),
            command=shlex.quote(sys.executable),
            args=args,
            default_model="claude-sonnet-4-5-20250929",
        )

    return factory
