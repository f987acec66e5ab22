import logging

import pytest

from models import PathOutsideRootError
from utils.file_tree import build_file_tree, count_files
from utils.helpers import make_trace_logger, quote_args, safe_cmd, truncate
from utils.safety import resolve_within_root


def test_resolve_within_root_allows_nested_paths(tmp_path):
    (tmp_path / "src").mkdir()

    assert resolve_within_root(str(tmp_path), "src/app.py") == (tmp_path / "src" / "app.py").resolve()


@pytest.mark.parametrize("path", ["../outside.md", "src/../../outside.md", "/etc/passwd"])
def test_resolve_within_root_refuses_escapes(tmp_path, path):
    with pytest.raises(PathOutsideRootError):
        resolve_within_root(str(tmp_path), path)


def test_file_tree_drops_empty_and_excluded_directories(tmp_path):
    (tmp_path / "empty").mkdir()
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "logo.png").write_bytes(b"")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config.json").write_text("{}")
    (tmp_path / "B.md").write_text("")
    (tmp_path / "a.py").write_text("")

    tree = build_file_tree(tmp_path)

    assert [entry["name"] for entry in tree] == ["a.py", "B.md"]
    assert count_files(tree) == 2


def test_file_tree_missing_directory_is_empty(tmp_path):
    assert build_file_tree(tmp_path / "gone") == []


def test_quote_args_and_safe_cmd():
    assert quote_args(["chat", "two words"]) == "chat 'two words'"
    assert safe_cmd("claude", ["--print"]) == "claude --print"


def test_truncate():
    assert truncate("short", limit=10) == "short"
    assert truncate("x" * 20, limit=5).startswith("xxxxx")


def test_trace_logger_prefixes_trace_id(caplog):
    trace_id, trace = make_trace_logger()

    with caplog.at_level(logging.INFO):
        trace("chat.message", "hello")

    assert trace_id in caplog.text
    assert "chat.message" in caplog.text
