"""
Process-level tests for the CLI bridge: spawning, outcome classification,
and the invocation record written for every call.
"""
import asyncio
import json

import pytest

from call_log import count_cli_calls, get_cli_call
from cli_adapters import claude_adapter
from cli_adapters.claude_adapter import compose_prompt, run_cli_call
from config import NO_RESPONSE_ERROR
from models import CliCallRequest, CliSettings

JSON_REPLY = """
sys.stdin.read()
print(json.dumps({"type": "result", "result": "42", "session_id": "abc"}))
"""

PLAIN_REPLY = """
sys.stdin.read()
print("hello")
"""

ECHO_STDIN = """
data = sys.stdin.read()
print(json.dumps({"result": data}))
"""

ECHO_ARGV = """
sys.stdin.read()
print(json.dumps({"result": json.dumps(sys.argv[1:])}))
"""


# ============================================================================
# Successful runs
# ============================================================================

@pytest.mark.asyncio
async def test_json_envelope_yields_result_and_session(isolated_db, make_cli):
    settings = make_cli(JSON_REPLY)

    result = await run_cli_call(CliCallRequest(message="what is the answer?"), settings)

    assert result.success is True
    assert result.to_event() == ("response", {"content": "42", "sessionId": "abc"})

    record = await get_cli_call(result.record_id)
    assert record["success"] is True
    assert record["exit_code"] == 0
    assert record["response"] == "42"
    assert record["cli_session_id"] == "abc"
    assert record["user_message"] == "what is the answer?"
    assert record["full_stdin"] == "what is the answer?"
    assert record["execution_path"] == settings.working_directory
    assert record["duration_ms"] >= 0


@pytest.mark.asyncio
async def test_plain_text_output_has_no_session(isolated_db, make_cli):
    result = await run_cli_call(CliCallRequest(message="hi"), make_cli(PLAIN_REPLY))

    assert result.to_event() == ("response", {"content": "hello"})
    record = await get_cli_call(result.record_id)
    assert record["response"] == "hello"
    assert record["cli_session_id"] is None


@pytest.mark.asyncio
async def test_context_files_reach_process_stdin(isolated_db, make_cli):
    request = CliCallRequest(message="summarize", context_files=["a.md", "b.md"])

    result = await run_cli_call(request, make_cli(ECHO_STDIN))

    expected = compose_prompt("summarize", ["a.md", "b.md"])
    assert result.content == expected + "\n"
    record = await get_cli_call(result.record_id)
    assert record["full_stdin"] == expected
    assert record["user_message"] == "summarize"
    assert record["context_files"] == ["a.md", "b.md"]


@pytest.mark.asyncio
async def test_flags_and_model_passed_to_process(isolated_db, make_cli):
    settings = make_cli(ECHO_ARGV)

    result = await run_cli_call(CliCallRequest(message="hi", model="claude-3-5-haiku-20241022"), settings)

    assert json.loads(result.content) == [
        "--print", "--output-format", "json", "--model", "claude-3-5-haiku-20241022",
    ]
    record = await get_cli_call(result.record_id)
    assert record["model"] == "claude-3-5-haiku-20241022"
    assert record["cli_args"].endswith("--print --output-format json --model claude-3-5-haiku-20241022")


@pytest.mark.asyncio
async def test_process_runs_in_configured_working_directory(isolated_db, make_cli, project_root):
    settings = make_cli("""
    import os
    sys.stdin.read()
    print(os.getcwd())
    """)

    result = await run_cli_call(CliCallRequest(message="pwd"), settings)

    assert result.success is True
    assert result.content == str(project_root.resolve())


# ============================================================================
# Success classification quadrants
# ============================================================================

@pytest.mark.asyncio
async def test_exit_zero_with_empty_output_is_failure(isolated_db, make_cli):
    result = await run_cli_call(CliCallRequest(message="hi"), make_cli("sys.stdin.read()\n"))

    assert result.success is False
    assert result.to_event() == ("error", {"error": NO_RESPONSE_ERROR})
    record = await get_cli_call(result.record_id)
    assert record["success"] is False
    assert record["exit_code"] == 0


@pytest.mark.asyncio
async def test_exit_zero_with_whitespace_output_is_failure(isolated_db, make_cli):
    settings = make_cli("""
    sys.stdin.read()
    sys.stdout.write("   \\n\\n")
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.success is False


@pytest.mark.asyncio
async def test_nonzero_exit_with_output_reports_stderr(isolated_db, make_cli):
    settings = make_cli("""
    sys.stdin.read()
    print("partial answer")
    sys.stderr.write("rate limited")
    sys.exit(2)
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.to_event() == ("error", {"error": "rate limited"})
    record = await get_cli_call(result.record_id)
    assert record["success"] is False
    assert record["exit_code"] == 2
    assert record["error"] == "rate limited"
    assert record["response"] == "partial answer"


@pytest.mark.asyncio
async def test_nonzero_exit_without_stderr_uses_generic_error(isolated_db, make_cli):
    settings = make_cli("""
    sys.stdin.read()
    sys.exit(3)
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.error == NO_RESPONSE_ERROR
    record = await get_cli_call(result.record_id)
    assert record["exit_code"] == 3
    assert record["success"] is False


@pytest.mark.asyncio
async def test_envelope_parsed_even_when_call_fails(isolated_db, make_cli):
    settings = make_cli("""
    sys.stdin.read()
    print(json.dumps({"result": "half done", "session_id": "s-1"}))
    sys.exit(1)
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.success is False
    assert result.session_id is None
    record = await get_cli_call(result.record_id)
    assert record["response"] == "half done"
    assert record["cli_session_id"] == "s-1"


# ============================================================================
# Spawn failures
# ============================================================================

@pytest.mark.asyncio
async def test_missing_command_is_spawn_failure(isolated_db, project_root):
    settings = CliSettings(
        working_directory=str(project_root),
        command="definitely-not-a-real-cli-7f3a",
        args="chat",
        default_model="claude-sonnet-4-5-20250929",
    )

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.success is False
    assert "definitely-not-a-real-cli-7f3a" in result.error
    assert "PATH" in result.error
    record = await get_cli_call(result.record_id)
    assert record["exit_code"] == -1
    assert record["success"] is False
    assert record["response"] == ""
    assert record["error"]


@pytest.mark.asyncio
async def test_missing_working_directory_is_spawn_failure(isolated_db, make_cli, tmp_path):
    good = make_cli(PLAIN_REPLY)
    settings = CliSettings(
        working_directory=str(tmp_path / "does-not-exist"),
        command=good.command,
        args=good.args,
        default_model=good.default_model,
    )

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.success is False
    assert result.error.startswith(f"Failed to start {settings.command}")
    record = await get_cli_call(result.record_id)
    assert record["exit_code"] == -1


# ============================================================================
# Invocation log guarantees
# ============================================================================

@pytest.mark.asyncio
async def test_one_record_per_call_for_every_outcome(isolated_db, make_cli, project_root):
    missing = CliSettings(str(project_root), "definitely-not-a-real-cli-7f3a", "", "m")
    outcomes = [
        make_cli(JSON_REPLY),
        make_cli("sys.stdin.read()\nsys.exit(4)\n"),
        missing,
    ]

    for settings in outcomes:
        before = await count_cli_calls()
        await run_cli_call(CliCallRequest(message="hi"), settings)
        assert await count_cli_calls() == before + 1


@pytest.mark.asyncio
async def test_identical_calls_are_not_deduplicated(isolated_db, make_cli):
    settings = make_cli(JSON_REPLY)

    first = await run_cli_call(CliCallRequest(message="same"), settings)
    second = await run_cli_call(CliCallRequest(message="same"), settings)

    assert first.record_id != second.record_id
    assert await count_cli_calls() == 2


@pytest.mark.asyncio
async def test_log_failure_does_not_fail_the_call(make_cli):
    async def broken_log(record):
        raise RuntimeError("database is locked")

    result = await run_cli_call(CliCallRequest(message="hi"), make_cli(JSON_REPLY), record_call=broken_log)

    assert result.success is True
    assert result.content == "42"
    assert result.record_id is None


@pytest.mark.asyncio
async def test_conversation_and_message_ids_are_attached(isolated_db, make_cli):
    request = CliCallRequest(message="hi", conversation_id=7, message_id=11)

    result = await run_cli_call(request, make_cli(JSON_REPLY))

    record = await get_cli_call(result.record_id)
    assert record["conversation_id"] == 7
    assert record["message_id"] == 11


# ============================================================================
# Concurrency and timeout
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_calls_keep_separate_buffers(isolated_db, make_cli):
    slow = make_cli("""
    sys.stdin.read()
    for part in ("ALPHA-1 ", "ALPHA-2 ", "ALPHA-3"):
        sys.stdout.write(part)
        sys.stdout.flush()
        time.sleep(0.15)
    """)
    fast = make_cli("""
    sys.stdin.read()
    for part in ("BRAVO-1 ", "BRAVO-2"):
        sys.stdout.write(part)
        sys.stdout.flush()
        time.sleep(0.05)
    """)

    alpha, bravo = await asyncio.gather(
        run_cli_call(CliCallRequest(message="alpha"), slow),
        run_cli_call(CliCallRequest(message="bravo"), fast),
    )

    assert alpha.content == "ALPHA-1 ALPHA-2 ALPHA-3"
    assert bravo.content == "BRAVO-1 BRAVO-2"
    assert (await get_cli_call(alpha.record_id))["response"] == "ALPHA-1 ALPHA-2 ALPHA-3"
    assert (await get_cli_call(bravo.record_id))["response"] == "BRAVO-1 BRAVO-2"


@pytest.mark.asyncio
async def test_optional_timeout_kills_hung_process(isolated_db, make_cli):
    settings = make_cli("""
    time.sleep(3)
    print("too late")
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings, timeout=0.5)

    assert result.success is False
    assert "timed out after 0.5 seconds" in result.error
    record = await get_cli_call(result.record_id)
    assert record["success"] is False
    assert record["exit_code"] != 0


@pytest.mark.asyncio
async def test_timeout_after_process_already_exited_is_still_logged(isolated_db, make_cli, monkeypatch):
    class _Sink:
        def write(self, data):
            pass

        async def drain(self):
            pass

        def close(self):
            pass

    class _Stalled:
        async def read(self, n):
            await asyncio.Event().wait()

    class _ExitedProcess:
        returncode = 0

        def __init__(self):
            self.stdin = _Sink()
            self.stdout = _Stalled()
            self.stderr = _Stalled()

        def kill(self):
            raise ProcessLookupError()

        async def wait(self):
            return 0

    async def spawn(*args, **kwargs):
        return _ExitedProcess()

    monkeypatch.setattr(claude_adapter.asyncio, "create_subprocess_shell", spawn)

    result = await run_cli_call(CliCallRequest(message="hi"), make_cli(PLAIN_REPLY), timeout=0.2)

    assert result.success is False
    assert "timed out after 0.2 seconds" in result.error
    assert await count_cli_calls() == 1


# ============================================================================
# Hostile input and output
# ============================================================================

@pytest.mark.asyncio
async def test_nul_byte_in_model_is_spawn_failure(isolated_db, make_cli):
    before = await count_cli_calls()

    result = await run_cli_call(CliCallRequest(message="hi", model="x\x00y"), make_cli(PLAIN_REPLY))

    assert result.success is False
    assert await count_cli_calls() == before + 1
    record = await get_cli_call(result.record_id)
    assert record["exit_code"] == -1
    assert record["success"] is False


@pytest.mark.asyncio
async def test_deeply_nested_output_degrades_to_raw_text(isolated_db, make_cli):
    settings = make_cli("""
    sys.stdin.read()
    sys.stdout.write("[" * 100000 + "]" * 100000)
    """)

    result = await run_cli_call(CliCallRequest(message="hi"), settings)

    assert result.success is True
    assert result.session_id is None
    assert result.content.startswith("[[[")
    assert await count_cli_calls() == 1
