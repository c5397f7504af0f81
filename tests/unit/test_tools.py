"""Tests for the sandbox tools."""

import json

import pytest

from worker.tools import (
    DEFAULT_PAGE_CONTENT,
    KILL_DEV_SERVER_COMMAND,
    START_DEV_SERVER_COMMAND,
    CreateOrUpdateFilesArgs,
    FinishTaskArgs,
    ReadFilesArgs,
    SandboxToolkit,
    TerminalArgs,
    wrap_summary,
)
from tests.fakes import FakeSandbox, no_sleep


class ReadinessRecorder:
    def __init__(self, ready=True):
        self.ready = ready
        self.calls = []

    async def __call__(self, url, attempts=1, backoff_seconds=0.0):
        self.calls.append((url, attempts, backoff_seconds))
        return self.ready


@pytest.fixture
def sandbox():
    return FakeSandbox("itwpgu0xn55atpf7xisfr")


@pytest.fixture
def readiness():
    return ReadinessRecorder()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def toolkit(sandbox, readiness, sleeps):
    async def get_sandbox():
        return sandbox

    async def record_sleep(seconds):
        sleeps.append(seconds)

    return SandboxToolkit(
        get_sandbox,
        settle_seconds=3.0,
        poll_attempts=4,
        poll_backoff_seconds=0.5,
        sleep=record_sleep,
        dev_server_check=readiness,
    )


def files_args(*pairs):
    return CreateOrUpdateFilesArgs.model_validate(
        {"files": [{"path": path, "content": content} for path, content in pairs]}
    )


def test_toolkit_declares_four_tools(toolkit):
    tools = {tool.name: tool for tool in toolkit.tools()}

    assert set(tools) == {"terminal", "createOrUpdateFiles", "readFiles", "finishTask"}
    definition = tools["createOrUpdateFiles"].to_openai_tool()
    assert definition["type"] == "function"
    assert definition["function"]["name"] == "createOrUpdateFiles"
    assert "files" in definition["function"]["parameters"]["properties"]


class TestTerminal:
    @pytest.mark.asyncio
    async def test_returns_stdout(self, toolkit, sandbox):
        sandbox.commands.outputs["ls"] = "app\npackage.json\n"

        outcome = await toolkit.terminal(TerminalArgs(command="ls"), {})

        assert outcome.content == "app\npackage.json\n"
        assert outcome.files == {}

    @pytest.mark.asyncio
    async def test_failure_becomes_text(self, toolkit, sandbox):
        sandbox.commands.failures["npm install"] = RuntimeError("exit status 1")

        outcome = await toolkit.terminal(TerminalArgs(command="npm install nope"), {})

        assert outcome.content.startswith("Command failed: exit status 1")
        assert "stdout: partial output" in outcome.content
        assert "stderr: boom" in outcome.content


class TestCreateOrUpdateFiles:
    @pytest.mark.asyncio
    async def test_writes_files_and_restarts_dev_server(self, toolkit, sandbox, readiness, sleeps):
        outcome = await toolkit.create_or_update_files(
            files_args(("app/page.tsx", "page"), ("components/ui/card.tsx", "card")), {}
        )

        assert outcome.files == {"app/page.tsx": "page", "components/ui/card.tsx": "card"}
        assert sandbox.files.contents == outcome.files
        assert "mkdir -p app" in sandbox.commands.calls
        assert "mkdir -p components/ui" in sandbox.commands.calls
        assert KILL_DEV_SERVER_COMMAND in sandbox.commands.calls
        assert sandbox.commands.background == [START_DEV_SERVER_COMMAND]
        assert sleeps == [3.0]
        assert readiness.calls == [("https://itwpgu0xn55atpf7xisfr-3000.e2b.dev", 4, 0.5)]
        assert "Dev server running" in outcome.content

    @pytest.mark.asyncio
    async def test_top_level_file_needs_no_mkdir(self, toolkit, sandbox):
        await toolkit.create_or_update_files(files_args(("README.md", "hi")), {"app/page.tsx": "x"})

        assert not any(call.startswith("mkdir") for call in sandbox.commands.calls)

    @pytest.mark.asyncio
    async def test_adds_default_page_when_no_main_page_exists(self, toolkit, sandbox):
        outcome = await toolkit.create_or_update_files(
            files_args(("components/button.tsx", "btn")), {}
        )

        assert outcome.files["app/page.tsx"] == DEFAULT_PAGE_CONTENT
        assert sandbox.files.contents["app/page.tsx"] == DEFAULT_PAGE_CONTENT

    @pytest.mark.asyncio
    async def test_no_default_page_when_written_earlier(self, toolkit, sandbox):
        outcome = await toolkit.create_or_update_files(
            files_args(("components/button.tsx", "btn")), {"pages/index.tsx": "index"}
        )

        assert outcome.files == {"components/button.tsx": "btn"}
        assert "app/page.tsx" not in sandbox.files.contents

    @pytest.mark.asyncio
    async def test_kill_failure_is_ignored(self, toolkit, sandbox):
        sandbox.commands.failures["pkill"] = RuntimeError("exit status 1")

        outcome = await toolkit.create_or_update_files(files_args(("app/page.tsx", "p")), {})

        assert outcome.files == {"app/page.tsx": "p"}
        assert sandbox.commands.background == [START_DEV_SERVER_COMMAND]

    @pytest.mark.asyncio
    async def test_slow_dev_server_still_returns_files(self, toolkit, readiness):
        readiness.ready = False

        outcome = await toolkit.create_or_update_files(files_args(("app/page.tsx", "p")), {})

        assert outcome.files == {"app/page.tsx": "p"}
        assert "not responding yet" in outcome.content

    @pytest.mark.asyncio
    async def test_write_failure_returns_error_and_no_files(self, toolkit, sandbox):
        sandbox.files.write_error = OSError("disk full")

        outcome = await toolkit.create_or_update_files(files_args(("app/page.tsx", "p")), {})

        assert outcome.content == "File creation failed: disk full"
        assert outcome.files == {}

    @pytest.mark.asyncio
    async def test_zero_settle_delay_skips_sleep(self, sandbox, readiness):
        sleeps = []

        async def get_sandbox():
            return sandbox

        async def record_sleep(seconds):
            sleeps.append(seconds)

        toolkit = SandboxToolkit(
            get_sandbox, settle_seconds=0, sleep=record_sleep, dev_server_check=readiness
        )
        await toolkit.create_or_update_files(files_args(("app/page.tsx", "p")), {})

        assert sleeps == []


class TestReadFiles:
    @pytest.mark.asyncio
    async def test_returns_json_list(self, toolkit, sandbox):
        sandbox.files.contents["app/page.tsx"] = "page"
        sandbox.files.contents["package.json"] = "{}"

        outcome = await toolkit.read_files(
            ReadFilesArgs(files=["app/page.tsx", "package.json"]), {}
        )

        assert json.loads(outcome.content) == [
            {"path": "app/page.tsx", "content": "page"},
            {"path": "package.json", "content": "{}"},
        ]

    @pytest.mark.asyncio
    async def test_missing_file_becomes_text(self, toolkit):
        outcome = await toolkit.read_files(ReadFilesArgs(files=["missing.tsx"]), {})

        assert outcome.content.startswith("Error ")
        assert "missing.tsx" in outcome.content


class TestFinishTask:
    @pytest.mark.asyncio
    async def test_wraps_summary(self, toolkit):
        outcome = await toolkit.finish_task(FinishTaskArgs(summary="Built a todo app."), {})

        assert outcome.summary == "<task_summary>\nBuilt a todo app.\n</task_summary>"
        assert outcome.files == {}

    def test_wrap_summary_keeps_existing_tag(self):
        tagged = "<task_summary>Done</task_summary>"
        assert wrap_summary(tagged) == tagged


@pytest.mark.asyncio
async def test_sandbox_is_fetched_per_call(sandbox, readiness):
    fetches = []

    async def get_sandbox():
        fetches.append(1)
        return sandbox

    toolkit = SandboxToolkit(get_sandbox, settle_seconds=0, sleep=no_sleep, dev_server_check=readiness)
    await toolkit.terminal(TerminalArgs(command="pwd"), {})
    await toolkit.read_files(ReadFilesArgs(files=[]), {})

    assert len(fetches) == 2  # noqa: PLR2004
