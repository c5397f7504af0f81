"""Sandbox tools exposed to the coding agent.

Every tool is a (name, description, args schema, handler) record. Handlers get
the validated arguments plus the files written so far in the run, and return a
ToolOutcome; the graph merges ``files`` and ``summary`` into its state. Tool
failures become text for the model and never raise.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import json
import posixpath
from typing import Any

from pydantic import BaseModel, Field
import structlog

from shared.clients.sandbox import get_sandbox_url, wait_for_dev_server

from .prompts import TASK_SUMMARY_TAG

logger = structlog.get_logger()

APP_DIR = "/home/user"
MAIN_PAGE_PATHS = ("app/page.tsx", "pages/index.tsx")
DEFAULT_PAGE_PATH = "app/page.tsx"
DEFAULT_PAGE_CONTENT = """export default function Home() {
  return (
    <div className="container mx-auto p-8">
      <h1 className="text-4xl font-bold mb-4">Generated App</h1>
      <p>This app was generated by AI agent. Check the components above!</p>
    </div>
  );
}"""

KILL_DEV_SERVER_COMMAND = 'pkill -f "next dev"'
START_DEV_SERVER_COMMAND = f"cd {APP_DIR} && npm run dev"


@dataclass
class ToolOutcome:
    """Result of one tool call."""

    content: str
    files: dict[str, str] = field(default_factory=dict)
    summary: str | None = None


@dataclass(frozen=True)
class SandboxTool:
    """A tool the agent can call."""

    name: str
    description: str
    args_schema: type[BaseModel]
    handler: Callable[[Any, dict[str, str]], Awaitable[ToolOutcome]]

    def to_openai_tool(self) -> dict[str, Any]:
        """Function-calling definition passed to ``bind_tools``."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_schema.model_json_schema(),
            },
        }


class TerminalArgs(BaseModel):
    command: str = Field(..., description="Shell command to run in the sandbox")


class FileSpec(BaseModel):
    path: str = Field(..., description="Path relative to the project root, e.g. app/page.tsx")
    content: str = Field(..., description="Complete file content")


class CreateOrUpdateFilesArgs(BaseModel):
    files: list[FileSpec]


class ReadFilesArgs(BaseModel):
    files: list[str] = Field(..., description="Paths of the files to read")


class FinishTaskArgs(BaseModel):
    summary: str = Field(..., description="Short description of what was built")


def wrap_summary(summary: str) -> str:
    """Wrap a summary in the task summary tag unless it already carries one."""
    if f"<{TASK_SUMMARY_TAG}>" in summary:
        return summary
    return f"<{TASK_SUMMARY_TAG}>\n{summary.strip()}\n</{TASK_SUMMARY_TAG}>"


class SandboxToolkit:
    """Builds the agent's tools around one sandbox.

    ``get_sandbox`` is awaited on every call and reconnects to the sandbox,
    which also extends its idle timeout.
    """

    def __init__(
        self,
        get_sandbox: Callable[[], Awaitable[Any]],
        port: int = 3000,
        settle_seconds: float = 3.0,
        poll_attempts: int = 6,
        poll_backoff_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        dev_server_check: Callable[..., Awaitable[bool]] = wait_for_dev_server,
    ):
        self._get_sandbox = get_sandbox
        self.port = port
        self.settle_seconds = settle_seconds
        self.poll_attempts = poll_attempts
        self.poll_backoff_seconds = poll_backoff_seconds
        self._sleep = sleep
        self._dev_server_check = dev_server_check

    def tools(self) -> list[SandboxTool]:
        return [
            SandboxTool(
                name="terminal",
                description="Use the terminal for commands",
                args_schema=TerminalArgs,
                handler=self.terminal,
            ),
            SandboxTool(
                name="createOrUpdateFiles",
                description="Create or update files in the sandbox",
                args_schema=CreateOrUpdateFilesArgs,
                handler=self.create_or_update_files,
            ),
            SandboxTool(
                name="readFiles",
                description="Read files from the sandbox",
                args_schema=ReadFilesArgs,
                handler=self.read_files,
            ),
            SandboxTool(
                name="finishTask",
                description="Finish the task once the application is complete",
                args_schema=FinishTaskArgs,
                handler=self.finish_task,
            ),
        ]

    async def terminal(self, args: TerminalArgs, files: dict[str, str]) -> ToolOutcome:
        stdout: list[str] = []
        stderr: list[str] = []

        try:
            sandbox = await self._get_sandbox()
            result = await sandbox.commands.run(
                args.command, on_stdout=stdout.append, on_stderr=stderr.append
            )
            return ToolOutcome(content=result.stdout)
        except Exception as e:
            logger.warning("terminal_command_failed", command=args.command, error=str(e))
            return ToolOutcome(
                content=(
                    f"Command failed: {e}\nstdout: {''.join(stdout)}\nstderr: {''.join(stderr)}"
                )
            )

    async def create_or_update_files(
        self, args: CreateOrUpdateFilesArgs, files: dict[str, str]
    ) -> ToolOutcome:
        logger.info("files_write_started", paths=[f.path for f in args.files])
        written: dict[str, str] = {}

        try:
            sandbox = await self._get_sandbox()
            for file in args.files:
                directory = posixpath.dirname(file.path)
                if directory:
                    await sandbox.commands.run(f"mkdir -p {directory}")
                await sandbox.files.write(file.path, file.content)
                written[file.path] = file.content

            known = {**files, **written}
            if not any(path in known for path in MAIN_PAGE_PATHS):
                logger.info("default_page_created", path=DEFAULT_PAGE_PATH)
                await sandbox.files.write(DEFAULT_PAGE_PATH, DEFAULT_PAGE_CONTENT)
                written[DEFAULT_PAGE_PATH] = DEFAULT_PAGE_CONTENT

            ready = await self._restart_dev_server(sandbox)
        except Exception as e:
            logger.error(
                "files_write_failed", error=str(e), error_type=type(e).__name__, exc_info=True
            )
            return ToolOutcome(content=f"File creation failed: {e}")

        logger.info("files_write_complete", file_count=len(written), dev_server_ready=ready)
        status = "running" if ready else "not responding yet"
        return ToolOutcome(
            content=f"Files written: {', '.join(written)}. Dev server {status}.",
            files=written,
        )

    async def _restart_dev_server(self, sandbox: Any) -> bool:
        try:
            await sandbox.commands.run(KILL_DEV_SERVER_COMMAND)
        except Exception as e:
            # pkill exits non-zero when nothing matched
            logger.debug("dev_server_kill_skipped", error=str(e))

        if self.settle_seconds:
            await self._sleep(self.settle_seconds)

        await sandbox.commands.run(
            START_DEV_SERVER_COMMAND,
            background=True,
            on_stdout=lambda data: logger.debug("dev_server_stdout", data=data),
            on_stderr=lambda data: logger.debug("dev_server_stderr", data=data),
        )

        return await self._dev_server_check(
            get_sandbox_url(sandbox, self.port),
            attempts=self.poll_attempts,
            backoff_seconds=self.poll_backoff_seconds,
        )

    async def read_files(self, args: ReadFilesArgs, files: dict[str, str]) -> ToolOutcome:
        try:
            sandbox = await self._get_sandbox()
            contents = []
            for path in args.files:
                content = await sandbox.files.read(path)
                contents.append({"path": path, "content": content})
            return ToolOutcome(content=json.dumps(contents))
        except Exception as e:
            logger.warning("files_read_failed", paths=args.files, error=str(e))
            return ToolOutcome(content=f"Error {e}")

    async def finish_task(self, args: FinishTaskArgs, files: dict[str, str]) -> ToolOutcome:
        summary = wrap_summary(args.summary)
        return ToolOutcome(content="Task marked as complete.", summary=summary)
