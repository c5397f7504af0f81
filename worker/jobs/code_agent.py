"""Run-agent job: one user request turned into a running sandbox app.

Steps: create a sandbox, load recent project history, run the agent loop,
name and describe the result, resolve the preview URL, store exactly one
assistant message.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
import structlog

from shared.clients.sandbox import SandboxClient, get_sandbox_url
from shared.contracts.queues.agent import CodeAgentResult, CodeAgentRunMessage
from shared.exceptions import AgentOutputError, LLMConfigurationError

from ..agent import CodeAgent, parse_agent_output, to_chat_history
from ..llm import LLMFactory
from ..prompts import FRAGMENT_TITLE_PROMPT, RESPONSE_PROMPT
from ..repository import MessageRepository
from ..steps import StepRunner
from ..tools import SandboxToolkit

if TYPE_CHECKING:
    from ..config import Settings

logger = structlog.get_logger()

AGENT_ERROR_MESSAGE = (
    "The AI agent didn't complete the task properly. This usually happens when the agent "
    "doesn't follow the required response format. Please try again with a clear, specific "
    "request."
)
FALLBACK_TITLE = "Generated App"
FALLBACK_RESPONSE = (
    "I've created your application with the requested functionality. "
    "The app has been successfully generated and is ready to use."
)


class CodeAgentJob:
    """Handles ``code-agent:run`` events."""

    def __init__(
        self,
        sandbox_client: SandboxClient,
        repository: MessageRepository,
        agent_llm: BaseChatModel | None = None,
        summary_llm: BaseChatModel | None = None,
        steps: StepRunner | None = None,
        max_iterations: int = 15,
        history_limit: int = 5,
        sandbox_port: int = 3000,
        toolkit_options: dict[str, Any] | None = None,
        llm_config: dict[str, Any] | None = None,
    ):
        """Initialize the job.

        Args:
            sandbox_client: Creates and reconnects to sandboxes.
            repository: Project history and assistant message storage.
            agent_llm: Chat model driving the tool loop. Built from
                ``llm_config`` on first run when omitted.
            summary_llm: Chat model for the title and response calls. Built
                from ``llm_config`` on first run when omitted.
            steps: Step runner applying retries and step logging.
            max_iterations: Model calls allowed per run.
            history_limit: Previous project messages given to the agent.
            sandbox_port: Port of the dev server inside the sandbox.
            toolkit_options: Extra SandboxToolkit arguments (delays, readiness check).
            llm_config: LLMFactory config for models not passed in. The
                agent model also gets ``agent_temperature`` from it.
        """
        self.sandbox_client = sandbox_client
        self.repository = repository
        self.agent_llm = agent_llm
        self.summary_llm = summary_llm
        self.steps = steps or StepRunner()
        self.max_iterations = max_iterations
        self.history_limit = history_limit
        self.sandbox_port = sandbox_port
        self.toolkit_options = toolkit_options or {}
        self.llm_config = llm_config or {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        sandbox_client: SandboxClient,
        repository: MessageRepository,
        steps: StepRunner,
    ) -> CodeAgentJob:
        return cls(
            sandbox_client=sandbox_client,
            repository=repository,
            llm_config={
                "llm_provider": settings.llm_provider,
                "model_identifier": settings.agent_model,
                "api_key": settings.openai_api_key or None,
                "agent_temperature": settings.agent_temperature,
            },
            steps=steps,
            max_iterations=settings.agent_max_iterations,
            history_limit=settings.history_limit,
            sandbox_port=settings.sandbox_port,
            toolkit_options={
                "settle_seconds": settings.dev_server_settle_seconds,
                "poll_attempts": settings.dev_server_poll_attempts,
                "poll_backoff_seconds": settings.dev_server_poll_backoff_seconds,
            },
        )

    async def run(self, message: CodeAgentRunMessage) -> CodeAgentResult:
        structlog.contextvars.bind_contextvars(
            request_id=message.request_id, project_id=message.project_id
        )
        start = time.time()
        try:
            return await self._run(message, start)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "project_id")

    async def _run(self, message: CodeAgentRunMessage, start: float) -> CodeAgentResult:
        logger.info("code_agent_job_started", value_length=len(message.value))
        self._ensure_models()

        sandbox_id = await self.steps.run("get-sandbox-id", self._create_sandbox)

        previous = await self.steps.run(
            "get-previous-messages",
            lambda: self.repository.get_recent_messages(message.project_id, self.history_limit),
        )

        toolkit = SandboxToolkit(
            get_sandbox=lambda: self.sandbox_client.connect(sandbox_id),
            port=self.sandbox_port,
            **self.toolkit_options,
        )
        agent = CodeAgent(self.agent_llm, toolkit.tools(), max_iterations=self.max_iterations)
        state = await agent.run(to_chat_history(previous), message.value)

        summary = state.get("summary", "")
        files = dict(state.get("files", {}))

        title, response = await self.steps.run(
            "generate-title-and-response", lambda: self._describe(summary, files)
        )

        sandbox_url = await self.steps.run(
            "get-sandbox-url", lambda: self._sandbox_url(sandbox_id)
        )

        if not summary and not files:
            error = AgentOutputError("Agent finished without a task summary or any files")
            logger.error(
                "code_agent_output_missing",
                error=str(error),
                error_type=type(error).__name__,
                iterations=state.get("iterations", 0),
            )
            saved = await self.steps.run(
                "save-result",
                lambda: self.repository.save_error(message.project_id, AGENT_ERROR_MESSAGE),
            )
            return CodeAgentResult(
                request_id=message.request_id,
                status="failed",
                error=str(error),
                project_id=message.project_id,
                url=sandbox_url,
                sandbox_id=sandbox_id,
                message_id=saved.id,
                duration_ms=int((time.time() - start) * 1000),
            )

        saved = await self.steps.run(
            "save-result",
            lambda: self.repository.save_result(
                message.project_id,
                content=response,
                sandbox_url=sandbox_url,
                title=title,
                files=files,
            ),
        )

        logger.info(
            "code_agent_job_complete",
            sandbox_id=sandbox_id,
            file_count=len(files),
            has_summary=bool(summary),
        )
        return CodeAgentResult(
            request_id=message.request_id,
            status="success",
            project_id=message.project_id,
            url=sandbox_url,
            title=title,
            summary=summary,
            files=files,
            sandbox_id=sandbox_id,
            message_id=saved.id,
            duration_ms=int((time.time() - start) * 1000),
        )

    def _ensure_models(self) -> None:
        """Build missing chat models from ``llm_config``.

        Raises:
            LLMConfigurationError: No API key or an unknown provider.
        """
        if self.agent_llm is not None and self.summary_llm is not None:
            return
        config = {k: v for k, v in self.llm_config.items() if k != "agent_temperature"}
        try:
            if self.agent_llm is None:
                self.agent_llm = LLMFactory.create_llm(
                    {**config, "temperature": self.llm_config.get("agent_temperature")}
                )
            if self.summary_llm is None:
                self.summary_llm = LLMFactory.create_llm(config)
        except (KeyError, ValueError) as e:
            raise LLMConfigurationError(str(e)) from e

    async def _create_sandbox(self) -> str:
        sandbox = await self.sandbox_client.create()
        return sandbox.sandbox_id

    async def _sandbox_url(self, sandbox_id: str) -> str:
        sandbox = await self.sandbox_client.connect(sandbox_id)
        return get_sandbox_url(sandbox, self.sandbox_port)

    async def _describe(self, summary: str, files: dict[str, str]) -> tuple[str, str]:
        """Fragment title and user-facing response for the run."""
        if not summary:
            if files:
                logger.warning("task_summary_missing_using_fallback", file_count=len(files))
            return FALLBACK_TITLE, FALLBACK_RESPONSE

        title_output, response_output = await asyncio.gather(
            self.summary_llm.ainvoke(
                [SystemMessage(content=FRAGMENT_TITLE_PROMPT), HumanMessage(content=summary)]
            ),
            self.summary_llm.ainvoke(
                [SystemMessage(content=RESPONSE_PROMPT), HumanMessage(content=summary)]
            ),
        )
        return parse_agent_output(title_output), parse_agent_output(response_output)
