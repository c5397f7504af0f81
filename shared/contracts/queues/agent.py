from pydantic import Field

from shared.contracts.base import BaseMessage, BaseResult


class CodeAgentRunMessage(BaseMessage):
    """Run the coding agent for a project.

    Stream: code-agent:run
    """

    value: str = Field(..., min_length=1, description="User request text")
    project_id: str


class CodeAgentResult(BaseResult):
    """Outcome of one agent run (logged by the worker, not published)."""

    project_id: str
    url: str | None = None
    title: str | None = None
    summary: str = ""
    files: dict[str, str] = {}
    sandbox_id: str | None = None
    message_id: str | None = None
