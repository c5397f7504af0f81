"""Tool executor for the agent graph.

Runs the tool calls of one assistant turn and turns their outcomes into
ToolMessages plus state updates (written files, task summary).
"""

import time
from typing import Any

from langchain_core.messages import ToolMessage
from pydantic import ValidationError
import structlog

from .tools import SandboxTool, ToolOutcome

logger = structlog.get_logger()


class ToolExecutor:
    """Handles tool execution for the agent node.

    Provides centralized tool execution with:
    - Argument validation against each tool's schema
    - Error handling and logging
    - File/summary accumulation returned as state updates
    """

    def __init__(self, tools_map: dict[str, SandboxTool]):
        self.tools_map = tools_map

    async def execute_tools(self, tool_calls: list, state: dict) -> dict[str, Any]:
        """Execute tool calls in order and return state updates.

        Args:
            tool_calls: List of tool call dicts with 'name', 'args', and 'id'
            state: Current graph state

        Returns:
            Dict with 'messages' (ToolMessages) and 'files' written by this
            batch; 'summary' when a tool finished the task.
        """
        tool_results = []
        files: dict[str, str] = {}
        summary: str | None = None

        for tool_call in tool_calls:
            known_files = {**state.get("files", {}), **files}
            message, outcome = await self.execute_single_tool(tool_call, known_files)
            tool_results.append(message)

            if outcome is not None:
                files.update(outcome.files)
                if outcome.summary:
                    summary = outcome.summary

        updates: dict[str, Any] = {"messages": tool_results, "files": files}
        if summary:
            updates["summary"] = summary
        return updates

    async def execute_single_tool(
        self, tool_call: dict, files: dict[str, str]
    ) -> tuple[ToolMessage, ToolOutcome | None]:
        """Execute a single tool call with error handling.

        Returns:
            The ToolMessage for the model and the outcome, or None when the
            call could not be executed.
        """
        tool_name = tool_call["name"]
        tool = self.tools_map.get(tool_name)
        tool_call_id = tool_call.get("id")

        if not tool:
            logger.warning("unknown_tool_called", tool_name=tool_name)
            return ToolMessage(content=f"Unknown tool: {tool_name}", tool_call_id=tool_call_id), None

        try:
            args = tool.args_schema.model_validate(tool_call.get("args", {}))
        except ValidationError as e:
            logger.warning("tool_arguments_invalid", tool_name=tool_name, error=str(e))
            return (
                ToolMessage(
                    content=f"Invalid arguments for {tool_name}: {e}", tool_call_id=tool_call_id
                ),
                None,
            )

        logger.info("tool_execution_start", tool_name=tool_name, tool_call_id=tool_call_id)
        start = time.time()

        try:
            outcome = await tool.handler(args, files)
        except Exception as e:
            duration = (time.time() - start) * 1000
            logger.error(
                "tool_execution_failed",
                tool_name=tool_name,
                tool_call_id=tool_call_id,
                duration_ms=round(duration, 2),
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return (
                ToolMessage(content=f"Error executing {tool_name}: {e!s}", tool_call_id=tool_call_id),
                None,
            )

        duration = (time.time() - start) * 1000
        logger.info(
            "tool_execution_complete",
            tool_name=tool_name,
            tool_call_id=tool_call_id,
            duration_ms=round(duration, 2),
            files_written=len(outcome.files),
        )
        return ToolMessage(content=outcome.content, tool_call_id=tool_call_id), outcome
