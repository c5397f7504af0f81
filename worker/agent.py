"""Coding agent graph.

A two-node LangGraph loop: ``agent`` calls the model with the bound sandbox
tools, ``tools`` executes the requested calls. The run ends once a task
summary exists or the iteration budget is spent.
"""

from typing import Annotated, Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langgraph.graph import END, START, StateGraph
from langgraph.graph.message import add_messages
import structlog
from typing_extensions import TypedDict

from shared.models import Message, MessageRole

from .prompts import PROMPT, TASK_SUMMARY_TAG
from .tool_executor import ToolExecutor
from .tools import SandboxTool

logger = structlog.get_logger()

FALLBACK_OUTPUT = "Fragment"


def _merge_files(left: dict[str, str] | None, right: dict[str, str] | None) -> dict[str, str]:
    """Reducer that merges written files; later writes win per path."""
    return {**(left or {}), **(right or {})}


class AgentState(TypedDict):
    """State for the coding agent graph."""

    messages: Annotated[list, add_messages]
    # Last assistant text containing the summary tag, or a finishTask summary
    summary: str
    # path -> content of every file written in this run
    files: Annotated[dict[str, str], _merge_files]
    # Number of model calls so far
    iterations: int


def message_text(message: BaseMessage | None) -> str:
    """Plain text of a chat message, joining text content blocks."""
    if message is None:
        return ""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def last_assistant_text(messages: list[BaseMessage]) -> str:
    """Text of the most recent assistant message, empty if there is none."""
    for message in reversed(messages):
        if isinstance(message, AIMessage):
            return message_text(message)
    return ""


def parse_agent_output(message: BaseMessage | None) -> str:
    """Text of a one-shot generation, ``"Fragment"`` when it produced none."""
    text = message_text(message).strip()
    return text or FALLBACK_OUTPUT


def to_chat_history(messages: list[Message]) -> list[BaseMessage]:
    """Convert stored project messages into chat messages."""
    history: list[BaseMessage] = []
    for message in messages:
        if message.role == MessageRole.ASSISTANT.value:
            history.append(AIMessage(content=message.content))
        else:
            history.append(HumanMessage(content=message.content))
    return history


class CodeAgent:
    """Runs the agent/tools loop for one request."""

    def __init__(
        self,
        llm: BaseChatModel,
        tools: list[SandboxTool],
        max_iterations: int = 15,
        system_prompt: str = PROMPT,
    ):
        self.llm = llm.bind_tools([tool.to_openai_tool() for tool in tools])
        self.executor = ToolExecutor({tool.name: tool for tool in tools})
        self.max_iterations = max_iterations
        self.system_prompt = system_prompt
        self.graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(AgentState)
        graph.add_node("agent", self._agent_node)
        graph.add_node("tools", self._tools_node)

        graph.add_edge(START, "agent")
        graph.add_conditional_edges(
            "agent", self.route_after_agent, {"tools": "tools", "agent": "agent", END: END}
        )
        graph.add_conditional_edges("tools", self.route_after_tools, {"agent": "agent", END: END})
        return graph.compile()

    async def _agent_node(self, state: AgentState) -> dict[str, Any]:
        iteration = state.get("iterations", 0) + 1
        response = await self.llm.ainvoke(
            [SystemMessage(content=self.system_prompt), *state["messages"]]
        )

        updates: dict[str, Any] = {"messages": [response], "iterations": iteration}
        text = message_text(response)
        if f"<{TASK_SUMMARY_TAG}>" in text:
            updates["summary"] = text
            logger.info("agent_task_summary_found", iteration=iteration)

        logger.debug(
            "agent_iteration_complete",
            iteration=iteration,
            tool_calls=[call["name"] for call in getattr(response, "tool_calls", [])],
        )
        return updates

    async def _tools_node(self, state: AgentState) -> dict[str, Any]:
        last = state["messages"][-1]
        return await self.executor.execute_tools(last.tool_calls, state)

    def route_after_agent(self, state: AgentState) -> str:
        # Tool calls of the turn run even when it also carries the summary
        last = state["messages"][-1]
        if getattr(last, "tool_calls", None):
            return "tools"
        if state.get("summary"):
            return END
        if state.get("iterations", 0) >= self.max_iterations:
            logger.warning("agent_iteration_limit_reached", iterations=state.get("iterations"))
            return END
        return "agent"

    def route_after_tools(self, state: AgentState) -> str:
        if state.get("summary"):
            return END
        if state.get("iterations", 0) >= self.max_iterations:
            logger.warning("agent_iteration_limit_reached", iterations=state.get("iterations"))
            return END
        return "agent"

    async def run(self, history: list[BaseMessage], request: str) -> AgentState:
        """Run the loop over previous messages followed by the request."""
        initial: AgentState = {
            "messages": [*history, HumanMessage(content=request)],
            "summary": "",
            "files": {},
            "iterations": 0,
        }
        logger.info("agent_run_started", history_length=len(history))
        state = await self.graph.ainvoke(
            initial, config={"recursion_limit": self.max_iterations * 2 + 5}
        )
        logger.info(
            "agent_run_complete",
            iterations=state.get("iterations", 0),
            has_summary=bool(state.get("summary")),
            file_count=len(state.get("files", {})),
        )
        return state
