"""Tests for the run-agent job with fake sandbox, models and repository."""

from types import SimpleNamespace

from e2b import AuthenticationException
from langchain_core.messages import AIMessage
import pytest

from shared.clients.sandbox import SandboxClient
from shared.contracts.queues.agent import CodeAgentRunMessage
from shared.exceptions import LLMConfigurationError, SandboxAuthError
from worker.jobs.code_agent import (
    AGENT_ERROR_MESSAGE,
    FALLBACK_RESPONSE,
    FALLBACK_TITLE,
    CodeAgentJob,
)
from worker.prompts import FRAGMENT_TITLE_PROMPT
from worker.steps import RetryPolicy, StepRunner
from tests.fakes import (
    FakeRepository,
    FakeSandboxAPI,
    ScriptedChatModel,
    no_sleep,
    ready_check,
    tool_call,
)

SUMMARY = "<task_summary>\nA todo app with filters.\n</task_summary>"


def describe(messages):
    if messages[0].content == FRAGMENT_TITLE_PROMPT:
        return AIMessage(content="Todo App")
    return AIMessage(content="Here's your todo app with filters.")


def write_page(content="export default function Page() {}"):
    return tool_call(
        "createOrUpdateFiles", {"files": [{"path": "app/page.tsx", "content": content}]}
    )


@pytest.fixture
def sandbox_api():
    return FakeSandboxAPI()


@pytest.fixture
def repository():
    return FakeRepository(
        history=[SimpleNamespace(role="USER", content="Build a todo app with filters")]
    )


@pytest.fixture
def summary_llm():
    return ScriptedChatModel(respond=describe)


def make_job(sandbox_api, repository, agent_llm, summary_llm, **kwargs):
    return CodeAgentJob(
        sandbox_client=SandboxClient(
            api_key="e2b_test_key",
            template="vibe-nextjs-nandu",
            template_id="d622vkz8p86647vfbfsu",
            sandbox_cls=sandbox_api,
        ),
        repository=repository,
        agent_llm=agent_llm,
        summary_llm=summary_llm,
        steps=StepRunner(RetryPolicy(max_attempts=2, backoff_seconds=0), sleep=no_sleep),
        toolkit_options={
            "settle_seconds": 0,
            "sleep": no_sleep,
            "dev_server_check": ready_check,
        },
        **kwargs,
    )


def run_message(value="Build a todo app with filters"):
    return CodeAgentRunMessage(value=value, project_id="project-1")


@pytest.mark.asyncio
async def test_successful_run_saves_result_with_fragment(sandbox_api, repository, summary_llm):
    agent_llm = ScriptedChatModel([write_page(), AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    result = await job.run(run_message())

    sandbox = sandbox_api.created[0]
    assert result.status == "success"
    assert result.url == f"https://{sandbox.sandbox_id}-3000.e2b.dev"
    assert result.title == "Todo App"
    assert result.summary == SUMMARY
    assert result.files == {"app/page.tsx": "export default function Page() {}"}
    assert result.sandbox_id == sandbox.sandbox_id

    assert len(repository.saved) == 1
    saved = repository.saved[0]
    assert saved.type == "RESULT"
    assert saved.content == "Here's your todo app with filters."
    assert saved.fragment.title == "Todo App"
    assert saved.fragment.sandbox_url == result.url
    assert saved.fragment.files == result.files
    assert result.message_id == saved.id


@pytest.mark.asyncio
async def test_history_precedes_request(sandbox_api, repository, summary_llm):
    agent_llm = ScriptedChatModel([AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    await job.run(run_message("Add a dark mode"))

    contents = [m.content for m in agent_llm.calls[0][1:]]
    assert contents == ["Build a todo app with filters", "Add a dark mode"]


@pytest.mark.asyncio
async def test_history_limit_is_passed_to_repository(sandbox_api, summary_llm):
    requested = {}

    class LimitedRepository(FakeRepository):
        async def get_recent_messages(self, project_id, limit=5):
            requested["limit"] = limit
            return []

    agent_llm = ScriptedChatModel([AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, LimitedRepository(), agent_llm, summary_llm, history_limit=2)

    await job.run(run_message())

    assert requested["limit"] == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_no_summary_and_no_files_saves_error(sandbox_api, repository, summary_llm):
    agent_llm = ScriptedChatModel(respond=lambda messages: AIMessage(content="I am not sure."))
    job = make_job(sandbox_api, repository, agent_llm, summary_llm, max_iterations=2)

    result = await job.run(run_message())

    assert result.status == "failed"
    assert result.files == {}
    assert len(repository.saved) == 1
    saved = repository.saved[0]
    assert saved.type == "ERROR"
    assert saved.content == AGENT_ERROR_MESSAGE
    assert saved.fragment is None
    assert summary_llm.calls == []


@pytest.mark.asyncio
async def test_files_without_summary_use_fallback_texts(sandbox_api, repository, summary_llm):
    # After the tool call the model answers with empty text until the budget runs out
    agent_llm = ScriptedChatModel([write_page()])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm, max_iterations=3)

    result = await job.run(run_message())

    assert result.status == "success"
    assert result.summary == ""
    assert result.title == FALLBACK_TITLE
    saved = repository.saved[0]
    assert saved.type == "RESULT"
    assert saved.content == FALLBACK_RESPONSE
    assert saved.fragment.title == FALLBACK_TITLE
    assert "app/page.tsx" in saved.fragment.files
    assert summary_llm.calls == []


@pytest.mark.asyncio
async def test_summary_without_files_is_still_a_result(sandbox_api, repository, summary_llm):
    agent_llm = ScriptedChatModel([AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    result = await job.run(run_message())

    assert result.status == "success"
    assert repository.saved[0].type == "RESULT"
    assert repository.saved[0].fragment.files == {}


@pytest.mark.asyncio
async def test_empty_title_output_becomes_fragment(sandbox_api, repository):
    summary_llm = ScriptedChatModel(respond=lambda messages: AIMessage(content=""))
    agent_llm = ScriptedChatModel([write_page(), AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    result = await job.run(run_message())

    assert result.title == "Fragment"
    assert repository.saved[0].content == "Fragment"


@pytest.mark.asyncio
async def test_redelivery_creates_second_sandbox_and_message(sandbox_api, repository, summary_llm):
    agent_llm = ScriptedChatModel(
        [write_page(), AIMessage(content=SUMMARY), write_page(), AIMessage(content=SUMMARY)]
    )
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)
    message = run_message()

    first = await job.run(message)
    second = await job.run(message)

    assert len(sandbox_api.created) == 2  # noqa: PLR2004
    assert first.sandbox_id != second.sandbox_id
    assert len(repository.saved) == 2  # noqa: PLR2004


@pytest.mark.asyncio
async def test_auth_failure_is_not_retried_and_saves_nothing(sandbox_api, repository, summary_llm):
    sandbox_api.create_errors["vibe-nextjs-nandu"] = AuthenticationException("invalid key")
    sandbox_api.create_errors["d622vkz8p86647vfbfsu"] = AuthenticationException("invalid key")
    agent_llm = ScriptedChatModel([AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    with pytest.raises(SandboxAuthError):
        await job.run(run_message())

    assert len(sandbox_api.create_calls) == 2  # noqa: PLR2004
    assert repository.saved == []
    assert agent_llm.calls == []


@pytest.mark.asyncio
async def test_transient_create_failure_is_retried(sandbox_api, repository, summary_llm):
    failures = {"left": 2}
    original_create = sandbox_api.create

    async def flaky_create(template=None, api_key=None, **kwargs):
        if failures["left"]:
            failures["left"] -= 1
            raise RuntimeError("503 service unavailable")
        return await original_create(template=template, api_key=api_key, **kwargs)

    sandbox_api.create = flaky_create
    agent_llm = ScriptedChatModel([AIMessage(content=SUMMARY)])
    job = make_job(sandbox_api, repository, agent_llm, summary_llm)

    result = await job.run(run_message())

    assert result.status == "success"
    assert len(sandbox_api.created) == 1


@pytest.mark.asyncio
async def test_summary_turn_with_file_write_saves_files(sandbox_api, repository, summary_llm):
    final_turn = AIMessage(
        content=SUMMARY,
        tool_calls=[
            {
                "name": "createOrUpdateFiles",
                "args": {"files": [{"path": "app/page.tsx", "content": "X"}]},
                "id": "call_final",
            }
        ],
    )
    job = make_job(sandbox_api, repository, ScriptedChatModel([final_turn]), summary_llm)

    result = await job.run(run_message())

    assert result.files == {"app/page.tsx": "X"}
    assert repository.saved[0].fragment.files == {"app/page.tsx": "X"}


@pytest.mark.asyncio
async def test_missing_llm_key_fails_before_sandbox_is_created(
    sandbox_api, repository, monkeypatch
):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    job = make_job(
        sandbox_api,
        repository,
        None,
        None,
        llm_config={"llm_provider": "openai", "model_identifier": "gpt-4o-mini"},
    )

    with pytest.raises(LLMConfigurationError, match="OPENAI_API_KEY"):
        await job.run(run_message())

    assert sandbox_api.created == []
    assert repository.saved == []


def test_models_are_built_from_config_on_first_use(sandbox_api, repository):
    job = make_job(
        sandbox_api,
        repository,
        None,
        None,
        llm_config={
            "llm_provider": "openai",
            "model_identifier": "gpt-4o-mini",
            "api_key": "sk-test",
            "agent_temperature": 0.3,
        },
    )
    assert job.agent_llm is None

    job._ensure_models()

    assert job.agent_llm.model_name == "gpt-4o-mini"
    assert job.agent_llm.temperature == 0.3  # noqa: PLR2004
    assert job.summary_llm.temperature is None
