from shared.contracts.base import BaseMessage, BaseResult


class SandboxUpdateFilesMessage(BaseMessage):
    """Push edited files into a running sandbox.

    Stream: sandbox:update-files
    """

    sandbox_url: str
    files: dict[str, str]


class SandboxUpdateResult(BaseResult):
    """Outcome of a file push."""

    sandbox_id: str | None = None
    files_written: int = 0
