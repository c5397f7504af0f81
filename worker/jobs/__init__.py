"""Job handlers run by the worker consumers."""

from .code_agent import CodeAgentJob
from .update_files import UpdateFilesJob

__all__ = ["CodeAgentJob", "UpdateFilesJob"]
