"""
Exception hierarchy for Rollagent.

Only model invocation failures cross the execution loop boundary; the other
error kinds are absorbed into the conversation or the logs.
"""


class RollagentError(Exception):
    """Base class for all Rollagent errors."""


class LLMInvocationError(RollagentError):
    """The model provider failed to produce a response."""

    def __init__(self, provider: str, cause: Exception):
        self.provider = provider
        self.cause = cause
        super().__init__(f"{provider} invocation failed: {cause}")


class ToolNotFoundError(RollagentError):
    """A tool call named a capability that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool '{name}' not found")


class SessionNotFoundError(RollagentError):
    """No persisted session exists for the given id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class SummarizationError(RollagentError):
    """The summarization model call failed; no synopsis was produced."""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Summarization failed: {cause}")
