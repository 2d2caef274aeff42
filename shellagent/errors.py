from __future__ import annotations


class AgentError(Exception):
    """Base for every error the engine surfaces to its caller."""


class ConfigurationError(AgentError):
    """Invalid or incomplete configuration (e.g. missing API key)."""


class CompletionError(AgentError):
    """The completion service could not be reached or refused the request."""


class MalformedResponseError(AgentError):
    """Model output that is not JSON or does not have the expected shape."""

    def __init__(self, message: str, raw: str | None = None):
        super().__init__(message)
        self.raw = raw
