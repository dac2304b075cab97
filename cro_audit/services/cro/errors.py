"""Errors raised by the CRO agent."""


class CroAgentError(Exception):
    """Base class for CRO report generation failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MissingCredentialError(CroAgentError):
    """The Bedrock bearer token is not configured."""

    def __init__(self, message: str = "AWS_BEARER_TOKEN_BEDROCK is not configured") -> None:
        super().__init__(message)


class ProviderError(CroAgentError):
    """The LLM provider call failed or returned an unusable response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ReportParseError(CroAgentError):
    """The model's final answer did not contain a valid report."""


class AgentCancelledError(CroAgentError):
    """The caller cancelled the run."""

    def __init__(self, message: str = "CRO report generation was cancelled") -> None:
        super().__init__(message)
