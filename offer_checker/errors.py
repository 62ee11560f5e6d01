from __future__ import annotations


class ApiError(Exception):
    def __init__(
        self,
        *,
        code: str,
        message: str,
        error_class: str,
        retryable: bool,
        http_status: int,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.error_class = error_class
        self.retryable = retryable
        self.http_status = http_status


class InvocationFailure(ApiError):
    """The reasoning service could not be called or returned nothing usable."""

    def __init__(self, message: str, *, code: str = "LLM_INVOCATION_FAILED", http_status: int = 502) -> None:
        super().__init__(
            code=code,
            message=message,
            error_class="transient",
            retryable=True,
            http_status=http_status,
        )


class JobTerminalFailure(ApiError):
    """A remote run reached a failure-terminal status."""

    def __init__(self, status: str, *, detail: str = "") -> None:
        message = f"analysis run ended with status {status}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(
            code="LLM_RUN_TERMINAL_FAILURE",
            message=message,
            error_class="transient",
            retryable=True,
            http_status=502,
        )
        self.status = status


class PollTimeout(ApiError):
    def __init__(self, *, attempts: int, last_status: str) -> None:
        super().__init__(
            code="LLM_RUN_TIMEOUT",
            message=f"analysis run still {last_status} after {attempts} polls",
            error_class="transient",
            retryable=True,
            http_status=504,
        )
        self.attempts = attempts
        self.last_status = last_status


class PersistenceFailure(ApiError):
    def __init__(self, message: str) -> None:
        super().__init__(
            code="STORE_WRITE_FAILED",
            message=message,
            error_class="transient",
            retryable=True,
            http_status=503,
        )
