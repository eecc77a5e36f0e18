"""Error taxonomy shared by every component.

Each error carries a machine-checkable ``kind`` so callers can branch on the
failure without parsing messages, and a ``retryable`` flag that tells them
whether repeating the same call later could succeed.
"""


class AnalyzerError(Exception):
    kind = "internal"
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message, "retryable": self.retryable}
        if self.details:
            data["details"] = self.details
        if self.__cause__ is not None:
            data["cause"] = f"{type(self.__cause__).__name__}: {self.__cause__}"
        return data


class EmptyInputError(AnalyzerError):
    kind = "empty_input"


class InvalidRequestError(AnalyzerError):
    kind = "invalid_request"


class InvalidSourceError(InvalidRequestError):
    kind = "invalid_source"


class ClassificationError(AnalyzerError):
    kind = "classification"


class ExtractionError(AnalyzerError):
    kind = "extraction"

    def __init__(self, message: str, text: str = "", details: dict | None = None):
        super().__init__(message, details)
        self.text = text


class GenerationExhaustedError(AnalyzerError):
    """Every model in the fallback chain failed.

    ``failures`` holds one ``(model_name, reason)`` pair per attempt, and
    ``last_text`` the most recent raw model output that could not be parsed,
    if any model answered at all.
    """

    kind = "generation_exhausted"

    def __init__(
        self,
        message: str,
        failures: list[tuple[str, str]] | None = None,
        last_text: str | None = None,
    ):
        self.failures = failures or []
        self.last_text = last_text
        super().__init__(
            message,
            {"attempts": [{"model": m, "reason": r} for m, r in self.failures]},
        )


class OperationTimeoutError(AnalyzerError):
    kind = "timeout"
    retryable = True

    def __init__(self, operation: str, seconds: float):
        self.operation = operation
        self.seconds = seconds
        super().__init__(
            f"{operation} did not finish within {seconds:g}s",
            {"operation": operation, "timeout_seconds": seconds},
        )


class GenerationTimeoutError(OperationTimeoutError):
    def __init__(self, seconds: float, attempted: list[str] | None = None):
        super().__init__("generation", seconds)
        self.attempted = attempted or []
        self.details["attempted_models"] = self.attempted


class ProviderError(AnalyzerError):
    kind = "provider"
    retryable = True

    def __init__(self, message: str, retry_after: float | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.retry_after = retry_after
        if retry_after is not None:
            self.details["retry_after"] = retry_after
