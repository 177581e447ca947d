"""Error kinds raised by pipeline stages.

Every stage failure is a PipelineError subclass. The ``kind`` attribute is
the stable name that crosses the stage boundary (``errorType`` in a failure
envelope), and ``retryable`` tells the orchestrator whether its retry budget
applies.
"""


class PipelineError(Exception):
    """Base exception for pipeline stage failures.

    Args:
        message: Human-readable description
        status_code: HTTP status of the upstream response, when there was one
        response_body: Truncated upstream response body, when there was one
    """

    kind = "PipelineError"
    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body


class MalformedInput(PipelineError):
    """Stage input does not have the expected record shape."""

    kind = "MalformedInput"


class ProviderUnavailable(PipelineError):
    """The provider configuration could not be obtained."""

    kind = "ProviderUnavailable"
    retryable = True


class DecryptionFailed(PipelineError):
    """The provider secret could not be resolved."""

    kind = "DecryptionFailed"


class UpstreamError(PipelineError):
    """The data API answered with a non-2xx status or an unusable body."""

    kind = "UpstreamError"
    retryable = True


class NetworkError(PipelineError):
    """The data API could not be reached (transport failure or timeout)."""

    kind = "NetworkError"
    retryable = True


class PersistenceFailure(PipelineError):
    """A batch could not be written to the object store."""

    kind = "PersistenceFailure"
    retryable = True


ERROR_KINDS: dict[str, type[PipelineError]] = {
    cls.kind: cls
    for cls in (
        PipelineError,
        MalformedInput,
        ProviderUnavailable,
        DecryptionFailed,
        UpstreamError,
        NetworkError,
        PersistenceFailure,
    )
}


def error_from_payload(payload: dict) -> PipelineError:
    """Rebuild a PipelineError from a failure envelope body.

    Unknown or missing ``errorType`` values fall back to PipelineError.
    """
    cls = ERROR_KINDS.get(str(payload.get("errorType")), PipelineError)
    message = payload.get("message") or payload.get("error") or "Unknown error"
    return cls(str(message))
