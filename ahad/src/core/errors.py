"""
Ahad - Error Taxonomy
======================
Only ``MalformedInput`` ever reaches a caller of the orchestrator.  The
other errors are raised internally and recovered where they occur:

``SourceUnavailable``
    The external vector store could not be reached or timed out.
    Retrieval logs it and continues without that source.
``InferenceFailure``
    The inference backend failed or timed out.  The orchestrator answers
    with the canned fallback response instead.
``SessionNotFound``
    Inspection of an unknown session id.  Public inspection operations
    turn it into an explicit "not found" result.
``MalformedInput``
    A chat request with neither a message nor files.
"""


class AhadError(Exception):
    """Base class for all Ahad errors."""


class SourceUnavailable(AhadError):
    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class InferenceFailure(AhadError):
    pass


class SessionNotFound(AhadError, KeyError):
    def __init__(self, session_id: str) -> None:
        super().__init__(session_id)
        self.session_id = session_id

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"


class MalformedInput(AhadError, ValueError):
    pass
