"""
ERRORS MODULE
=============

Exception types raised by the completion pipeline, plus warning_for(), which
turns any of them into the one-line, human-readable warning the API sends back
instead of failing the request.

  AuthError           - no OPENAI_API_KEY configured. Never retried.
  ModelMismatchError  - configured model can't serve the Responses endpoint.
  UpstreamError       - embedding failure, transport failure or timeout.
  UpstreamHTTPError   - non-2xx answer from the endpoint (status + message).
  NetworkAbort        - the streaming client went away. Not an error; the
                        stream emitter uses it to stop quietly.
"""

from typing import Optional


class ScribeError(Exception):
    """Base class for failures the API converts into a warning."""


class AuthError(ScribeError):
    pass


class ModelMismatchError(ScribeError):
    def __init__(self, model: str, detail: str = ""):
        self.model = model
        self.detail = detail
        super().__init__(detail or f"Model {model!r} is not available for text generation.")


class UpstreamError(ScribeError):
    pass


class UpstreamHTTPError(UpstreamError):
    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"Upstream HTTP {status}: {message}")


class NetworkAbort(Exception):
    """Raised inside the stream emitter when the caller disconnects."""


# ==============================================================================
# WARNING MESSAGES
# ==============================================================================

EMPTY_OUTPUT_WARNING = "⚠️ No content returned from the AI."
SERVER_ERROR_WARNING = "⚠️ Server error while drafting. Please try again."


def warning_for(exc: BaseException) -> str:
    """Map an exception from the pipeline to the warning string shown to the user."""
    if isinstance(exc, AuthError):
        return "⚠️ OPENAI_API_KEY is not configured on the server."
    if isinstance(exc, ModelMismatchError):
        return (
            f"⚠️ The selected model is not available to your key. Current model: \"{exc.model}\". "
            "Try setting OPENAI_MODEL=gpt-4o-mini in your .env and restart the server."
        )
    if isinstance(exc, UpstreamHTTPError):
        return f"⚠️ OpenAI request failed ({exc.status}): {exc.message}"
    if isinstance(exc, UpstreamError):
        return f"⚠️ OpenAI request failed: {exc}"
    return SERVER_ERROR_WARNING


def incomplete_warning(reason: Optional[str], rounds: int, truncation_reason: str) -> Optional[str]:
    """
    Warning for a run that ended without a clean completion, or None.

    A truncation reason here means the round cap was hit while the model was
    still being cut off; any other reason (e.g. content_filter) stopped the
    model outright.
    """
    if not reason:
        return None
    if reason == truncation_reason:
        return f"⚠️ Output was still truncated after {rounds} continuation round(s)."
    return f"⚠️ Generation stopped early ({reason})."
