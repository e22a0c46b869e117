"""
OPENAI HTTP HELPERS
===================

Bits shared by the completion and embedding clients: request headers, turning
a failed httpx response into UpstreamHTTPError, and mapping transport
failures (timeouts, dropped connections) onto UpstreamError.
"""

import logging
from typing import Any, Dict

import httpx

from scribe.errors import AuthError, UpstreamError, UpstreamHTTPError


logger = logging.getLogger("scribe")


def auth_headers(api_key: str) -> Dict[str, str]:
    """Bearer + JSON headers. Raises AuthError when no key is configured."""
    if not api_key:
        raise AuthError("OPENAI_API_KEY is not set.")
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}


def error_message(response: httpx.Response) -> str:
    """
    Best human-readable message from an error response: `error.message` from a
    structured body when there is one, otherwise the raw body text.
    """
    text = response.text
    try:
        body: Any = response.json()
    except ValueError:
        return text.strip() or response.reason_phrase
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
        if isinstance(body.get("message"), str):
            return body["message"]
    return text.strip() or response.reason_phrase


def raise_for_upstream(response: httpx.Response, what: str) -> None:
    if response.is_success:
        return
    message = error_message(response)
    logger.error("%s error: %s %s", what, response.status_code, message)
    raise UpstreamHTTPError(response.status_code, message)


def transport_error(exc: httpx.HTTPError, what: str) -> UpstreamError:
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamError(f"{what} timed out")
    return UpstreamError(f"{what} failed: {exc}")
