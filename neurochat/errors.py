"""Error taxonomy for the completion pipeline and the classifier that maps raw failures onto it."""

import httpx
import openai

from neurochat.globals import API_KEY_ENV_VAR


class ChatError(Exception):
    """Base class. ``message`` is the text shown to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChatError):
    """Nothing to send, or no session to send it to. Never shown to the user."""


class ServiceUnavailable(ChatError):
    pass


class AuthError(ChatError):
    pass


class QuotaExceeded(ChatError):
    pass


class ProtocolError(ChatError):
    """The server answered with something that is not a usable event stream."""


class UnknownError(ChatError):
    pass


UNAVAILABLE_MSG = "Cannot reach the completion service. Check your connection."
AUTH_MSG = f"Authorization failed. Check your API key ({API_KEY_ENV_VAR} or !key)."
QUOTA_MSG = "API quota exceeded. Check your billing or rate limits."
GENERIC_MSG = "Something went wrong while talking to the model."


def _chain(e: BaseException):
    """The exception followed by its causes, oldest last."""
    seen = set()
    while e is not None and id(e) not in seen:
        seen.add(id(e))
        yield e
        e = e.__cause__ or e.__context__


def _is_connectivity(e: BaseException, text: str) -> bool:
    if isinstance(e, openai.APIConnectionError) and not isinstance(
        e, openai.APITimeoutError
    ):
        return True
    # openai wraps httpx.ConnectTimeout as APITimeoutError; the original is the cause
    if any(
        isinstance(link, (httpx.ConnectError, httpx.ConnectTimeout))
        for link in _chain(e)
    ):
        return True
    return "failed to fetch" in text or "connection error" in text


def _is_unauthorized(e: BaseException, text: str) -> bool:
    if isinstance(e, openai.AuthenticationError):
        return True
    if isinstance(e, openai.APIStatusError) and e.status_code == 401:
        return True
    return "401" in text or "unauthorized" in text


def classify_error(e: BaseException) -> ChatError:
    """Maps any failure onto the taxonomy. Order: connectivity, auth, quota, generic."""
    if isinstance(e, ChatError):
        return e
    detail = getattr(e, "message", None) or str(e) or type(e).__name__
    text = detail.lower()

    if _is_connectivity(e, text):
        return ServiceUnavailable(UNAVAILABLE_MSG)
    if _is_unauthorized(e, text):
        return AuthError(AUTH_MSG)
    if "quota" in text:
        return QuotaExceeded(QUOTA_MSG)
    message = f"{GENERIC_MSG} Details: {detail}"
    if isinstance(e, (ProtocolError, httpx.TransportError)):
        return ProtocolError(message)
    return UnknownError(message)
