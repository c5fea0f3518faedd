import httpx
import openai

from neurochat.errors import (
    AuthError,
    ProtocolError,
    QuotaExceeded,
    ServiceUnavailable,
    UnknownError,
    classify_error,
)

REQUEST = httpx.Request("POST", "https://api.example.test/v1/chat/completions")


def status_error(status: int, body: dict) -> openai.APIStatusError:
    response = httpx.Response(status, json=body, request=REQUEST)
    return openai.APIStatusError(
        f"Error code: {status} - {body}", response=response, body=body
    )


def test_connection_errors():
    assert isinstance(
        classify_error(openai.APIConnectionError(request=REQUEST)), ServiceUnavailable
    )
    assert isinstance(classify_error(httpx.ConnectError("refused")), ServiceUnavailable)
    assert isinstance(classify_error(Exception("Failed to fetch")), ServiceUnavailable)


def test_timeouts_are_not_connectivity():
    assert isinstance(
        classify_error(openai.APITimeoutError(request=REQUEST)), UnknownError
    )


def test_connect_timeout_behind_api_timeout_is_connectivity():
    try:
        try:
            raise httpx.ConnectTimeout("timed out connecting", request=REQUEST)
        except httpx.ConnectTimeout as err:
            raise openai.APITimeoutError(request=REQUEST) from err
    except openai.APITimeoutError as e:
        wrapped = e
    assert isinstance(classify_error(wrapped), ServiceUnavailable)


def test_unauthorized():
    assert isinstance(classify_error(status_error(401, {})), AuthError)
    assert isinstance(classify_error(Exception("Unauthorized")), AuthError)


def test_quota():
    error = classify_error(status_error(429, {"message": "Daily quota reached"}))
    assert isinstance(error, QuotaExceeded)


def test_connectivity_outranks_auth_and_quota():
    error = classify_error(Exception("connection error: 401 quota"))
    assert isinstance(error, ServiceUnavailable)


def test_auth_outranks_quota():
    assert isinstance(classify_error(status_error(401, {"m": "quota"})), AuthError)


def test_generic_message_carries_detail():
    error = classify_error(ValueError("weird thing"))
    assert isinstance(error, UnknownError)
    assert error.message.endswith("Details: weird thing")


def test_mid_stream_transport_error_is_protocol_error():
    error = classify_error(httpx.RemoteProtocolError("peer closed connection"))
    assert isinstance(error, ProtocolError)
    assert "peer closed connection" in error.message


def test_already_classified_errors_pass_through():
    original = QuotaExceeded("over")
    assert classify_error(original) is original
