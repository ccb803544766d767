"""Failure classification and the error types."""

import httpx
import pytest

from storage_client.exceptions import (
    FailureReason,
    StorageArgumentError,
    StorageError,
    TransferCancelledError,
    detect_reason,
)


@pytest.mark.parametrize(
    "status,body,expected",
    [
        (400, "Authorization header is missing", FailureReason.NOT_AUTHORIZED),
        (400, "jwt MALFORMED", FailureReason.NOT_AUTHORIZED),
        (400, "invalid signature", FailureReason.NOT_AUTHORIZED),
        (400, "Invalid bucket name", FailureReason.INVALID_INPUT),
        (400, "something else went wrong", FailureReason.UNKNOWN),
        (401, "", FailureReason.NOT_AUTHORIZED),
        (401, "expired", FailureReason.NOT_AUTHORIZED),
        (404, "Not Found", FailureReason.NOT_FOUND),
        (404, "Object Not Found", FailureReason.NOT_FOUND),
        (404, "missing", FailureReason.UNKNOWN),
        (409, "The resource already exists", FailureReason.ALREADY_EXISTS),
        (409, "conflict", FailureReason.UNKNOWN),
        (500, "boom", FailureReason.INTERNAL),
        (500, "", FailureReason.INTERNAL),
        (503, "unavailable", FailureReason.UNKNOWN),
        (None, "not found", FailureReason.UNKNOWN),
    ],
)
def test_detect_reason(status, body, expected) -> None:
    assert detect_reason(status, body) is expected


@pytest.mark.parametrize("status", [400, 401, 404, 409, 500])
def test_missing_body_is_unknown(status) -> None:
    assert detect_reason(status, None) is FailureReason.UNKNOWN


def test_error_body_status_code_wins_over_http_status() -> None:
    response = httpx.Response(
        400,
        json={"statusCode": "409", "error": "Duplicate", "message": "The resource already exists"},
    )

    error = StorageError.from_response(response, response.text)

    assert error.status_code == 409
    assert error.reason is FailureReason.ALREADY_EXISTS
    assert str(error) == "The resource already exists"
    assert error.error_response.error == "Duplicate"
    assert error.response is response


def test_plain_text_body_uses_http_status() -> None:
    response = httpx.Response(500, text="upstream exploded")

    error = StorageError.from_response(response, response.text)

    assert error.status_code == 500
    assert error.error_response is None
    assert str(error) == "upstream exploded"
    assert error.reason is FailureReason.INTERNAL


def test_empty_body_message_names_the_status() -> None:
    response = httpx.Response(502)

    error = StorageError.from_response(response, response.text)

    assert str(error) == "HTTP 502"
    assert error.reason is FailureReason.UNKNOWN
    assert "reason=unknown" in repr(error)


def test_error_types_are_distinct() -> None:
    assert issubclass(StorageError, RuntimeError)
    assert issubclass(StorageArgumentError, ValueError)
    assert not issubclass(TransferCancelledError, StorageError)
    assert not issubclass(StorageError, ValueError)
    assert not issubclass(TransferCancelledError, ValueError)


def test_server_error_with_empty_body_is_internal() -> None:
    response = httpx.Response(500)

    error = StorageError.from_response(response, "")

    assert error.reason is FailureReason.INTERNAL
    assert error.status_code == 500
    assert error.content == ""
    assert str(error) == "HTTP 500"
