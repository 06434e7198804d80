import json

import pytest

from jira_api_client.core.errors import ApiError, ApiErrorKind
from jira_api_client.services.errors import classify, kind_for_status, raise_for_classification
from jira_api_client.services.transport import RawResponse


def _raw(status, body="", headers=None):
    text = body if isinstance(body, str) else json.dumps(body)
    return RawResponse(
        status_code=status,
        url="https://example.atlassian.net/rest/api/2/issue/ABC-1",
        text=text,
        headers=headers or {},
        request_id="req-1",
    )


EXPECTED = {
    200: None,
    401: ApiErrorKind.AUTH,
    403: ApiErrorKind.AUTH,
    404: ApiErrorKind.NOT_FOUND,
    429: ApiErrorKind.RATE_LIMITED,
    500: ApiErrorKind.SERVER,
    502: ApiErrorKind.SERVER,
}


@pytest.mark.parametrize("status,expected", sorted(EXPECTED.items()))
def test_classify_known_statuses(status, expected):
    raw = _raw(status)
    first = classify(raw)
    second = classify(raw)

    if expected is None:
        assert first is raw and second is raw
    else:
        assert isinstance(first, ApiError) and isinstance(second, ApiError)
        assert first.kind is expected and second.kind is expected
        assert first.status_code == status
        assert first.request_id == "req-1"


def test_classify_is_total():
    for status in range(0, 1000):
        outcome = classify(_raw(status))
        assert outcome is not None
        if 200 <= status < 300:
            assert isinstance(outcome, RawResponse)
        else:
            assert isinstance(outcome, ApiError)
            assert outcome.kind in ApiErrorKind


@pytest.mark.parametrize("status", [400, 409, 422])
def test_validation_statuses(status):
    assert kind_for_status(status) is ApiErrorKind.VALIDATION


@pytest.mark.parametrize("status", [100, 301, 302, 304, 405, 418, 600, -1])
def test_unexpected_statuses_are_malformed(status):
    assert kind_for_status(status) is ApiErrorKind.MALFORMED_RESPONSE


def test_rate_limited_carries_retry_after():
    error = classify(_raw(429, headers={"Retry-After": "17"}))
    assert error.kind is ApiErrorKind.RATE_LIMITED
    assert error.retry_after == 17.0


def test_rate_limited_without_usable_retry_after():
    assert classify(_raw(429)).retry_after is None
    assert classify(_raw(429, headers={"retry-after": "Wed, 21 Oct 2026 07:28:00 GMT"})).retry_after is None


def test_jira_error_messages_are_surfaced():
    body = {"errorMessages": ["Issue does not exist"], "errors": {"summary": "Summary is required"}}
    error = classify(_raw(400, body))

    assert error.message == "Issue does not exist; summary: Summary is required"
    assert error.details == {"errorMessages": ["Issue does not exist"], "errors": {"summary": "Summary is required"}}


def test_plain_text_error_body_is_truncated():
    error = classify(_raw(503, "x" * 2000))
    assert error.kind is ApiErrorKind.SERVER
    assert error.details == "x" * 500
    assert "503" in error.message


def test_raise_for_classification():
    ok = _raw(201, {"id": "1"})
    assert raise_for_classification(ok) is ok

    with pytest.raises(ApiError) as excinfo:
        raise_for_classification(_raw(404, {"errorMessages": ["gone"], "errors": {}}))
    assert excinfo.value.kind is ApiErrorKind.NOT_FOUND
    assert "gone" in str(excinfo.value)


@pytest.mark.parametrize(
    "body,expected_message",
    [
        ({"errors": ["Field 'summary' is required"]}, "JIRA rejected the request"),
        ({"errorMessages": 5}, "JIRA rejected the request"),
        ({"errorMessages": "Issue does not exist"}, "Issue does not exist"),
        ({"errorMessages": ["bad jql"], "errors": "summary"}, "JIRA rejected the request"),
    ],
)
def test_irregular_error_bodies_still_classify(body, expected_message):
    raw = _raw(400, body)

    error = classify(raw)

    assert isinstance(error, ApiError)
    assert error.kind is ApiErrorKind.VALIDATION
    assert error.message == expected_message
    if isinstance(body.get("errorMessages"), str):
        assert error.details == {"errorMessages": ["Issue does not exist"], "errors": {}}
    else:
        assert error.details == raw.text


def test_deeply_nested_error_body_falls_back_to_text():
    text = "[" * 100000 + "]" * 100000
    error = classify(_raw(500, text))
    assert error.kind is ApiErrorKind.SERVER
    assert error.details == text[:500]
