"""Tests for the tool error envelope and the caller-side retry helper."""

import json
from unittest.mock import Mock

import pytest

from woo_amazon_mcf.exceptions import ApiError, NotLinkedError, RateLimitError, TransportError, ValidationError
from woo_amazon_mcf.utils.decorators import call_with_retry, handle_tool_errors, is_retryable, success_response


class TestHandleToolErrors:
    def test_success_passes_through(self):
        @handle_tool_errors
        def tool():
            return success_response({"ok": 1})

        result = json.loads(tool())
        assert result["success"] is True
        assert result["data"] == {"ok": 1}
        assert "request_id" in result["metadata"]

    def test_rate_limit_envelope(self):
        @handle_tool_errors
        def tool():
            raise RateLimitError("QuotaExceeded", retry_after=12)

        result = json.loads(tool())
        assert result["error"] == "rate_limit_exceeded"
        assert result["retry_after"] == 12

    def test_api_error_envelope_carries_provider_errors(self):
        @handle_tool_errors
        def tool():
            raise ApiError("Invalid SKU", 400, raw_response={"errors": [{"code": "InvalidInput"}]})

        result = json.loads(tool())
        assert result["error"] == "api_error"
        assert result["message"] == "Invalid SKU"
        assert result["details"] == [{"code": "InvalidInput"}]

    def test_domain_error_envelope(self):
        @handle_tool_errors
        def tool():
            raise NotLinkedError("No MCF order ID found")

        result = json.loads(tool())
        assert (result["success"], result["error"]) == (False, "not_linked")

    def test_unexpected_error_envelope(self):
        @handle_tool_errors
        def tool():
            raise KeyError("boom")

        assert json.loads(tool())["error"] == "unexpected_error"


class TestRetry:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (TransportError("reset"), True),
            (RateLimitError("slow down"), True),
            (ApiError("oops", 503), True),
            (ApiError("bad", 400), False),
            (ValidationError("bad"), False),
        ],
    )
    def test_is_retryable(self, error, expected):
        assert is_retryable(error) is expected

    def test_retries_until_success(self):
        func = Mock(side_effect=[TransportError("a"), ApiError("b", 500), "done"])
        sleeps = []

        assert call_with_retry(func, attempts=3, base_delay=1.0, sleep=sleeps.append) == "done"
        assert len(sleeps) == 2
        assert all(0 <= delay <= 2.0 for delay in sleeps)

    def test_gives_up_after_attempts(self):
        func = Mock(side_effect=TransportError("down"))

        with pytest.raises(TransportError):
            call_with_retry(func, attempts=2, sleep=lambda _: None)

        assert func.call_count == 2

    def test_non_retryable_raised_immediately(self):
        func = Mock(side_effect=ApiError("bad", 400))

        with pytest.raises(ApiError):
            call_with_retry(func, attempts=5, sleep=lambda _: None)

        assert func.call_count == 1

    def test_rate_limit_waits_for_retry_after(self):
        func = Mock(side_effect=[RateLimitError("slow", retry_after=7), "ok"])
        sleeps = []

        call_with_retry(func, attempts=2, base_delay=0.1, sleep=sleeps.append)

        assert sleeps == [7.0]
