"""Tests for tracing of resource service calls."""

from unittest.mock import MagicMock, patch

import pytest

from activity_roster.adapters.request_logger import (
    RemoteCallTrace,
    call_target,
    should_log_requests,
)
from activity_roster.domain.models import RemoteError
from tests.roster_helpers import FakeClock


class TestShouldLogRequests:
    """Tests for should_log_requests function."""

    def test_when_env_not_set_then_returns_false(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Given ROSTER_LOG_REQUESTS not set, when checking, then returns False."""
        monkeypatch.delenv("ROSTER_LOG_REQUESTS", raising=False)

        assert should_log_requests() is False

    @pytest.mark.parametrize("value", ["true", "True", "TRUE"])
    def test_when_env_set_to_true_then_returns_true(
        self, monkeypatch: pytest.MonkeyPatch, value: str
    ) -> None:
        """Given ROSTER_LOG_REQUESTS=true in any case, when checking, then returns True."""
        monkeypatch.setenv("ROSTER_LOG_REQUESTS", value)

        assert should_log_requests() is True

    def test_when_env_set_to_false_then_returns_false(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Given ROSTER_LOG_REQUESTS=false, when checking, then returns False."""
        monkeypatch.setenv("ROSTER_LOG_REQUESTS", "false")

        assert should_log_requests() is False

@pytest.mark.parametrize(
    ("url", "params", "expected"),
    [
        ("http://localhost/api/resources", None, "/api/resources"),
        (
            "http://localhost/api/resources",
            {"sport": "padel", "city": "Munich"},
            "/api/resources?city=Munich&sport=padel",
        ),
        ("http://localhost", {"q": "a b"}, "/?q=a+b"),
    ],
)
def test_call_target(url: str, params: dict[str, object] | None, expected: str) -> None:
    """Given a URL and query parameters, when describing the target, then the path has a sorted query."""
    assert call_target(url, params) == expected


class TestRemoteCallTrace:
    """Tests for RemoteCallTrace."""

    @patch("activity_roster.adapters.request_logger.should_log_requests", return_value=False)
    @patch("activity_roster.adapters.request_logger.logger")
    def test_when_tracing_disabled_then_nothing_is_logged(
        self, mock_logger: MagicMock, _mock_should_log: MagicMock
    ) -> None:
        """Given tracing is disabled, when a call starts and finishes, then nothing is logged."""
        trace = RemoteCallTrace("GET", "http://localhost/api/resources")
        trace.finished(200)
        trace.failed(RemoteError.timeout())

        mock_logger.info.assert_not_called()

    @patch("activity_roster.adapters.request_logger.should_log_requests", return_value=True)
    @patch("activity_roster.adapters.request_logger.logger")
    def test_when_call_answers_then_status_and_latency_are_logged(
        self, mock_logger: MagicMock, _mock_should_log: MagicMock
    ) -> None:
        """Given tracing is enabled, when a join is answered after 42 ms, then start and answer name the actor."""
        clock = FakeClock()
        trace = RemoteCallTrace(
            "POST", "http://localhost/api/resources/r1/join", actor_id="alice", clock=clock
        )
        clock.advance(0.042)
        trace.finished(409)

        messages = [c.args[0] for c in mock_logger.info.call_args_list]
        assert messages == [
            "Remote call: POST /api/resources/r1/join as alice",
            "Remote call POST /api/resources/r1/join as alice answered 409 in 42 ms",
        ]

    @patch("activity_roster.adapters.request_logger.should_log_requests", return_value=True)
    @patch("activity_roster.adapters.request_logger.logger")
    def test_when_call_fails_then_error_kind_is_logged(
        self, mock_logger: MagicMock, _mock_should_log: MagicMock
    ) -> None:
        """Given tracing is enabled, when an anonymous fetch times out, then the error kind is logged."""
        trace = RemoteCallTrace(
            "GET", "http://localhost/api/resources", params={"sport": "padel"}, clock=FakeClock()
        )
        trace.failed(RemoteError.timeout())

        message = mock_logger.info.call_args[0][0]
        assert message.startswith(
            "Remote call GET /api/resources?sport=padel as anonymous failed in 0 ms: timeout"
        )

    def test_tracing_is_decided_when_call_starts(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Given tracing enabled after a call started, when it finishes, then it stays untraced."""
        monkeypatch.delenv("ROSTER_LOG_REQUESTS", raising=False)
        trace = RemoteCallTrace("GET", "http://localhost/api/resources")

        monkeypatch.setenv("ROSTER_LOG_REQUESTS", "true")

        assert trace.enabled is False
