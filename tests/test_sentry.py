"""
Tests for Sentry event filtering.
"""

from teamhub.core.errors import UnauthorizedError
from teamhub.integrations.sentry import _filter_events, capture_exception, init_sentry


class TestSentry:
    def test_disabled_without_dsn(self):
        assert init_sentry() is False
        assert capture_exception(RuntimeError("boom")) is None

    def test_expected_errors_dropped(self):
        error = UnauthorizedError()
        hint = {"exc_info": (type(error), error, None)}
        assert _filter_events({"message": "x"}, hint) is None

    def test_unexpected_errors_kept_and_scrubbed(self):
        error = RuntimeError("boom")
        event = {"request": {"headers": {"Authorization": "Bearer abc", "Accept": "json"}}}

        result = _filter_events(event, {"exc_info": (type(error), error, None)})

        assert result["request"]["headers"] == {"Authorization": "[Filtered]", "Accept": "json"}
