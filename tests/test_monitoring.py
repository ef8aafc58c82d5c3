"""
Tests for Sentry reporting of job failures.
"""

from unittest.mock import MagicMock, patch

from inventory.monitoring import add_crawl_breadcrumb, capture_job_failure, filter_sensitive_data


class TestFilterSensitiveData:
    def test_filters_credentials(self):
        data = {
            "store_id": "store-1",
            "api_key": "abc",
            "Authorization": "Bearer xyz",
            "Id-Token": "provider-key",
        }

        filtered = filter_sensitive_data(data)

        assert filtered["store_id"] == "store-1"
        assert filtered["api_key"] == "[Filtered]"
        assert filtered["Authorization"] == "[Filtered]"
        assert filtered["Id-Token"] == "[Filtered]"

    def test_filters_nested(self):
        filtered = filter_sensitive_data({"headers": {"x-api-key": "abc", "accept": "json"}})

        assert filtered == {"headers": {"x-api-key": "[Filtered]", "accept": "json"}}

    def test_non_dict_passthrough(self):
        assert filter_sensitive_data("plain") == "plain"


class TestSentryCapture:
    def test_capture_job_failure_sets_context(self):
        with patch("inventory.monitoring.sentry_sdk") as sentry:
            scope = MagicMock()
            sentry.new_scope.return_value.__enter__.return_value = scope
            error = RuntimeError("provider down")

            capture_job_failure(
                error,
                "crawl_category",
                store_id="store-1",
                extra_context={"subcategory_id": "dairy", "token": "secret"},
            )

        sentry.capture_exception.assert_called_once_with(error)
        scope.set_tag.assert_any_call("inventory.job", "crawl_category")
        scope.set_tag.assert_any_call("inventory.store_id", "store-1")
        scope.set_extra.assert_called_once_with(
            "job_context", {"subcategory_id": "dairy", "token": "[Filtered]"}
        )

    def test_breadcrumb(self):
        with patch("inventory.monitoring.sentry_sdk") as sentry:
            add_crawl_breadcrumb("store-1", run_id="run-1", message="Crawl job started")

        kwargs = sentry.add_breadcrumb.call_args[1]
        assert kwargs["category"] == "crawl"
        assert kwargs["data"]["store_id"] == "store-1"
        assert kwargs["data"]["subcategory_id"] == "root"
