"""
Integration tests for the license verification flow.
"""

import errno
import json
from datetime import timedelta

import pytest
import httpx
from unittest.mock import patch

from service_licensing.app.cache.store import MemoryCacheStore
from service_licensing.app.hq.coordinator import LicenseCoordinator
from shared.test_helpers import HQ_TEST_ENDPOINT, create_cached_verdict_data, create_test_config

RealClient = httpx.Client


class FakeHQ:
    """Scriptable HQ endpoint served through httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(200, json={"id": "pro", "valid": True})

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def client_factory(self, **kwargs):
        return RealClient(transport=httpx.MockTransport(self.handle), **kwargs)


class TestLicensingFlow:
    """Integration tests for the license verification flow."""

    @pytest.fixture
    def hq(self):
        """Patch httpx so requests reach the fake HQ."""
        fake = FakeHQ()
        with patch("httpx.Client", side_effect=fake.client_factory):
            yield fake

    @pytest.fixture
    def cache_store(self):
        """Create in-process cache store."""
        return MemoryCacheStore()

    @pytest.fixture
    def coordinator(self, cache_store):
        """Create LicenseCoordinator with the default collaborators."""
        return LicenseCoordinator(create_test_config(), cache_store)

    def test_first_check_posts_payload_and_caches(self, hq, coordinator):
        """Test the first check posts the JSON payload and caches the verdict."""
        verdict = coordinator.check()

        assert len(hq.requests) == 1
        request = hq.requests[0]
        assert request.method == "POST"
        assert str(request.url) == HQ_TEST_ENDPOINT

        body = json.loads(request.content)
        assert body["license"] == "pro"
        assert body["license_key"] == "test-license-key"
        assert body["product_version"] == "3.4.1"
        assert body["environment"] == "test"
        assert "python_version" in body["metadata"]

        assert verdict.valid is True
        assert verdict.expiry == 6 * 60 * 60

    def test_second_check_is_served_from_cache(self, hq, coordinator):
        """Test repeated checks reuse the cached verdict."""
        first = coordinator.check()
        second = coordinator.check()

        assert len(hq.requests) == 1
        assert second.fetched_at == first.fetched_at

    def test_overdue_verdict_triggers_new_request(self, hq, coordinator, cache_store):
        """Test a seven hour old verdict is refreshed."""
        cache_store.write(coordinator.cache_key(), create_cached_verdict_data(age=timedelta(hours=7)), 21600)

        coordinator.check()

        assert len(hq.requests) == 1

    def test_outage_then_recovery(self, hq, coordinator, cache_store):
        """Test an outage fails open briefly and recovers once the short TTL lapses."""
        def refuse(request):
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request) from ConnectionRefusedError(
                errno.ECONNREFUSED, "Connection refused"
            )

        hq.responder = refuse
        outage = coordinator.check()

        assert outage.valid is True
        assert outage.error_category == "connection-refused"
        assert outage.expiry == 5 * 60

        # Still within the failure TTL: no new request
        coordinator.check()
        assert len(hq.requests) == 1

        # Age the failure verdict past its TTL
        aged = cache_store.read(coordinator.cache_key())
        aged["fetched_at"] = create_cached_verdict_data(age=timedelta(minutes=6))["fetched_at"]
        cache_store.write(coordinator.cache_key(), aged, 300)

        hq.responder = lambda request: httpx.Response(200, json={"id": "pro", "valid": True})
        recovered = coordinator.check()

        assert len(hq.requests) == 2
        assert recovered.error is None
        assert recovered.expiry == 6 * 60 * 60

    def test_bare_string_body(self, hq, coordinator):
        """Test a bare JSON string from HQ is normalized before caching."""
        hq.responder = lambda request: httpx.Response(200, json="pro")

        verdict = coordinator.check()

        assert verdict.model_extra["normalized_response"] == "pro"
        assert coordinator.current_cached_verdict().model_extra["normalized_response"] == "pro"

    def test_server_error_fails_open(self, hq, coordinator):
        """Test an HQ 500 is cached as a short-lived valid verdict."""
        hq.responder = lambda request: httpx.Response(500, text="database down")

        verdict = coordinator.check()

        assert verdict.valid is True
        assert verdict.error == "HQ internal server error."
        assert verdict.exception_message == "database down"
        assert verdict.expiry == 5 * 60

    def test_force_refresh_and_clear(self, hq, coordinator):
        """Test force_refresh always calls HQ and clear empties the cache."""
        coordinator.check()
        coordinator.force_refresh()

        assert len(hq.requests) == 2

        coordinator.clear()

        assert coordinator.current_cached_verdict() is None
