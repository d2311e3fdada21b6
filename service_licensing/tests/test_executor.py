"""
Unit tests for the HQ request executor.
"""

import errno
import socket
import ssl

import pytest
import httpx
from unittest.mock import patch

from service_licensing.app.hq.executor import RequestExecutor, classify_exception
from service_licensing.app.hq.models import ClassifiedFailure, FailureCategory, Success, VerificationPayload
from shared.test_helpers import (
    HQ_TEST_ENDPOINT, chain_exception, create_hq_response, create_test_config, mock_http_client
)


class TestRequestExecutor:
    """Test cases for RequestExecutor."""

    @pytest.fixture
    def config(self):
        """Create test configuration."""
        return create_test_config()

    @pytest.fixture
    def executor(self, config):
        """Create RequestExecutor instance."""
        return RequestExecutor(config)

    @pytest.fixture
    def payload(self):
        """Create verification payload."""
        return VerificationPayload(
            license="pro",
            license_key="test-license-key",
            product_version="3.4.1",
            python_version="3.12.0",
            environment="test",
            ip="10.0.0.1",
            host="app.internal",
            port=443,
            app_name="billing",
            metadata={"hostname": "web-1"}
        )

    def test_success(self, executor, payload):
        """Test HTTP 200 yields Success with the decoded body."""
        with patch("httpx.Client") as mock_client:
            post = mock_http_client(mock_client, create_hq_response(200, {"id": "pro", "valid": True}))

            outcome = executor.execute(payload, 5)

        assert outcome == Success(status_code=200, body={"id": "pro", "valid": True})
        post.assert_called_once_with(HQ_TEST_ENDPOINT, json=payload.model_dump(mode="json"))

    def test_timeout_is_passed_to_client(self, executor, payload):
        """Test the request timeout reaches the HTTP client."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, create_hq_response(200))

            executor.execute(payload, 2.5)

        mock_client.assert_called_once_with(timeout=2.5)

    def test_default_timeout_from_config(self, executor, payload):
        """Test the configured timeout is used when none is given."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, create_hq_response(200))

            executor.execute(payload)

        mock_client.assert_called_once_with(timeout=5.0)

    def test_success_with_non_json_body(self, executor, payload):
        """Test a 200 whose body is not JSON carries the raw text."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, create_hq_response(200, text="pro"))

            outcome = executor.execute(payload, 5)

        assert outcome == Success(status_code=200, body="pro")

    def test_server_error(self, executor, payload):
        """Test HTTP 500 is classified as a server error."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, create_hq_response(500, text="boom"))

            outcome = executor.execute(payload, 5)

        assert outcome == ClassifiedFailure(category=FailureCategory.SERVER_ERROR, message="boom")
        assert outcome.label == "HQ internal server error."

    @pytest.mark.parametrize("status_code", [201, 301, 401, 403, 404, 502, 503])
    def test_unexpected_status(self, executor, payload, status_code):
        """Test any other status is classified as an invalid response."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, create_hq_response(status_code, text="nope"))

            outcome = executor.execute(payload, 5)

        assert isinstance(outcome, ClassifiedFailure)
        assert outcome.category == FailureCategory.INVALID_RESPONSE
        assert outcome.message == f"code: {status_code}, body: nope"

    @pytest.mark.parametrize("error,category", [
        (chain_exception(httpx.ConnectError("refused"), ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")),
         FailureCategory.CONNECTION_REFUSED),
        (chain_exception(httpx.ReadError("reset"), ConnectionResetError(errno.ECONNRESET, "Connection reset by peer")),
         FailureCategory.CONNECTION_RESET),
        (chain_exception(httpx.ConnectError("unreachable"), OSError(errno.EHOSTUNREACH, "No route to host")),
         FailureCategory.HOST_UNREACHABLE),
        (chain_exception(httpx.ConnectError("tls"), ssl.SSLError("CERTIFICATE_VERIFY_FAILED")),
         FailureCategory.TLS_ERROR),
        (chain_exception(httpx.ConnectError("dns"), socket.gaierror(-2, "Name or service not known")),
         FailureCategory.DNS_ERROR),
        (httpx.ConnectTimeout("connect timed out"), FailureCategory.CONNECT_TIMEOUT),
        (httpx.ReadTimeout("read timed out"), FailureCategory.READ_TIMEOUT),
        (httpx.RemoteProtocolError("server disconnected"), FailureCategory.TRANSPORT_ERROR),
        (ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused"), FailureCategory.CONNECTION_REFUSED),
        (ValueError("unexpected"), FailureCategory.CALL_ERROR),
    ])
    def test_exceptions_are_classified(self, executor, payload, error, category):
        """Test every transport failure becomes a ClassifiedFailure."""
        with patch("httpx.Client") as mock_client:
            mock_http_client(mock_client, side_effect=error)

            outcome = executor.execute(payload, 5)

        assert isinstance(outcome, ClassifiedFailure)
        assert outcome.category == category
        assert outcome.message == str(error)

    def test_offline_mode_skips_network(self, payload):
        """Test offline mode answers without an HTTP call."""
        executor = RequestExecutor(create_test_config(offline=True))

        with patch("httpx.Client") as mock_client:
            outcome = executor.execute(payload, 5)

        mock_client.assert_not_called()
        assert outcome == Success(status_code=200, body={"id": "pro", "valid": True})


class TestClassifyException:
    """Test cases for classify_exception."""

    def test_timeouts_take_precedence_over_cause(self):
        """Test httpx timeouts are classified before their socket cause."""
        error = chain_exception(httpx.ConnectTimeout("timed out"), socket.timeout("timed out"))

        assert classify_exception(error) == FailureCategory.CONNECT_TIMEOUT

    def test_implicit_context_is_followed(self):
        """Test causes attached implicitly via __context__ are inspected."""
        try:
            try:
                raise ConnectionResetError(errno.ECONNRESET, "reset")
            except ConnectionResetError:
                raise httpx.ReadError("read failed")
        except httpx.ReadError as e:
            error = e

        assert classify_exception(error) == FailureCategory.CONNECTION_RESET

    def test_unrelated_error_is_not_attributed_to_context(self):
        """Test a non-transport error raised while handling a reset stays a call error."""
        try:
            try:
                raise ConnectionResetError(errno.ECONNRESET, "reset")
            except ConnectionResetError:
                raise ValueError("bad payload")
        except ValueError as e:
            error = e

        assert classify_exception(error) == FailureCategory.CALL_ERROR

    def test_explicit_cause_of_unrelated_error_is_followed(self):
        """Test an explicit cause is inspected whatever the outer error."""
        error = chain_exception(RuntimeError("wrapped"), ConnectionRefusedError(errno.ECONNREFUSED, "refused"))

        assert classify_exception(error) == FailureCategory.CONNECTION_REFUSED

    def test_raw_socket_timeout(self):
        """Test a bare socket timeout is a read timeout."""
        assert classify_exception(socket.timeout("timed out")) == FailureCategory.READ_TIMEOUT

    def test_generic_os_error(self):
        """Test other OS errors are generic transport errors."""
        assert classify_exception(OSError(errno.EPIPE, "Broken pipe")) == FailureCategory.TRANSPORT_ERROR

    def test_every_category_has_a_label(self):
        """Test each failure category carries a human-readable label."""
        for category in FailureCategory:
            assert category.label
