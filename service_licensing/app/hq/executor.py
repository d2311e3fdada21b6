"""
HTTP request executor for HQ license verification.
"""

import errno
import socket
import ssl
from typing import Any, Iterator, Optional, Union

import httpx

from shared.config import BaseConfig
from shared.logging import get_logger

from .models import ClassifiedFailure, FailureCategory, Success, VerificationPayload

RequestOutcome = Union[Success, ClassifiedFailure]

OFFLINE_RESPONSE = {"id": "pro", "valid": True}

UNREACHABLE_ERRNOS = {errno.EHOSTUNREACH, errno.ENETUNREACH, errno.EHOSTDOWN}


def _exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Walk ``exc`` and the exceptions it was raised from.

    Implicit ``__context__`` links are only followed out of transport
    errors; anything else raised while handling an earlier error is not
    attributed to it.
    """
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif isinstance(current, (httpx.TransportError, OSError)) and not current.__suppress_context__:
            current = current.__context__
        else:
            current = None


def classify_exception(exc: BaseException) -> FailureCategory:
    """Map a transport exception onto a failure category."""
    if isinstance(exc, httpx.ConnectTimeout):
        return FailureCategory.CONNECT_TIMEOUT
    if isinstance(exc, (httpx.ReadTimeout, httpx.WriteTimeout, httpx.PoolTimeout)):
        return FailureCategory.READ_TIMEOUT

    # httpx wraps socket errors; the OS-level cause sits further down the chain
    for cause in _exception_chain(exc):
        if isinstance(cause, ssl.SSLError):
            return FailureCategory.TLS_ERROR
        if isinstance(cause, socket.gaierror):
            return FailureCategory.DNS_ERROR
        if isinstance(cause, ConnectionRefusedError):
            return FailureCategory.CONNECTION_REFUSED
        if isinstance(cause, ConnectionResetError):
            return FailureCategory.CONNECTION_RESET
        if isinstance(cause, OSError) and cause.errno in UNREACHABLE_ERRNOS:
            return FailureCategory.HOST_UNREACHABLE
        if isinstance(cause, TimeoutError):
            return FailureCategory.READ_TIMEOUT

    if isinstance(exc, (httpx.TransportError, OSError)):
        return FailureCategory.TRANSPORT_ERROR

    return FailureCategory.CALL_ERROR


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class RequestExecutor:
    """Posts verification payloads to HQ and classifies the outcome.

    ``execute`` is total: transport errors, timeouts and unexpected
    status codes all come back as ``ClassifiedFailure`` values.
    """

    def __init__(self, config: BaseConfig):
        self.config = config
        self.endpoint = config.hq_endpoint
        self.logger = get_logger("licensing.executor")

    def execute(self, payload: VerificationPayload, timeout: Optional[float] = None) -> RequestOutcome:
        """Perform a single verification attempt."""
        timeout = timeout if timeout is not None else self.config.request_timeout

        if self.config.offline:
            return Success(status_code=200, body=dict(OFFLINE_RESPONSE))

        try:
            response = self._post(payload, timeout)
        except Exception as e:
            category = classify_exception(e)
            self.logger.warning(
                "HQ request failed",
                category=category.value,
                exception=type(e).__name__,
                error=str(e)
            )
            return ClassifiedFailure(category=category, message=str(e))

        return self._interpret(response)

    def _post(self, payload: VerificationPayload, timeout: float) -> httpx.Response:
        if self.config.env == "development":
            self.logger.debug("Performing request to HQ to check license availability", endpoint=self.endpoint)

        with httpx.Client(timeout=timeout) as client:
            return client.post(self.endpoint, json=payload.model_dump(mode="json"))

    def _interpret(self, response: httpx.Response) -> RequestOutcome:
        try:
            if response.status_code == 200:
                return Success(status_code=200, body=_decode_body(response))

            if response.status_code == 500:
                self.logger.warning("HQ internal server error", body=response.text)
                return ClassifiedFailure(category=FailureCategory.SERVER_ERROR, message=response.text)

            self.logger.warning("Unexpected HQ response", status_code=response.status_code)
            return ClassifiedFailure(
                category=FailureCategory.INVALID_RESPONSE,
                message=f"code: {response.status_code}, body: {response.text}"
            )
        except Exception as e:
            # Reading the body can still fail on a broken stream
            category = classify_exception(e)
            self.logger.warning("Could not read HQ response", category=category.value, error=str(e))
            return ClassifiedFailure(category=category, message=str(e))
