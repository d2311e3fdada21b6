"""
Data models for HQ license verification.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FailureCategory(str, Enum):
    """Classified reasons a verification attempt did not produce a verdict."""
    HOST_UNREACHABLE = "host-unreachable"
    CONNECTION_RESET = "connection-reset"
    CONNECTION_REFUSED = "connection-refused"
    TLS_ERROR = "tls-error"
    CONNECT_TIMEOUT = "connect-timeout"
    READ_TIMEOUT = "read-timeout"
    DNS_ERROR = "dns-error"
    TRANSPORT_ERROR = "transport-error"
    SERVER_ERROR = "server-error"
    INVALID_RESPONSE = "invalid-response"
    CALL_ERROR = "call-error"

    @property
    def label(self) -> str:
        """Human-readable label stored on the cached verdict."""
        return FAILURE_LABELS[self]


FAILURE_LABELS: Dict[FailureCategory, str] = {
    FailureCategory.HOST_UNREACHABLE: "HTTP host not reachable error.",
    FailureCategory.CONNECTION_RESET: "HTTP connection reset error.",
    FailureCategory.CONNECTION_REFUSED: "HTTP connection refused error.",
    FailureCategory.TLS_ERROR: "TLS negotiation error.",
    FailureCategory.CONNECT_TIMEOUT: "Request timeout.",
    FailureCategory.READ_TIMEOUT: "Request timeout.",
    FailureCategory.DNS_ERROR: "Name resolution error.",
    FailureCategory.TRANSPORT_ERROR: "Connection error.",
    FailureCategory.SERVER_ERROR: "HQ internal server error.",
    FailureCategory.INVALID_RESPONSE: "Invalid response.",
    FailureCategory.CALL_ERROR: "HQ call error.",
}


@dataclass(frozen=True)
class RequestContext:
    """Inbound request facts reported to HQ; absent for background jobs."""
    ip: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None


@dataclass(frozen=True)
class Success:
    """HQ answered with HTTP 200."""
    status_code: int
    body: Any


@dataclass(frozen=True)
class ClassifiedFailure:
    """Any attempt that did not end in HTTP 200."""
    category: FailureCategory
    message: str = ""

    @property
    def label(self) -> str:
        return self.category.label


class VerificationPayload(BaseModel):
    """Request body sent to HQ."""
    license: Optional[str] = None
    license_key: Optional[str] = None
    product_version: str
    python_version: str
    environment: str
    ip: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    app_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CachedVerdict(BaseModel):
    """Cached outcome of a license check."""

    # Keys HQ returns beyond the known ones are kept as-is
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    valid: bool = False
    error: Optional[str] = None
    error_category: Optional[str] = None
    exception_message: Optional[str] = None
    expiry: int
    fetched_at: datetime
    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "error", "error_category", "exception_message", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return str(value)

    @field_validator("valid", mode="before")
    @classmethod
    def _coerce_valid(cls, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes")
        if isinstance(value, (int, float)):
            return value == 1
        return False

    @field_validator("fetched_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def expires_at(self) -> datetime:
        return self.fetched_at + timedelta(seconds=self.expiry)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Whether the verdict has outlived the TTL it was written with."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at < now

    def to_cache(self) -> Dict[str, Any]:
        """JSON-safe mapping handed to the cache store."""
        return self.model_dump(mode="json")
