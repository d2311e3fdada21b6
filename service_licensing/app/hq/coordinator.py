"""
Verdict cache coordinator for HQ license checks.
"""

import re
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Tuple

from pydantic import ValidationError

from shared.config import BaseConfig
from shared.logging import get_logger, reset_license_context, set_license_context
from shared.metrics import MetricsCollector

from ..cache.store import CacheStore
from .executor import RequestExecutor, RequestOutcome
from .models import CachedVerdict, ClassifiedFailure, RequestContext, Success, VerificationPayload
from .normalizer import normalize_response
from .payload import PayloadBuilder

CACHE_KEY_NAMESPACE = "licensing.hq"


def parameterize(value: str, separator: str = "-") -> str:
    """Lowercase ``value`` and collapse anything outside [a-z0-9_-] into ``separator``."""
    result = re.sub(r"[^a-z0-9\-_]+", separator, value.lower())
    result = re.sub(rf"{re.escape(separator)}{{2,}}", separator, result)
    return result.strip(separator)


def cache_key_for(product_version: str) -> str:
    """Cache key scoping one verdict per product version."""
    return f"{CACHE_KEY_NAMESPACE}-{parameterize(product_version)}.response"


class LicenseCoordinator:
    """Owns the verdict cache and the public license check operations."""

    def __init__(
        self,
        config: BaseConfig,
        cache_store: CacheStore,
        executor: Optional[RequestExecutor] = None,
        payload_builder: Optional[PayloadBuilder] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.config = config
        self.cache_store = cache_store
        self.executor = executor or RequestExecutor(config)
        self.payload_builder = payload_builder or PayloadBuilder(config, cache_store=cache_store)
        self.metrics = metrics
        self.logger = get_logger("licensing.coordinator")

        # TTLs
        self.cache_ttl = config.cache_ttl_seconds
        self.failure_cache_ttl = config.failure_cache_ttl_seconds

    def cache_key(self) -> str:
        return cache_key_for(self.config.product_version)

    def check(self, context: Optional[RequestContext] = None) -> CachedVerdict:
        """Return the cached verdict, verifying with HQ when none is cached."""
        self.expire_if_overdue()

        if self.cache_store.exists(self.cache_key()):
            cached = self.current_cached_verdict()
            if cached is not None:
                self.logger.debug("License verdict served from cache", cache_key=self.cache_key())
                self._count_check("cache")
                return cached

        return self._verify(context)

    def force_refresh(self, context: Optional[RequestContext] = None) -> CachedVerdict:
        """Drop any cached verdict and verify with HQ."""
        self.clear()
        return self._verify(context)

    def clear(self):
        """Delete the cached verdict for the running version."""
        self.cache_store.delete(self.cache_key())

    def current_cached_verdict(self) -> Optional[CachedVerdict]:
        """Raw read of the cached verdict; never deletes or refreshes."""
        data = self.cache_store.read(self.cache_key())
        if data is None:
            return None

        try:
            return CachedVerdict.model_validate(data)
        except ValidationError as e:
            self.logger.warning("Unreadable cached verdict", cache_key=self.cache_key(), error=str(e))
            return None

    def is_licensed(self, context: Optional[RequestContext] = None) -> bool:
        return self.check(context).valid

    def expire_if_overdue(self) -> bool:
        """Delete the cached verdict once ``fetched_at + expiry`` has passed.

        Some stores do not expire keys on their own; this makes expiry
        behave the same on every backend. Entries that no longer decode
        are dropped as well.
        """
        key = self.cache_key()
        data = self.cache_store.read(key)
        if data is None:
            return False

        try:
            if not CachedVerdict.model_validate(data).is_overdue():
                return False
        except ValidationError:
            pass

        self.logger.info("Expiring cached license verdict", cache_key=key)
        self.cache_store.delete(key)
        return True

    def _verify(self, context: Optional[RequestContext]) -> CachedVerdict:
        payload = self.payload_builder.build(context)
        token = set_license_context(payload.license)
        try:
            return self._verify_payload(payload)
        finally:
            reset_license_context(token)

    def _verify_payload(self, payload: VerificationPayload) -> CachedVerdict:
        start_time = time.time()
        outcome = self.executor.execute(payload, self.config.request_timeout)
        self._observe_request(time.time() - start_time)
        self._count_check("remote")

        response, ttl = self._result_for(outcome)

        verdict = CachedVerdict.model_validate({
            **response,
            "expiry": ttl,
            "fetched_at": datetime.now(timezone.utc),
            "payload": payload.model_dump(mode="json"),
        })

        self.cache_store.write(self.cache_key(), verdict.to_cache(), ttl)
        self.logger.info(
            "Cached license verdict",
            cache_key=self.cache_key(),
            valid=verdict.valid,
            error_category=verdict.error_category,
            ttl=ttl
        )
        return verdict

    def _result_for(self, outcome: RequestOutcome) -> Tuple[Dict[str, Any], int]:
        if isinstance(outcome, Success):
            normalized = normalize_response(outcome.body)
            return {str(k): v for k, v in normalized.items()}, self.cache_ttl

        if self.metrics:
            self.metrics.increment_counter(
                "license_verification_failures_total",
                category=outcome.category.value
            )

        return self._failure_response(outcome), self.failure_cache_ttl

    def _failure_response(self, failure: ClassifiedFailure) -> Dict[str, Any]:
        # HQ being unreachable must not lock anyone out
        return {
            "id": self.config.license,
            "valid": True,
            "error": failure.label,
            "error_category": failure.category.value,
            "exception_message": failure.message,
        }

    def _count_check(self, source: str):
        if self.metrics:
            self.metrics.increment_counter("license_checks_total", source=source)

    def _observe_request(self, duration: float):
        if self.metrics:
            metric = self.metrics.get_metric("license_request_duration_seconds")
            if metric is not None:
                metric.observe(duration)
