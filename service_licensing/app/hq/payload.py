"""
Builds the request body sent to HQ.
"""

import json
import platform
from typing import Dict, Any, Callable, Optional

from shared.config import BaseConfig
from shared.errors import ConfigurationError
from shared.logging import get_logger

from .metadata import collect_metadata
from .models import RequestContext, VerificationPayload

METADATA_ERROR = "Failed to generate the diagnostics metadata"


class PayloadBuilder:
    """Assembles a fresh VerificationPayload for every HQ request."""

    def __init__(
        self,
        config: BaseConfig,
        cache_store: Optional[Any] = None,
        metadata_collector: Optional[Callable[[], Dict[str, Any]]] = None,
        app_name_resolver: Optional[Callable[[], Optional[str]]] = None
    ):
        self.config = config
        self.logger = get_logger("licensing.payload")
        self.metadata_collector = metadata_collector or (lambda: collect_metadata(config, cache_store))
        self.app_name_resolver = app_name_resolver or (lambda: config.app_name or getattr(config, "service_name", None))

    def build(self, context: Optional[RequestContext] = None) -> VerificationPayload:
        """Build the payload; ``context`` is None outside an inbound request."""
        if not self.config.product_version:
            raise ConfigurationError(
                "Product version is not configured",
                details={"setting": "product_version"}
            )

        context = context or RequestContext()

        return VerificationPayload(
            license=self.config.license,
            license_key=self.config.license_key,
            product_version=self.config.product_version,
            python_version=platform.python_version(),
            environment=self.config.env,
            ip=context.ip,
            host=context.host,
            port=context.port,
            app_name=self._app_name(),
            metadata=self._metadata()
        )

    def _metadata(self) -> Dict[str, Any]:
        # A failing diagnostic must never block licensing
        try:
            return self._json_safe(self.metadata_collector())
        except Exception as e:
            self.logger.warning("Metadata collection failed", error=str(e))
            return {
                "error": METADATA_ERROR,
                "error_message": str(e)
            }

    @staticmethod
    def _json_safe(metadata: Dict[Any, Any]) -> Dict[str, Any]:
        """Stringify keys and anything JSON cannot encode."""
        encoded = json.dumps({str(k): v for k, v in dict(metadata).items()}, default=str)
        return json.loads(encoded)

    def _app_name(self) -> Optional[str]:
        try:
            name = self.app_name_resolver()
        except Exception as e:
            self.logger.debug("Could not resolve application name", error=str(e))
            return None
        return str(name) if name is not None else None
