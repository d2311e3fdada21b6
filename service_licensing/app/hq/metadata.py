"""
Diagnostics metadata attached to every HQ verification request.
"""

import os
import platform
import socket
from importlib import metadata as importlib_metadata
from typing import Dict, Any, Optional

from shared.config import BaseConfig

# Distributions whose versions are reported to HQ
REPORTED_DISTRIBUTIONS = ("fastapi", "httpx", "pydantic", "pydantic-settings", "redis", "structlog")


def _distribution_version(name: str) -> Optional[str]:
    try:
        return importlib_metadata.version(name)
    except importlib_metadata.PackageNotFoundError:
        return None


def collect_metadata(config: BaseConfig, cache_store: Any = None) -> Dict[str, Any]:
    """Collect host diagnostics. May raise; callers treat it as best-effort."""
    return {
        "python_implementation": platform.python_implementation(),
        "python_version": platform.python_version(),
        "platform": platform.platform(),
        "hostname": socket.gethostname(),
        "pid": os.getpid(),
        "environment": config.env,
        "cache_store": type(cache_store).__name__ if cache_store is not None else None,
        "offline": config.offline,
        "packages": {name: _distribution_version(name) for name in REPORTED_DISTRIBUTIONS},
    }
