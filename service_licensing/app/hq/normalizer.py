"""
Coerces whatever HQ returned into a mapping that can be merged into a verdict.
"""

import json
from collections.abc import Mapping
from typing import Any, Dict

from shared.logging import get_logger

RESCUED_RESPONSE: Dict[str, Any] = {"normalized_response": "rescued"}

logger = get_logger("licensing.normalizer")


def normalize_response(body: Any) -> Dict[str, Any]:
    """Return ``body`` as a dict, wrapping non-mapping shapes. Never raises."""
    try:
        if isinstance(body, Mapping):
            return dict(body)

        if isinstance(body, str):
            return {"normalized_response": body}

        return {"normalized_response": json.dumps(body)}
    except Exception as e:
        logger.warning("Could not normalize HQ response", error=str(e), body_type=type(body).__name__)
        return dict(RESCUED_RESPONSE)
