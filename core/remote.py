"""
remote.py -- Remote character conversion backend.

Some deployments run the substitution step on a hosted text-generation flow
instead of the local table. The flow takes {"inputString": ...} and answers
{"convertedString": ...}. Unlike the local table this can fail, and failures
must reach the caller as TransformUnavailable rather than a silent fallback.
"""

import logging
from typing import Any

import requests

from core.errors import TransformUnavailable

logger = logging.getLogger("passwordforge.remote")

# Module-level session shared across calls for connection pooling.
# max_redirects=3 replaces the requests default of 30.
_session = requests.Session()
_session.max_redirects = 3


def fetch_conversion(text: str, url: str, timeout: float = 10.0) -> str:
    """POST text to the conversion flow and return the converted string.

    Raises TransformUnavailable on any transport error, non-2xx status,
    undecodable body, or a reply without a string convertedString field.
    """
    try:
        resp = _session.post(url, json={"inputString": text}, timeout=timeout)
        resp.raise_for_status()
        payload: Any = resp.json()
    except requests.RequestException as e:
        logger.warning("Remote conversion failed: %s", e)
        raise TransformUnavailable() from e
    except ValueError as e:
        logger.warning("Remote conversion returned invalid JSON: %s", e)
        raise TransformUnavailable() from e

    converted = payload.get("convertedString") if isinstance(payload, dict) else None
    if not isinstance(converted, str):
        logger.warning("Remote conversion reply missing convertedString")
        raise TransformUnavailable()
    return converted
