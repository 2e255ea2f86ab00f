"""Minimal JSON-over-HTTP helper for REST engines."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


def post_json(
    url: str,
    payload: Dict[str, Any],
    timeout: float = DEFAULT_TIMEOUT,
    headers: Optional[Dict[str, str]] = None,
) -> Any:
    """POST ``payload`` as JSON and decode the JSON response.

    Transport errors (:class:`urllib.error.URLError`, :class:`urllib.error.HTTPError`,
    timeouts) and undecodable bodies (:class:`json.JSONDecodeError`) propagate
    to the caller.
    """
    body = json.dumps(payload).encode("utf-8")
    request = Request(
        url,
        data=body,
        headers={"Content-Type": "application/json", **(headers or {})},
        method="POST",
    )
    logger.debug("POST %s (%d bytes)", url.split("?", 1)[0], len(body))
    with urlopen(request, timeout=timeout) as resp:
        return json.load(resp)


__all__ = ["post_json", "DEFAULT_TIMEOUT"]
