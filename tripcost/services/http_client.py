from __future__ import annotations

"""Lightweight HTTP client util with retry.

Uses stdlib urllib; the only network-bound step in the service is the rate
quote lookup. Focus: GET JSON with a timeout and limited retries with
exponential backoff.
"""
import http.client
import json
import logging
import time
import urllib.request
from typing import Any, Dict, Mapping, Optional

from tripcost.core.errors import TransientNetworkFailure

logger = logging.getLogger("tripcost.http")


class HttpError(TransientNetworkFailure):
    pass


def get_json(
    url: str,
    *,
    timeout: float = 10.0,
    retries: int = 2,
    backoff: float = 0.5,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    request = urllib.request.Request(url, headers=dict(headers or {}))
    for attempt in range(retries + 1):
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:  # nosec B310
                if resp.status >= 400:
                    raise HttpError(f"HTTP {resp.status} for {url}")
                data = resp.read()
                return json.loads(data.decode("utf-8"))
        except (
            OSError,  # URLError, timeouts, connection resets
            http.client.HTTPException,  # RemoteDisconnected, IncompleteRead
            HttpError,
            ValueError,
        ) as e:  # ValueError for JSON decode
            last_err = e
            if attempt == retries:
                break
            logger.debug("retrying %s after error: %s", url, e)
            time.sleep(backoff * (2**attempt))
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")
