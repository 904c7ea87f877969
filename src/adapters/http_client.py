"""Blocking JSON-over-HTTPS helper shared by the webhook adapters.

Calls run in a worker thread (``asyncio.to_thread``) so one slow service never
stalls the fan-out to the others.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import Any, Mapping, Optional

from core.errors import AdapterSendFailed

DEFAULT_TIMEOUT = 10


def _post_json_blocking(
    channel: str,
    url: str,
    payload: Mapping[str, Any],
    headers: Optional[Mapping[str, str]],
    timeout: float,
) -> str:
    data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(url, data=data, method="POST")
    request.add_header("Content-Type", "application/json")
    for name, value in (headers or {}).items():
        request.add_header(name, value)
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            return response.read().decode("utf-8", errors="replace")
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        raise AdapterSendFailed(channel, f"HTTP {e.code}: {body}") from e
    except urllib.error.URLError as e:
        raise AdapterSendFailed(channel, f"request failed: {e.reason}") from e


async def post_json(
    channel: str,
    url: str,
    payload: Mapping[str, Any],
    headers: Optional[Mapping[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """POST ``payload`` as JSON and return the response body."""

    return await asyncio.to_thread(_post_json_blocking, channel, url, payload, headers, timeout)


def json_response(channel: str, body: str) -> dict[str, Any]:
    """Decode a webhook response body; an empty body decodes to ``{}``."""

    try:
        decoded = json.loads(body or "{}")
    except json.JSONDecodeError as e:
        raise AdapterSendFailed(channel, f"unexpected response: {body[:200]}") from e
    return decoded if isinstance(decoded, dict) else {}
