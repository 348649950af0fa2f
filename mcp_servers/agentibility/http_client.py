from __future__ import annotations

import json
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen


class HttpClientError(Exception):
    pass


def fetch_json(url: str, timeout: float = 0.8) -> Any:
    """GET a DevTools HTTP endpoint (`/json/version`, `/json/list`) and decode it."""
    req = Request(url, headers={"User-Agent": "agentibility"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            payload = resp.read()
    except (TimeoutError, URLError, OSError) as exc:
        raise HttpClientError(str(exc)) from exc
    try:
        return json.loads(payload.decode())
    except ValueError as exc:
        raise HttpClientError(f"Invalid JSON from {url}: {exc}") from exc
