from __future__ import annotations

import json
from typing import Any, Dict, Optional
from urllib import error, request


def post_json(
    url: str,
    payload: Dict[str, Any],
    *,
    label: str,
    timeout: float,
    api_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    POST a JSON body and decode a JSON object reply.

    Transport and decode failures surface as RuntimeError tagged with
    `label`; the triage gateway turns them into a failed evaluation.
    """
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    req = request.Request(url, data=json.dumps(payload).encode("utf-8"), headers=headers, method="POST")

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8")
    except error.HTTPError as e:
        detail = e.read().decode("utf-8", errors="ignore")
        raise RuntimeError(f"{label} HTTP {e.code}: {detail}") from e
    except error.URLError as e:
        raise RuntimeError(f"{label} connection error: {e}") from e

    try:
        decoded = json.loads(body)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"{label} response parse error: {e}") from e
    if not isinstance(decoded, dict):
        raise RuntimeError(f"{label} response is not a JSON object")
    return decoded


def as_text(content: Any) -> str:
    if content is None:
        return ""
    return content if isinstance(content, str) else str(content)
