"""
Shared HTTP helper for the collaborator clients.
Every call is made exactly once: failures are wrapped into the caller's error type and
surfaced, retrying is left to whoever re-delivers the event.
"""

import os
import logging
from typing import Optional, Dict, Any, Type
import requests
from ingest.errors import TrackerError

logger = logging.getLogger(__name__)

# request timeout default from environment
DEFAULT_TIMEOUT = float(os.getenv("LIFECYCLE_HTTP_TIMEOUT", "30"))

# runtime-override
_runtime_timeout: Optional[float] = None


def configure_timeout(timeout: Optional[float] = None):
    """Configure the request timeout at runtime (e.g. from CLI)."""
    global _runtime_timeout
    if timeout is not None:
        _runtime_timeout = float(timeout)


def effective_timeout() -> float:
    return _runtime_timeout if _runtime_timeout is not None else DEFAULT_TIMEOUT


def _error_detail(resp) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()
    if isinstance(body, dict):
        messages = list(body.get("errorMessages") or [])
        errors = body.get("errors")
        if isinstance(errors, dict):
            messages.extend(f"{k}: {v}" for k, v in errors.items())
        if body.get("message"):
            messages.append(str(body["message"]))
        if messages:
            return "; ".join(messages)
    return str(body)


def send_request(
    method: str,
    url: str,
    headers: Dict[str, str],
    error_cls: Type[TrackerError] = TrackerError,
    allow_not_found: bool = False,
    **kwargs: Any,
) -> Optional[requests.Response]:
    """
    Issue a single HTTP request and return the response.

    Parameters:
        method: HTTP verb.
        url: absolute URL.
        headers: request headers (auth, accept).
        error_cls: TrackerError subclass raised on failure.
        allow_not_found: return None instead of raising on HTTP 404.

    Returns:
        the requests.Response for any 2xx status, or None for an allowed 404.
    """
    kwargs.setdefault("timeout", effective_timeout())
    try:
        resp = requests.request(method, url, headers=headers, **kwargs)
    except requests.Timeout as exc:
        raise error_cls(f"{method} {url} timed out") from exc
    except requests.RequestException as exc:
        raise error_cls(f"{method} {url} failed: {exc}") from exc

    if resp.status_code == 404 and allow_not_found:
        logger.debug("%s %s returned 404", method, url)
        return None
    if resp.status_code >= 400:
        raise error_cls(f"{method} {url} returned {resp.status_code}: {_error_detail(resp)}")
    return resp


__all__ = ["configure_timeout", "effective_timeout", "send_request"]
