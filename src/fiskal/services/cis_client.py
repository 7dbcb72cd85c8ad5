from __future__ import annotations

import logging
import threading
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from fiskal.config import CIS_TIMEOUT
from fiskal.services.http_retry import CIS_SUBMIT, retry_call
from fiskal.utils.certificate import Credential

logger = logging.getLogger(__name__)

_sessions: dict[tuple[str, int, str | None], requests.Session] = {}
_sessions_lock = threading.Lock()


def _pool_key(url: str, credential: Credential | None) -> tuple[str, int, str | None]:
    parts = urlsplit(url)
    port = parts.port or (443 if parts.scheme == "https" else 80)
    return parts.hostname or "", port, credential.fingerprint if credential is not None else None


def get_session(url: str, credential: Credential | None = None) -> requests.Session:
    """Return the pooled session for (host, port, credential fingerprint), creating it once."""
    key = _pool_key(url, credential)
    with _sessions_lock:
        session = _sessions.get(key)
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=1, pool_maxsize=4)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            session.headers["Content-Type"] = "text/xml; charset=utf-8"
            _sessions[key] = session
        return session


def close_sessions() -> None:
    with _sessions_lock:
        for session in _sessions.values():
            session.close()
        _sessions.clear()


def send(
    payload: bytes,
    url: str,
    *,
    credential: Credential | None = None,
    timeout: float = CIS_TIMEOUT,
    verify: bool | str = True,
) -> bytes:
    """POST a finished SOAP document to CIS and return the raw response body.

    Retried once on a connection error. SOAP faults arrive as HTTP 500 with
    an XML body, so a non-2xx status only raises when the body is empty.
    """
    session = get_session(url, credential)

    def _do_post() -> requests.Response:
        return session.post(url, data=payload, timeout=timeout, verify=verify)

    resp = retry_call(_do_post, CIS_SUBMIT)
    logger.info("CIS responded %s (%d bytes)", resp.status_code, len(resp.content))
    if not resp.ok and not resp.content:
        resp.raise_for_status()
    return resp.content
