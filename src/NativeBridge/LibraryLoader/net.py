# === NAVMAP v1 ===
# {
#   "module": "NativeBridge.LibraryLoader.net",
#   "purpose": "Provide the shared HTTPX client used for native library downloads",
#   "sections": [
#     {"id": "constants", "name": "Constants & globals", "anchor": "CONST", "kind": "constants"},
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used by the native library downloader."""

from __future__ import annotations

import contextlib
import logging
import ssl
import threading
import time
from typing import MutableMapping, Optional

import certifi
import httpx

from .settings import LoaderSettings

LOGGER = logging.getLogger("NativeBridge.LibraryLoader.net")

# --- Constants & globals -------------------------------------------------------

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _request_hook(request: httpx.Request) -> None:
    meta: MutableMapping[str, object] = request.extensions.setdefault("native_meta", {})  # type: ignore[assignment]
    meta["start_time"] = time.perf_counter()


def _response_hook(response: httpx.Response) -> None:
    response.raise_for_status()

    meta: MutableMapping[str, object] = response.request.extensions.setdefault(  # type: ignore[assignment]
        "native_meta", {}
    )
    start = meta.get("start_time")
    elapsed = time.perf_counter() - start if isinstance(start, (int, float)) else None
    LOGGER.debug(
        "native-http-response",
        extra={
            "url": str(response.request.url),
            "status": response.status_code,
            "elapsed_sec": elapsed,
        },
    )


def _build_http_client(settings: LoaderSettings) -> httpx.Client:
    return httpx.Client(
        transport=httpx.HTTPTransport(retries=0, verify=_build_ssl_context()),
        timeout=httpx.Timeout(settings.timeout_sec),
        headers={"User-Agent": settings.user_agent},
        trust_env=True,
        follow_redirects=True,
        event_hooks={"request": [_request_hook], "response": [_response_hook]},
    )


def _close_client_unlocked() -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is not None:
        with contextlib.suppress(Exception):
            _HTTP_CLIENT.close()
    _HTTP_CLIENT = None


# --- Public API ----------------------------------------------------------------


def configure_http_client(client: Optional[httpx.Client] = None) -> None:
    """Override the shared HTTPX client (``None`` closes and clears it)."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if client is None or _HTTP_CLIENT is not client:
            _close_client_unlocked()
        _HTTP_CLIENT = client


def reset_http_client() -> None:
    """Close the shared HTTPX client so the next call rebuilds it."""

    with _CLIENT_LOCK:
        _close_client_unlocked()


def get_http_client(settings: Optional[LoaderSettings] = None) -> httpx.Client:
    """Return the shared HTTPX client, creating it if necessary."""

    global _HTTP_CLIENT
    with _CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            _HTTP_CLIENT = _build_http_client(settings or LoaderSettings())
        return _HTTP_CLIENT
