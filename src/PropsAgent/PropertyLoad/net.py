# === NAVMAP v1 ===
# {
#   "module": "PropsAgent.PropertyLoad.net",
#   "purpose": "Shared HTTPX client for remote property sources",
#   "sections": [
#     {
#       "id": "configure-http-client",
#       "name": "configure_http_client",
#       "anchor": "function-configure-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "reset-http-client",
#       "name": "reset_http_client",
#       "anchor": "function-reset-http-client",
#       "kind": "function"
#     },
#     {
#       "id": "get-http-client",
#       "name": "get_http_client",
#       "anchor": "function-get-http-client",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used by the ``http:``/``https:`` fetch strategy."""

from __future__ import annotations

import contextlib
import logging
import ssl
import threading
import time
from typing import MutableMapping, Optional, Union

import certifi
import httpx

from .settings import HttpConfiguration

LOGGER = logging.getLogger("PropsAgent.PropertyLoad.net")

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None
_DEFAULT_CONFIG = HttpConfiguration()

__all__ = ["configure_http_client", "reset_http_client", "get_http_client"]


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _request_hook(request: httpx.Request) -> None:
    for header, value in _DEFAULT_CONFIG.polite_http_headers().items():
        request.headers[header] = value
    meta: MutableMapping[str, object] = request.extensions.setdefault("props_meta", {})  # type: ignore[assignment]
    meta["start_time"] = time.perf_counter()


def _response_hook(response: httpx.Response) -> None:
    meta: MutableMapping[str, object] = response.request.extensions.setdefault(  # type: ignore[assignment]
        "props_meta", {}
    )
    start = meta.get("start_time")
    if isinstance(start, (int, float)):
        meta["elapsed_sec"] = time.perf_counter() - start
    LOGGER.debug(
        "property-http-response",
        extra={
            "stage": "fetch",
            "url": str(response.request.url),
            "status": response.status_code,
            "elapsed_sec": meta.get("elapsed_sec"),
        },
    )


def _timeout_for(config: HttpConfiguration) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout_sec,
        read=config.timeout_sec,
        write=config.timeout_sec,
        pool=config.pool_timeout_sec,
    )


def _build_http_client(config: HttpConfiguration) -> httpx.Client:
    verify: Union[ssl.SSLContext, bool] = _build_ssl_context() if config.verify_tls else False
    return httpx.Client(
        http2=config.http2_enabled,
        timeout=_timeout_for(config),
        verify=verify,
        trust_env=True,
        follow_redirects=config.follow_redirects,
        headers=config.polite_http_headers(),
        event_hooks={"request": [_request_hook], "response": [_response_hook]},
    )


def _close_client_unlocked() -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is not None:
        with contextlib.suppress(Exception):
            _HTTP_CLIENT.close()
    _HTTP_CLIENT = None


def configure_http_client(
    client: Optional[httpx.Client] = None,
    *,
    default_config: Optional[HttpConfiguration] = None,
) -> None:
    """Override the shared HTTPX client (or only its default configuration)."""

    with _CLIENT_LOCK:
        global _HTTP_CLIENT, _DEFAULT_CONFIG

        if default_config is not None:
            _DEFAULT_CONFIG = default_config

        if client is None:
            _close_client_unlocked()
        else:
            if _HTTP_CLIENT is not client:
                _close_client_unlocked()
            _HTTP_CLIENT = client


def reset_http_client() -> None:
    """Drop the shared client and restore the default configuration (test helper)."""

    with _CLIENT_LOCK:
        global _DEFAULT_CONFIG
        _DEFAULT_CONFIG = HttpConfiguration()
        _close_client_unlocked()


def get_http_client(config: Optional[HttpConfiguration] = None) -> httpx.Client:
    """Return the shared HTTPX client, creating it from ``config`` if necessary."""

    with _CLIENT_LOCK:
        global _HTTP_CLIENT, _DEFAULT_CONFIG
        if _HTTP_CLIENT is not None:
            return _HTTP_CLIENT
        if config is not None:
            _DEFAULT_CONFIG = config
        _HTTP_CLIENT = _build_http_client(_DEFAULT_CONFIG)
        LOGGER.debug(
            "built shared http client",
            extra={"stage": "fetch", "http2": _DEFAULT_CONFIG.http2_enabled},
        )
        return _HTTP_CLIENT
