"""
core.api.network_client

Network collaborator used by `apiCall` actions.

The engine only depends on the NetworkClient protocol; apps can plug in
their own transport (or a fake in tests). HttpNetworkClient is the
default implementation built on `requests`; the blocking call runs in a
worker thread so the event loop driving the UI stays responsive while a
request is in flight.

Used by:
  - core/actions/action_interpreter.py
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Mapping, Optional, Protocol

import requests
from pydantic import BaseModel, Field

from configs.settings import settings
from exceptions.exceptions import ApiError, NetworkError


class NetworkResponse(BaseModel):
    status_code: int
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Any] = None


class NetworkClient(Protocol):
    """
    Abstract transport for apiCall actions.

    Implementations return a NetworkResponse for 2xx/3xx answers and raise:

    - NetworkError when no usable answer was received (timeouts included)
    - ApiError when the server answered with an error status
    """

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Any] = None,
        *,
        params: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> NetworkResponse:
        ...


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _decode_body(response: requests.Response) -> Any:
    """Return the JSON body if there is one, the raw text otherwise."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def join_url(base_url: Optional[str], endpoint: str) -> str:
    """Join a relative endpoint onto the configured base URL.

    Absolute endpoints (http/https) are returned unchanged.
    """
    if endpoint.startswith(("http://", "https://")) or not base_url:
        return endpoint
    return base_url.rstrip("/") + "/" + endpoint.lstrip("/")


# -------------------------------------------------------------------
# Default implementation
# -------------------------------------------------------------------


class HttpNetworkClient:
    """`requests`-backed NetworkClient.

    Parameters
    ----------
    timeout:
        Default timeout in seconds (FLOWUI_HTTP_TIMEOUT when omitted).
    session:
        Optional requests.Session to reuse connections / inject adapters.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.session = session or requests.Session()

    def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]],
        body: Optional[Any],
        params: Optional[Mapping[str, str]],
        timeout: float,
    ) -> NetworkResponse:
        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers or {}),
                json=body,
                params=dict(params or {}),
                timeout=timeout,
            )
        except requests.Timeout as exc:
            raise NetworkError(f"request timed out after {timeout}s", url) from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc), url) from exc

        payload = _decode_body(response)
        if response.status_code >= 400:
            raise ApiError(response.status_code, url, payload)

        return NetworkResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=payload,
        )

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Optional[Any] = None,
        *,
        params: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> NetworkResponse:
        return await asyncio.to_thread(
            self._send,
            method,
            url,
            headers,
            body,
            params,
            timeout or self.timeout,
        )
