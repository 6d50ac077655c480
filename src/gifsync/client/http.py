"""Low-level HTTP client wrapper used for document fetches and webhooks."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Any

import requests

from gifsync.client.errors import RequestError, ResponseError

logger = logging.getLogger(__name__)

try:
    _VERSION: str = importlib.metadata.version("gifsync")
except importlib.metadata.PackageNotFoundError:
    _VERSION = "0.0.0"

_USER_AGENT: str = f"gifsync/{_VERSION}"


class GifSyncHTTP:
    """Thin wrapper around :class:`requests.Session`.

    Sets a default ``User-Agent`` header, applies timeout and TLS
    verification, and maps transport/HTTP errors to :mod:`.errors` types.

    Args:
        timeout_s: Request timeout in seconds (default 30).
        verify_tls: Whether to verify TLS certificates (default True).
    """

    def __init__(self, timeout_s: float = 30.0, verify_tls: bool = True) -> None:
        self.timeout_s: float = timeout_s
        self.verify_tls: bool = verify_tls
        self._session: requests.Session = requests.Session()
        self._session.headers.update({"User-Agent": _USER_AGENT})

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, url: str) -> requests.Response:
        """Send an HTTP GET to *url* and return the response.

        Raises:
            RequestError: On any transport-level failure.
            ResponseError: On a non-2xx HTTP status code.
        """
        try:
            resp = self._session.get(url, timeout=self.timeout_s, verify=self.verify_tls)
        except requests.exceptions.RequestException as exc:
            raise RequestError(url, exc) from exc
        self._raise_for_status(resp)
        return resp

    def post_json(self, url: str, payload: dict[str, Any]) -> requests.Response:
        """Send *payload* as a JSON body to *url*.

        Raises:
            RequestError: On any transport-level failure.
            ResponseError: On a non-2xx HTTP status code.
        """
        try:
            resp = self._session.post(
                url,
                json=payload,
                timeout=self.timeout_s,
                verify=self.verify_tls,
            )
        except requests.exceptions.RequestException as exc:
            raise RequestError(url, exc) from exc
        self._raise_for_status(resp)
        return resp

    def close(self) -> None:
        """Close the underlying :class:`requests.Session`."""
        self._session.close()

    def __enter__(self) -> GifSyncHTTP:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        if not resp.ok:
            raise ResponseError(resp.status_code, resp.url)
