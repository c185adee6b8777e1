"""HTTP transport for the Mage AI REST API.

One blocking round-trip per call, no retries. The handle is created once from
Settings and shared read-only by every reconciler.
"""

from typing import Optional
from urllib.parse import urlsplit
from urllib.parse import urlunsplit

import requests
from loguru import logger

from mageai_sync.errors import TransportError

API_PREFIX = "api"
API_KEY_HEADER = "X-API-KEY"
DEFAULT_TIMEOUT = 10.0


def build_api_url(host: str) -> str:
    """Normalize ``host`` to the API base URL, always ending in ``/api/``."""
    parts = urlsplit(host.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid Mage AI host URL: {host!r}")
    base_path = parts.path.rstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, f"{base_path}/{API_PREFIX}/", "", ""))


class Transport:
    """
    Send requests to a Mage AI server.

    Parameters
    ----------
    host : str
        Mage AI server URL; ``/api/`` is appended
    api_key : str
        Value of the ``X-API-KEY`` header
    timeout : float
        Fixed timeout (seconds) applied to every request
    session : requests.Session, optional
        Session to reuse; a new one is created when omitted
    """

    def __init__(
        self,
        host: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.api_url = build_api_url(host)
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
                API_KEY_HEADER: api_key,
            }
        )

    @classmethod
    def from_settings(cls, settings) -> "Transport":
        return cls(
            host=settings.host,
            api_key=settings.api_key.get_secret_value(),
            timeout=settings.timeout,
        )

    def call(self, method: str, path: str, body: Optional[bytes] = None) -> bytes:
        """
        Perform one HTTP round-trip and return the raw response body.

        Raises
        ------
        TransportError
            On network failure, timeout, or any status other than 200
        """
        url = self.api_url + path
        logger.debug("Mage AI request", method=method, path=path, has_body=body is not None)

        try:
            response = self._session.request(method, url, data=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f"request timed out after {self.timeout}s: {e}") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"network error: {e}") from e

        if response.status_code != 200:
            logger.warning(
                "Mage AI request failed",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise TransportError(
                f"unexpected status code: {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug("Mage AI response", method=method, path=path, status_code=response.status_code)
        return response.content

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
