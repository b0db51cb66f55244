"""
HTTP transport shared by the API clients.

Wraps a requests.Session and maps every failure onto the
MarketDataError taxonomy so the governor can decide on fallbacks.
"""

from collections.abc import Mapping
from typing import Any

import requests

from config import REQUEST_TIMEOUT_SECONDS, USER_AGENT
from data.errors import TransportError, UpstreamError
from utils.logging import get_logger

# Module logger
logger = get_logger(__name__)


class HttpTransport:
    """
    Single-request JSON transport.

    Usage:
        transport = HttpTransport(timeout=10.0)
        data = transport.get_json("https://api.coingecko.com/api/v3/ping")
    """

    def __init__(
        self,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        user_agent: str = USER_AGENT,
        headers: Mapping[str, str] | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header value
            headers: Extra default headers sent with every request
            session: Existing session to use (default: new session)
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": user_agent,
        })
        if headers:
            self.session.headers.update(headers)

    def get_json(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """
        Make a GET request and parse the JSON body.

        Args:
            url: Full request URL
            params: Query parameters
            headers: Extra headers for this request only

        Returns:
            Parsed JSON response

        Raises:
            TransportError: On timeout or connection failure
            UpstreamError: On a non-2xx status or a body that is not JSON
        """
        logger.debug("GET %s params=%s", url, dict(params) if params else None)

        try:
            response = self.session.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransportError(
                f"Request timed out after {self.timeout}s: {url}",
                url=url,
                timed_out=True,
            ) from e
        except requests.RequestException as e:
            raise TransportError(f"Request failed: {e}", url=url) from e

        if not 200 <= response.status_code < 300:
            if response.status_code == 429:
                message = f"Upstream rate limit exceeded: {url}"
            else:
                message = f"API error {response.status_code}: {response.text[:200]}"
            raise UpstreamError(message, status_code=response.status_code, url=url)

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Malformed JSON payload from {url}",
                status_code=response.status_code,
                url=url,
            ) from e

    def close(self) -> None:
        self.session.close()
