"""Base HTTP client with retry logic and error handling."""

import httpx
from typing import Optional, Dict, Any
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from ..utils.config import AppConfig, get_config
from ..utils.logger import get_api_logger
from ..utils.retry import wait_linear


class BaseClient:
    """Base HTTP client with retry logic and logging."""

    def __init__(
        self,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
        params: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        verify: bool = True,
        config: Optional[AppConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize base client.

        Args:
            base_url: Base URL for API requests
            headers: Optional default headers
            auth: Optional httpx auth applied to every request
            params: Optional query parameters merged into every request
            max_retries: Transport attempts per request (defaults to config)
            verify: Verify TLS certificates
            config: Configuration (defaults to the cached app config)
            transport: Optional httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.config = config or get_config()
        self.logger = get_api_logger()
        self.max_retries = max_retries if max_retries is not None else self.config.api.max_retries

        default_headers = {
            "Content-Type": "application/json",
            "User-Agent": "IPOS-WooCommerce-Stock-Sync/1.0"
        }

        if headers:
            default_headers.update(headers)

        self.client = httpx.Client(
            base_url=self.base_url,
            headers=default_headers,
            auth=auth,
            params=params,
            timeout=self.config.api.timeout,
            follow_redirects=True,
            verify=verify,
            transport=transport,
        )

    def _wait_strategy(self):
        if self.config.api.exponential_backoff:
            return wait_exponential(multiplier=self.config.api.retry_delay)
        return wait_linear(self.config.api.retry_delay)

    def _make_request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request with retry logic.

        Only timeouts and network errors are retried; any HTTP status is
        returned to the caller to interpret.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            **kwargs: Additional request parameters

        Returns:
            HTTP response

        Raises:
            httpx.HTTPError: If all retry attempts fail
        """
        @retry(
            stop=stop_after_attempt(max(1, self.max_retries)),
            wait=self._wait_strategy(),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True
        )
        def _request():
            self.logger.debug(f"{method} {url}")
            response = self.client.request(method, url, **kwargs)
            self.logger.debug(f"Response: {response.status_code}")
            return response

        return _request()

    def get(self, endpoint: str, **kwargs) -> httpx.Response:
        """Make GET request."""
        return self._make_request_with_retry("GET", endpoint, **kwargs)

    def post(self, endpoint: str, **kwargs) -> httpx.Response:
        """Make POST request."""
        return self._make_request_with_retry("POST", endpoint, **kwargs)

    def put(self, endpoint: str, **kwargs) -> httpx.Response:
        """Make PUT request."""
        return self._make_request_with_retry("PUT", endpoint, **kwargs)

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
