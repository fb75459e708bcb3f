"""Local point-of-sale backend client."""

from typing import Any, Optional
import httpx

from .base_client import BaseClient
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import LocalAPIError


class LocalApiClient(BaseClient):
    """Client for the stock search endpoint of the local backend.

    The backend sits on the shop's network and needs no credentials. The
    client makes a single attempt per query; ``LocalStockResolver`` owns the
    retry policy for lookups.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        config = config or get_config()
        base_url = config.env.local_api_base_url

        if not base_url.startswith("https://") and not base_url.startswith("http://"):
            base_url = f"http://{base_url}"

        super().__init__(
            base_url=base_url,
            max_retries=1,
            config=config,
            transport=transport,
        )
        self.search_endpoint = config.local_api.search_endpoint
        self.search_param = config.local_api.search_param
        self.health_endpoint = config.local_api.health_endpoint

    def query(self, key: str) -> Optional[Any]:
        """
        Query stock for a SKU/barcode and return the decoded JSON body.

        Returns:
            The raw payload (object or list), or None when the backend
            answers 404 or with an empty or non-JSON body.

        Raises:
            LocalAPIError: On network failure, timeout or a non-2xx status
                other than 404.
        """
        try:
            response = self.get(self.search_endpoint, params={self.search_param: key})
        except httpx.HTTPError as e:
            raise LocalAPIError(
                f"No response from local API for {key}: {str(e)}",
                details={"key": key, "error": str(e)}
            )

        if response.status_code == 404:
            self.logger.debug(f"Local API has no record for {key}")
            return None

        if not response.is_success:
            raise LocalAPIError(
                f"Local API error for {key}: HTTP {response.status_code}",
                details={"key": key, "status_code": response.status_code, "response": response.text}
            )

        if not response.content.strip():
            return None

        try:
            data = response.json()
        except ValueError:
            self.logger.warning(f"Local API returned non-JSON body for {key}")
            return None

        self.logger.debug(f"Local API response for {key}: {data}")
        return data

    def test_connection(self) -> bool:
        """Check that the backend answers on its health endpoint."""
        try:
            response = self.get(self.health_endpoint)
        except httpx.HTTPError as e:
            raise LocalAPIError(
                f"Local API unreachable: {str(e)}",
                details={"error": str(e)}
            )

        if response.status_code != 200:
            raise LocalAPIError(
                f"Local API connection test returned HTTP {response.status_code}",
                details={"status_code": response.status_code}
            )
        return True
