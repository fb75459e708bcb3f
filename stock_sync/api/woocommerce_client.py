"""WooCommerce REST API client (catalog read and stock write)."""

import time
from typing import List, Dict, Any, Optional
import httpx

from .base_client import BaseClient
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import (
    WooCommerceAPIError,
    AuthenticationError,
    RateLimitError,
    UpdateFailure,
)


class WooCommerceClient(BaseClient):
    """Client for the WooCommerce REST API (``/wp-json/wc/v3``)."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize WooCommerce client from environment configuration."""
        config = config or get_config()
        store_url = config.env.woocommerce_url.rstrip("/")
        consumer_key = config.env.woocommerce_consumer_key
        consumer_secret = config.env.woocommerce_consumer_secret

        if not store_url.startswith("https://") and not store_url.startswith("http://"):
            store_url = f"https://{store_url}"

        # Some hosts strip the Authorization header, so the credentials can
        # also travel in the query string.
        auth = None
        params = None
        if config.woocommerce.query_string_auth:
            params = {
                "consumer_key": consumer_key,
                "consumer_secret": consumer_secret,
            }
        else:
            auth = httpx.BasicAuth(consumer_key, consumer_secret)

        super().__init__(
            base_url=f"{store_url}/wp-json/{config.woocommerce.api_version}",
            auth=auth,
            params=params,
            verify=config.woocommerce.verify_ssl,
            config=config,
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Rate-limit handling
    # ------------------------------------------------------------------

    def _handle_rate_limit(self, response: httpx.Response):
        """Back off and raise when the store answers HTTP 429."""
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", 2))
            self.logger.warning(f"Rate limited by WooCommerce. Waiting {retry_after}s...")
            time.sleep(retry_after)
            raise RateLimitError(
                f"Rate limited. Retry after {retry_after}s.",
                details={"retry_after": retry_after}
            )

    # ------------------------------------------------------------------
    # Low-level request helper
    # ------------------------------------------------------------------

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Issue a request and return the decoded JSON body.

        Raises:
            AuthenticationError: On HTTP 401/403.
            RateLimitError: On HTTP 429.
            WooCommerceAPIError: On network failure, any other non-2xx
                status or a body that is not JSON.
        """
        try:
            response = self._make_request_with_retry(method, endpoint, **kwargs)
        except httpx.HTTPError as e:
            raise WooCommerceAPIError(
                f"HTTP error on {method} {endpoint}: {str(e)}",
                details={"endpoint": endpoint, "error": str(e)}
            )

        self._handle_rate_limit(response)

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"WooCommerce rejected credentials (HTTP {response.status_code})",
                details={"endpoint": endpoint, "response": response.text}
            )

        if not response.is_success:
            raise WooCommerceAPIError(
                f"{method} {endpoint} failed (HTTP {response.status_code})",
                details={
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "response": response.text,
                }
            )

        try:
            return response.json()
        except ValueError as e:
            raise WooCommerceAPIError(
                f"Invalid JSON from {method} {endpoint}: {str(e)}",
                details={"endpoint": endpoint, "response": response.text[:500]}
            )

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_products(self, page: int, per_page: int, **filters: Any) -> List[Dict[str, Any]]:
        """
        Fetch one page of products.

        Args:
            page: 1-based page number.
            per_page: Page size (WooCommerce caps this at 100).
            **filters: Extra query filters, e.g. ``status="publish"``.

        Returns:
            The list of product records on that page.
        """
        params: Dict[str, Any] = {"page": page, "per_page": per_page}
        for key, value in filters.items():
            # WooCommerce expects lowercase booleans in the query string
            params[key] = str(value).lower() if isinstance(value, bool) else value

        data = self._request("GET", "/products", params=params)
        if not isinstance(data, list):
            raise WooCommerceAPIError(
                "Unexpected products payload (expected a list)",
                details={"page": page, "type": type(data).__name__}
            )
        return data

    def get_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        """Return the first product whose SKU matches exactly, or None."""
        data = self._request("GET", "/products", params={"sku": sku, "per_page": 1})
        if not isinstance(data, list) or not data:
            return None

        product = data[0]
        if product.get("sku") != sku:
            self.logger.warning(f"Catalog lookup for {sku} returned SKU {product.get('sku')!r}")
            return None
        return product

    def update_stock(self, product_id: Any, quantity: int) -> Dict[str, Any]:
        """
        Set the stock quantity of a product.

        Args:
            product_id: WooCommerce product ID.
            quantity: Absolute quantity to set.

        Returns:
            The updated product record.

        Raises:
            UpdateFailure: If the store answers without a product record.
            WooCommerceAPIError: On transport or HTTP failure.
        """
        payload = {
            "stock_quantity": quantity,
            "manage_stock": True,
            "stock_status": "instock" if quantity > 0 else "outofstock",
        }

        data = self._request("PUT", f"/products/{product_id}", json=payload)

        if not isinstance(data, dict) or not data.get("id"):
            raise UpdateFailure(
                f"No product returned when updating product {product_id}",
                details={"product_id": product_id, "response": data}
            )

        self.logger.info(f"Updated WooCommerce stock for product {product_id}: {quantity}")
        return data

    def test_connection(self) -> bool:
        """Fetch a single product to prove URL and credentials work."""
        self.list_products(page=1, per_page=1)
        return True
