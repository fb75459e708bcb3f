"""Paginated read of the stock-tracked WooCommerce catalog."""

from typing import List, Optional

from ..api.woocommerce_client import WooCommerceClient
from ..models.product import CatalogItem
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import WooCommerceAPIError
from ..utils.logger import get_sync_logger


class CatalogReader:
    """Fetch every published, stock-managed product that carries a SKU."""

    def __init__(
        self,
        client: Optional[WooCommerceClient] = None,
        config: Optional[AppConfig] = None,
    ):
        self.config = config or get_config()
        self.client = client or WooCommerceClient(config=self.config)
        self.page_size = self.config.woocommerce.page_size
        self.logger = get_sync_logger()

    def fetch_tracked_items(self) -> List[CatalogItem]:
        """
        Page through the catalog until a short or empty page.

        Any failed page request or malformed record propagates as a
        ``TransportError``; a partial catalog is never returned.
        """
        self.logger.info("Fetching tracked products from WooCommerce (paginated)...")

        items: List[CatalogItem] = []
        page = 1

        while True:
            records = self.client.list_products(
                page=page,
                per_page=self.page_size,
                status="publish",
                manage_stock=True,
            )

            if not records:
                break

            kept = 0
            for record in records:
                sku = record.get("sku") or ""
                if not sku.strip():
                    continue
                if record.get("manage_stock") is False:
                    continue
                try:
                    items.append(CatalogItem.from_api(record))
                except (KeyError, TypeError, ValueError) as e:
                    raise WooCommerceAPIError(
                        f"Malformed product record on page {page}: {str(e)}",
                        details={"product_id": record.get("id"), "sku": sku},
                    )
                kept += 1

            self.logger.info(
                f"Fetched page {page}: {len(records)} products ({kept} tracked with SKU)"
            )

            if len(records) < self.page_size:
                break
            page += 1

        self.logger.info(f"Total tracked products with SKU: {len(items)}")
        return items
