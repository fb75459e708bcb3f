"""Tests for the paginated catalog reader."""

from unittest.mock import MagicMock

import pytest

from stock_sync.services.catalog_reader import CatalogReader
from stock_sync.utils.exceptions import WooCommerceAPIError


_AUTO = object()


def product(product_id, sku=_AUTO, quantity=1, manage_stock=True):
    if sku is _AUTO:
        sku = f"SKU-{product_id}"
    return {
        "id": product_id,
        "sku": sku,
        "name": f"Product {product_id}",
        "stock_quantity": quantity,
        "manage_stock": manage_stock,
    }


def full_page(start, size):
    return [product(i) for i in range(start, start + size)]


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def reader(client, app_config):
    app_config.yaml.woocommerce.page_size = 3
    return CatalogReader(client=client, config=app_config)


class TestCatalogReader:

    def test_full_pages_request_the_next_page(self, reader, client):
        client.list_products.side_effect = [full_page(1, 3), full_page(4, 3), full_page(7, 1)]

        items = reader.fetch_tracked_items()

        assert len(items) == 7
        assert [c.kwargs["page"] for c in client.list_products.call_args_list] == [1, 2, 3]

    def test_short_page_stops(self, reader, client):
        client.list_products.side_effect = [full_page(1, 2)]

        items = reader.fetch_tracked_items()

        assert len(items) == 2
        assert client.list_products.call_count == 1

    def test_empty_page_stops(self, reader, client):
        client.list_products.side_effect = [full_page(1, 3), []]

        items = reader.fetch_tracked_items()

        assert len(items) == 3
        assert client.list_products.call_count == 2

    def test_requests_published_tracked_products(self, reader, client):
        client.list_products.return_value = []

        reader.fetch_tracked_items()

        kwargs = client.list_products.call_args.kwargs
        assert kwargs["status"] == "publish"
        assert kwargs["manage_stock"] is True
        assert kwargs["per_page"] == 3

    def test_items_without_sku_are_dropped(self, reader, client):
        client.list_products.side_effect = [[
            product(1, sku="A1"),
            product(2, sku=""),
            product(3, sku="   "),
            product(4, sku=None),
        ]]

        items = reader.fetch_tracked_items()

        assert [item.sku for item in items] == ["A1"]

    def test_untracked_items_are_dropped(self, reader, client):
        client.list_products.side_effect = [[
            product(1, sku="A1"),
            product(2, sku="B2", manage_stock=False),
        ]]

        assert [item.sku for item in reader.fetch_tracked_items()] == ["A1"]

    def test_page_failure_aborts_whole_fetch(self, reader, client):
        client.list_products.side_effect = [
            full_page(1, 3),
            WooCommerceAPIError("GET /products failed (HTTP 502)"),
        ]

        with pytest.raises(WooCommerceAPIError):
            reader.fetch_tracked_items()

    def test_fractional_quantity_is_floored(self, reader, client):
        client.list_products.side_effect = [[product(1, quantity="2.5")]]

        assert reader.fetch_tracked_items()[0].stock_quantity == 2

    def test_malformed_record_fails_the_fetch(self, reader, client):
        client.list_products.side_effect = [[product(1), product(2, quantity="lots")]]

        with pytest.raises(WooCommerceAPIError, match="Malformed product record") as exc_info:
            reader.fetch_tracked_items()

        assert exc_info.value.details["product_id"] == 2
