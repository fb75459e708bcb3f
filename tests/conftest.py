"""Pytest configuration and fixtures."""

import os

# Settings() requires these; set them before any package module is imported.
os.environ.setdefault("WOOCOMMERCE_URL", "https://shop.example.com")
os.environ.setdefault("WOOCOMMERCE_CONSUMER_KEY", "ck_test")
os.environ.setdefault("WOOCOMMERCE_CONSUMER_SECRET", "cs_test")
os.environ.setdefault("LOCAL_API_BASE_URL", "http://pos.local:8080")

import pytest
from unittest.mock import MagicMock

from stock_sync.models.product import CatalogItem, LocalStockRecord
from stock_sync.models.sync_result import CycleResult
from stock_sync.services.reconciler import StockReconciler
from stock_sync.utils.config import AppConfig


class FakeResolver:
    """In-memory stand-in for LocalStockResolver keyed by SKU."""

    def __init__(self, quantities=None):
        self.quantities = dict(quantities or {})
        self.calls = []

    def lookup(self, key):
        self.calls.append(key)
        value = self.quantities.get(key)
        if isinstance(value, LocalStockRecord):
            return value
        if value is None:
            return LocalStockRecord.not_found(key)
        return LocalStockRecord(key=key, quantity=value, found=True, matched_records=1)


@pytest.fixture
def app_config():
    """Config with every delay zeroed so tests never wait."""
    config = AppConfig()
    config.yaml.api.retry_delay = 0
    config.yaml.sync.retry_delay = 0
    config.yaml.sync.batch_delay = 0
    config.yaml.sync.lookup_delay = 0
    config.yaml.woocommerce.write_delay = 0
    return config


@pytest.fixture
def sample_catalog_items():
    """Create multiple sample CatalogItems for testing."""
    return [
        CatalogItem(id=1, sku="A1", stock_quantity=10, name="Kopi Bubuk 200g"),
        CatalogItem(id=2, sku="B2", stock_quantity=0, name="Teh Celup"),
        CatalogItem(id=3, sku="C3", stock_quantity=5, name="Gula Aren"),
    ]


@pytest.fixture
def sample_cycle_result():
    """Create a sample CycleResult for testing."""
    result = CycleResult(total_items=10)
    result.items_checked = 10
    result.updates_applied = 3
    result.updates_failed = 1
    result.in_sync_count = 6
    result.finalize()
    return result


@pytest.fixture
def mock_woocommerce_client():
    """Create a mock WooCommerce client."""
    client = MagicMock()
    client.list_products.return_value = []
    client.get_product_by_sku.return_value = None
    client.update_stock.return_value = {"id": 1}
    client.test_connection.return_value = True
    return client


@pytest.fixture
def mock_local_client():
    """Create a mock local API client."""
    client = MagicMock()
    client.query.return_value = None
    client.test_connection.return_value = True
    return client


@pytest.fixture
def mock_catalog_reader():
    reader = MagicMock()
    reader.fetch_tracked_items.return_value = []
    return reader


@pytest.fixture
def fake_resolver():
    return FakeResolver()


@pytest.fixture
def sleeps():
    """Recorded sleep calls."""
    return []


@pytest.fixture
def reconciler(app_config, mock_woocommerce_client, mock_local_client,
               mock_catalog_reader, fake_resolver, sleeps):
    """A StockReconciler wired to in-memory collaborators."""
    return StockReconciler(
        config=app_config,
        woocommerce_client=mock_woocommerce_client,
        local_client=mock_local_client,
        catalog_reader=mock_catalog_reader,
        resolver=fake_resolver,
        sleep=sleeps.append,
    )
