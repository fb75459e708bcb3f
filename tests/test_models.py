"""Tests for data models."""

import pytest

from stock_sync.models.product import CatalogItem, LocalStockRecord, StockUpdate
from stock_sync.models.sync_result import CycleResult, SyncStatistics


class TestCatalogItem:
    """Tests for CatalogItem model."""

    def test_from_api(self):
        """Test building a CatalogItem from a WooCommerce record."""
        item = CatalogItem.from_api({
            "id": 42,
            "sku": "A1",
            "name": "Kopi Bubuk",
            "stock_quantity": 12,
            "manage_stock": True,
        })

        assert item.id == 42
        assert item.sku == "A1"
        assert item.stock_quantity == 12
        assert item.name == "Kopi Bubuk"

    def test_from_api_null_quantity_is_zero(self):
        item = CatalogItem.from_api({"id": 1, "sku": "A1", "stock_quantity": None})

        assert item.stock_quantity == 0

    def test_from_api_keeps_backorder_quantity(self):
        item = CatalogItem.from_api({"id": 1, "sku": "A1", "stock_quantity": -3})

        assert item.stock_quantity == -3

    def test_from_api_floors_numeric_string(self):
        item = CatalogItem.from_api({"id": 1, "sku": "A1", "stock_quantity": "2.5"})

        assert item.stock_quantity == 2

    def test_from_api_rejects_non_numeric_quantity(self):
        with pytest.raises(ValueError):
            CatalogItem.from_api({"id": 1, "sku": "A1", "stock_quantity": "lots"})

    def test_empty_sku_raises(self):
        """Test that empty SKU raises ValueError."""
        with pytest.raises(ValueError, match="SKU cannot be empty"):
            CatalogItem(id=1, sku="  ", stock_quantity=1)

    def test_to_dict(self):
        item = CatalogItem(id=7, sku="X", stock_quantity=3, name="Thing")

        assert item.to_dict() == {"id": 7, "sku": "X", "stock_quantity": 3, "name": "Thing"}


class TestLocalStockRecord:

    def test_not_found(self):
        record = LocalStockRecord.not_found("A1")

        assert record.found is False
        assert record.failed is False

    def test_not_found_with_error_is_failed(self):
        record = LocalStockRecord.not_found("A1", error="timeout")

        assert record.found is False
        assert record.failed is True


class TestStockUpdate:

    def test_stock_status(self):
        assert StockUpdate(1, "A1", 3, 0).stock_status == "instock"
        assert StockUpdate(1, "A1", 0, 3).stock_status == "outofstock"


class TestCycleResult:
    """Tests for CycleResult model."""

    def test_create_cycle_result(self):
        result = CycleResult(total_items=10)

        assert result.success is True
        assert result.updates_applied == 0
        assert result.errors == []
        assert result.start_time is not None

    def test_add_error(self):
        """Test adding an error to CycleResult."""
        result = CycleResult()

        result.add_error("A1", "LocalAPIError", "timed out", stage="lookup")

        assert len(result.errors) == 1
        assert result.errors[0].sku == "A1"
        assert result.errors[0].stage == "lookup"

    def test_finalize_with_failed_update(self, sample_cycle_result):
        assert sample_cycle_result.end_time is not None
        assert sample_cycle_result.duration >= 0
        assert sample_cycle_result.success is False

    def test_finalize_clean_cycle(self):
        result = CycleResult(total_items=2)
        result.items_checked = 2
        result.updates_applied = 1

        result.finalize()

        assert result.success is True

    def test_rejected_cycle(self):
        result = CycleResult.rejected_cycle()

        assert result.rejected is True
        assert result.success is False
        assert "rejected" in result.get_summary()

    def test_get_summary(self, sample_cycle_result):
        summary = sample_cycle_result.get_summary()

        assert "Total items: 10" in summary
        assert "Updates applied: 3" in summary
        assert "Updates failed: 1" in summary

    def test_to_dict(self, sample_cycle_result):
        data = sample_cycle_result.to_dict()

        assert data["items_checked"] == 10
        assert data["updates_applied"] == 3
        assert data["errors"] == []


class TestSyncStatistics:

    def test_record_cycle_accumulates(self):
        stats = SyncStatistics()
        for _ in range(2):
            result = CycleResult()
            result.items_checked = 5
            result.updates_applied = 2
            result.resolution_failures = 1
            result.finalize()
            stats.record_cycle(result)

        assert stats.total_cycles == 2
        assert stats.total_items_checked == 10
        assert stats.total_updates_applied == 4
        assert stats.total_errors == 2
        assert stats.last_sync_time is not None

    def test_record_failed_cycle(self):
        stats = SyncStatistics()

        stats.record_failed_cycle()

        assert stats.failed_cycles == 1
        assert stats.total_errors == 1
        assert stats.total_cycles == 0
