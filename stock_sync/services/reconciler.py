"""Local → WooCommerce stock reconciliation.

One cycle:
  1. Fetch every tracked product with a SKU from WooCommerce.
  2. Resolve local stock for each product, batch by batch.
  3. Collect a StockUpdate for every product whose quantity differs.
  4. Apply the updates in catalog order, one write at a time, paced.
  5. Fold the outcome into the process-wide SyncStatistics.

Only one cycle runs at a time. A request that arrives while a cycle is in
progress is rejected, not queued.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from .catalog_reader import CatalogReader
from .stock_resolver import LocalStockResolver
from ..api.local_client import LocalApiClient
from ..api.woocommerce_client import WooCommerceClient
from ..models.product import CatalogItem, LocalStockRecord, StockUpdate
from ..models.sync_result import CycleResult, SyncStatistics
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import ConnectivityError, SKUNotFoundError, TransportError
from ..utils.logger import get_sync_logger, get_error_logger
from ..utils.rate_limit import RateLimiter


# Error marker for lookups skipped after a stop request
ABANDONED = "abandoned"


class CycleState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def batched(items: Sequence[CatalogItem], size: int) -> Iterator[Sequence[CatalogItem]]:
    """Yield consecutive slices of at most ``size`` items."""
    size = max(1, size)
    for start in range(0, len(items), size):
        yield items[start:start + size]


def diff_item(item: CatalogItem, record: LocalStockRecord) -> Optional[StockUpdate]:
    """Return the update needed to bring ``item`` to the local quantity, if any."""
    if not record.found or record.quantity == item.stock_quantity:
        return None
    return StockUpdate(
        item_id=item.id,
        sku=item.sku,
        new_quantity=record.quantity,
        previous_quantity=item.stock_quantity,
        name=item.name,
    )


class StockReconciler:
    """Orchestrates reconciliation cycles and owns the sync statistics."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        woocommerce_client: Optional[WooCommerceClient] = None,
        local_client: Optional[LocalApiClient] = None,
        catalog_reader: Optional[CatalogReader] = None,
        resolver: Optional[LocalStockResolver] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or get_config()
        self.logger = get_sync_logger()
        self.error_logger = get_error_logger()

        self.woocommerce = woocommerce_client or WooCommerceClient(config=self.config)
        self.local_api = local_client or LocalApiClient(config=self.config)
        self.catalog_reader = catalog_reader or CatalogReader(self.woocommerce, self.config)
        self.resolver = resolver or LocalStockResolver(self.local_api, self.config, sleep=sleep)

        self.stats = SyncStatistics()
        self.last_result: Optional[CycleResult] = None

        self._sleep = sleep
        self._write_limiter = RateLimiter(self.config.woocommerce.write_delay, sleep=sleep)
        self._lookup_limiter = RateLimiter(self.config.sync.lookup_delay, sleep=sleep)

        self._guard = threading.Lock()
        self._state = CycleState.IDLE
        self._idle = threading.Event()
        self._idle.set()
        self._stop = threading.Event()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is CycleState.RUNNING

    def request_stop(self):
        """Ask an in-flight cycle to stop at the next item or write."""
        self.logger.info("Stop requested; in-flight cycle will be abandoned")
        self._stop.set()

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no cycle is running. Returns False on timeout."""
        return self._idle.wait(timeout)

    def _guarded(self, label: str, run: Callable[[], CycleResult]) -> CycleResult:
        if self._stop.is_set():
            self.logger.warning(f"{label} rejected: service is stopping")
            return CycleResult.rejected_cycle()

        if not self._guard.acquire(blocking=False):
            self.logger.warning(f"{label} rejected: a sync is already in progress")
            return CycleResult.rejected_cycle()

        try:
            self._state = CycleState.RUNNING
            self._idle.clear()
            return run()
        finally:
            self._state = CycleState.IDLE
            self._idle.set()
            self._guard.release()

    # ------------------------------------------------------------------
    # Full cycle
    # ------------------------------------------------------------------

    def run_cycle(self, dry_run: bool = False) -> CycleResult:
        """
        Run one full reconciliation cycle.

        Args:
            dry_run: Compute updates without writing them.

        Returns:
            The ``CycleResult``. A rejected request returns a result with
            ``rejected=True`` and no side effects.

        Raises:
            TransportError: If the catalog could not be fetched.
        """
        return self._guarded("Sync", lambda: self._run_cycle(dry_run))

    def _run_cycle(self, dry_run: bool) -> CycleResult:
        result = CycleResult(dry_run=dry_run)
        self._write_limiter.reset()

        self.logger.info("=" * 60)
        self.logger.info("Starting stock synchronization" + (" (dry run)" if dry_run else ""))
        self.logger.info("=" * 60)

        try:
            items = self.catalog_reader.fetch_tracked_items()
        except TransportError as e:
            self.logger.error(f"Sync aborted: catalog fetch failed: {e.message}")
            self.error_logger.error(
                f"[catalog] Catalog fetch failed: {e.message}",
                extra={"details": e.details}
            )
            if not dry_run:
                self.stats.record_failed_cycle()
            raise

        result.total_items = len(items)

        if not items:
            self.logger.warning("No tracked products with SKU found in WooCommerce")
            return self._finish(result)

        batch_size = max(1, self.config.sync.batch_size)
        batch_count = (len(items) + batch_size - 1) // batch_size
        self.logger.info(f"Found {len(items)} products to check in {batch_count} batch(es)")

        for number, batch in enumerate(batched(items, batch_size), 1):
            if self._stop.is_set():
                result.abandoned = True
                break

            self.logger.info(f"Processing batch {number}/{batch_count}")
            result.updates.extend(self._process_batch(batch, result))

            if number < batch_count:
                self._sleep(self.config.sync.batch_delay)

        if result.updates and not dry_run and not result.abandoned:
            self._apply_updates(result)
        elif result.updates and dry_run:
            for update in result.updates:
                self.logger.info(
                    f"  [dry run] {update.sku}: WooCommerce {update.previous_quantity} "
                    f"→ {update.new_quantity}"
                )
        elif not result.abandoned:
            self.logger.info("No stock updates required - all products are in sync")

        return self._finish(result)

    def _lookup(self, item: CatalogItem, paced: bool) -> LocalStockRecord:
        if self._stop.is_set():
            return LocalStockRecord.not_found(item.sku, error=ABANDONED)
        if paced:
            self._lookup_limiter.wait()
        try:
            return self.resolver.lookup(item.sku)
        except Exception as e:
            self.logger.error(f"Error resolving stock for {item.sku}: {str(e)}", exc_info=True)
            return LocalStockRecord.not_found(item.sku, error=str(e))

    def _process_batch(self, batch: Sequence[CatalogItem], result: CycleResult) -> List[StockUpdate]:
        """Resolve every item of a batch and return the updates it needs."""
        if self.config.sync.parallel_processing and len(batch) > 1:
            workers = max(1, min(self.config.sync.max_workers, len(batch)))
            with ThreadPoolExecutor(max_workers=workers) as executor:
                records = list(executor.map(lambda item: self._lookup(item, True), batch))
        else:
            records = [self._lookup(item, False) for item in batch]

        updates: List[StockUpdate] = []
        for item, record in zip(batch, records):
            if record.error == ABANDONED:
                result.abandoned = True
                continue

            result.items_checked += 1

            if record.failed:
                result.resolution_failures += 1
                result.add_error(
                    item.sku,
                    "TransportError",
                    record.error,
                    stage="lookup",
                    details={"item_id": item.id, "name": item.name},
                )
                continue

            if not record.found:
                result.not_found_count += 1
                self.logger.warning(f"Could not get local stock for SKU: {item.sku} ({item.name})")
                continue

            update = diff_item(item, record)
            if update is None:
                result.in_sync_count += 1
                self.logger.debug(f"Stock in sync for {item.sku}: {item.stock_quantity}")
                continue

            self.logger.info(
                f"Stock difference for {item.sku}: "
                f"WooCommerce={item.stock_quantity}, Local={record.quantity}"
            )
            updates.append(update)

        return updates

    def _apply_updates(self, result: CycleResult):
        """Write updates in catalog order; one failure never stops the rest."""
        self.logger.info(f"Applying {len(result.updates)} stock update(s) to WooCommerce")

        for update in result.updates:
            if self._stop.is_set():
                result.abandoned = True
                break

            self._write_limiter.wait()
            try:
                self.woocommerce.update_stock(update.item_id, update.new_quantity)
                result.updates_applied += 1
                self.logger.info(
                    f"  ✓ {update.name or update.sku} (SKU: {update.sku}): "
                    f"{update.previous_quantity} → {update.new_quantity}"
                )
            except Exception as e:
                message = getattr(e, "message", str(e))
                result.updates_failed += 1
                result.add_error(
                    update.sku,
                    type(e).__name__,
                    message,
                    stage="update",
                    details={"item_id": update.item_id, "new_quantity": update.new_quantity},
                )
                self.logger.error(
                    f"  ✗ Update failed for {update.sku} (product {update.item_id}): {message}"
                )
                self.error_logger.error(f"[update] {update.sku} (product {update.item_id}): {message}")

        self.logger.info(
            f"Batch update completed: {result.updates_applied} successful, "
            f"{result.updates_failed} failed"
        )

    def _finish(self, result: CycleResult) -> CycleResult:
        result.finalize()
        if not result.dry_run:
            self.stats.record_cycle(result)
        self.last_result = result

        self.logger.info("=" * 60)
        self.logger.info(f"Sync completed in {result.duration:.2f} seconds")
        self.logger.info(
            f"Stats: {result.updates_applied} updates applied, "
            f"{result.items_checked} products checked, {result.error_count} errors"
        )
        self.logger.info("=" * 60)
        return result

    # ------------------------------------------------------------------
    # Single SKU
    # ------------------------------------------------------------------

    def run_single(self, sku: str, dry_run: bool = False) -> CycleResult:
        """Reconcile one SKU, under the same reentrancy guard as full cycles."""
        return self._guarded(f"Sync of {sku}", lambda: self._run_single(sku, dry_run))

    def _run_single(self, sku: str, dry_run: bool) -> CycleResult:
        result = CycleResult(dry_run=dry_run, total_items=1)
        self._write_limiter.reset()

        product = self.woocommerce.get_product_by_sku(sku)
        if not product:
            error = SKUNotFoundError(f"SKU not found in WooCommerce: {sku}")
            self.logger.warning(error.message)
            result.add_error(sku, type(error).__name__, error.message, stage="catalog")
            result.finalize()
            result.success = False
            self.last_result = result
            return result

        item = CatalogItem.from_api(product)
        result.updates.extend(self._process_batch([item], result))

        if result.updates and not dry_run:
            self._apply_updates(result)

        return self._finish(result)

    # ------------------------------------------------------------------
    # Connectivity and reporting
    # ------------------------------------------------------------------

    def test_connections(self) -> Dict[str, Dict[str, Any]]:
        """
        Check both collaborator endpoints.

        Returns:
            Per-endpoint ``{"success": bool, "error": str | None}``.

        Raises:
            ConnectivityError: If either endpoint failed; ``details`` holds
                the same per-endpoint results.
        """
        self.logger.info("Testing API connections...")

        results = {
            "woocommerce": {"success": False, "error": None},
            "local_api": {"success": False, "error": None},
        }

        for name, client in (("woocommerce", self.woocommerce), ("local_api", self.local_api)):
            try:
                client.test_connection()
                results[name]["success"] = True
                self.logger.info(f"✓ {name} connection successful")
            except Exception as e:
                message = getattr(e, "message", str(e))
                results[name]["error"] = message
                self.logger.error(f"✗ {name} connection failed: {message}")
                self.error_logger.error(f"[connectivity] {name}: {message}")

        failed = [name for name, outcome in results.items() if not outcome["success"]]
        if failed:
            raise ConnectivityError(
                f"API connection failed: {', '.join(failed)}",
                details=results
            )

        self.logger.info("All API connections successful")
        return results

    def get_stats(self) -> Dict[str, Any]:
        """Statistics plus current state, for external reporting."""
        stats = self.stats.to_dict()
        stats.update({
            "state": self._state.value,
            "is_running": self.is_running,
            "sync_interval_minutes": self.config.env.sync_interval_minutes,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        })
        return stats

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def close(self):
        self.woocommerce.close()
        self.local_api.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
