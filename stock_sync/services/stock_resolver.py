"""Local stock lookup with bounded linear-backoff retry."""

import time
from typing import Callable, Optional

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
)

from .normalizer import normalize
from ..api.local_client import LocalApiClient
from ..models.product import LocalStockRecord
from ..utils.config import AppConfig, get_config
from ..utils.exceptions import TransportError
from ..utils.logger import get_sync_logger, get_error_logger
from ..utils.retry import wait_linear


class LocalStockResolver:
    """Resolve the local quantity for a SKU/barcode.

    Transport failures are retried up to ``sync.max_retries`` attempts,
    attempt ``n`` waiting ``n * sync.retry_delay`` seconds. A response that
    arrives but carries no usable quantity is not retried.
    """

    def __init__(
        self,
        client: Optional[LocalApiClient] = None,
        config: Optional[AppConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or get_config()
        self.client = client or LocalApiClient(config=self.config)
        self.max_attempts = max(1, self.config.sync.max_retries)
        self.retry_delay = self.config.sync.retry_delay
        self.quantity_fields = self.config.local_api.quantity_fields
        self.logger = get_sync_logger()
        self.error_logger = get_error_logger()
        self._sleep = sleep

    def _log_retry(self, retry_state: RetryCallState):
        key = retry_state.args[0] if retry_state.args else "?"
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            f"Retry {retry_state.attempt_number}/{self.max_attempts} for SKU {key}: {error}"
        )

    def lookup(self, key: str) -> LocalStockRecord:
        """
        Look up and normalize the local stock for ``key``.

        Returns:
            A ``LocalStockRecord``. When every attempt failed at the
            transport level the record has ``found=False`` and ``error`` set
            so the caller can count it and move on.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_linear(self.retry_delay),
            retry=retry_if_exception_type(TransportError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            data = retrying(self.client.query, key)
        except TransportError as e:
            message = (
                f"Failed to get stock for SKU {key} after "
                f"{self.max_attempts} attempt(s): {e.message}"
            )
            self.logger.error(message)
            self.error_logger.error(f"[lookup] {message}")
            return LocalStockRecord.not_found(key, error=e.message)

        if data is None:
            return LocalStockRecord.not_found(key)

        record = normalize(key, data, self.quantity_fields)
        if record.found:
            self.logger.debug(
                f"Local stock for {key}: {record.quantity} "
                f"({record.matched_records} record(s))"
            )
        return record
