"""Synchronization result and statistics data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from .product import StockUpdate


@dataclass
class SyncError:
    """Represents a per-item synchronization error."""

    sku: str
    error_type: str
    message: str
    stage: str = "sync"
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "sku": self.sku,
            "error_type": self.error_type,
            "message": self.message,
            "stage": self.stage,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class CycleResult:
    """Represents the outcome of one reconciliation cycle."""

    success: bool = True
    items_checked: int = 0
    updates_applied: int = 0
    updates_failed: int = 0
    resolution_failures: int = 0
    not_found_count: int = 0
    in_sync_count: int = 0
    total_items: int = 0
    dry_run: bool = False
    rejected: bool = False
    abandoned: bool = False
    updates: List[StockUpdate] = field(default_factory=list)
    errors: List[SyncError] = field(default_factory=list)
    duration: float = 0.0  # seconds
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        """Initialize timestamps if not set."""
        if self.start_time is None:
            self.start_time = datetime.utcnow()

    @classmethod
    def rejected_cycle(cls) -> "CycleResult":
        """Result handed back when another cycle already holds the guard."""
        result = cls(success=False, rejected=True)
        result.end_time = result.start_time
        return result

    def add_error(
        self,
        sku: str,
        error_type: str,
        message: str,
        stage: str = "sync",
        details: Optional[Dict[str, Any]] = None
    ):
        """Add an error to the result."""
        self.errors.append(SyncError(
            sku=sku,
            error_type=error_type,
            message=message,
            stage=stage,
            details=details
        ))

    def finalize(self):
        """Finalize the result with end time, duration and success flag."""
        self.end_time = datetime.utcnow()
        if self.start_time:
            self.duration = (self.end_time - self.start_time).total_seconds()
        self.success = (
            not self.rejected
            and not self.abandoned
            and self.updates_failed == 0
            and self.resolution_failures == 0
        )

    @property
    def updates_pending(self) -> int:
        return len(self.updates)

    @property
    def error_count(self) -> int:
        return self.updates_failed + self.resolution_failures

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "success": self.success,
            "items_checked": self.items_checked,
            "updates_applied": self.updates_applied,
            "updates_failed": self.updates_failed,
            "resolution_failures": self.resolution_failures,
            "not_found_count": self.not_found_count,
            "in_sync_count": self.in_sync_count,
            "total_items": self.total_items,
            "dry_run": self.dry_run,
            "rejected": self.rejected,
            "abandoned": self.abandoned,
            "duration": round(self.duration, 2),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "updates": [update.to_dict() for update in self.updates],
            "errors": [error.to_dict() for error in self.errors],
        }

    def get_summary(self) -> str:
        """Get a human-readable summary."""
        if self.rejected:
            return "Cycle rejected: another cycle is already running"

        summary_lines = [
            f"Cycle completed in {self.duration:.2f}s",
            f"Total items: {self.total_items}",
            f"Checked: {self.items_checked}",
            f"In sync: {self.in_sync_count}",
            f"Not found locally: {self.not_found_count}",
            f"Lookup failures: {self.resolution_failures}",
            f"Updates applied: {self.updates_applied}",
            f"Updates failed: {self.updates_failed}",
        ]
        if self.dry_run:
            summary_lines.append(f"Dry run: {self.updates_pending} update(s) not applied")
        if self.abandoned:
            summary_lines.append("Cycle abandoned before completion (shutdown requested)")

        if self.errors:
            summary_lines.append(f"\nErrors ({len(self.errors)}):")
            for error in self.errors[:5]:  # Show first 5 errors
                summary_lines.append(f"  - {error.sku} [{error.stage}]: {error.message}")
            if len(self.errors) > 5:
                summary_lines.append(f"  ... and {len(self.errors) - 5} more errors")

        return "\n".join(summary_lines)


@dataclass
class SyncStatistics:
    """Counters kept across cycles for the life of the process."""

    total_cycles: int = 0
    total_items_checked: int = 0
    total_updates_applied: int = 0
    total_errors: int = 0
    failed_cycles: int = 0
    last_sync_time: Optional[datetime] = None
    last_cycle_duration: float = 0.0

    def record_cycle(self, result: CycleResult):
        """Fold a finished cycle into the running totals."""
        self.total_cycles += 1
        self.total_items_checked += result.items_checked
        self.total_updates_applied += result.updates_applied
        self.total_errors += result.error_count
        self.last_sync_time = result.end_time or datetime.utcnow()
        self.last_cycle_duration = result.duration

    def record_failed_cycle(self):
        """Count a cycle that aborted before any item was checked."""
        self.failed_cycles += 1
        self.total_errors += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "total_cycles": self.total_cycles,
            "total_items_checked": self.total_items_checked,
            "total_updates_applied": self.total_updates_applied,
            "total_errors": self.total_errors,
            "failed_cycles": self.failed_cycles,
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "last_cycle_duration": round(self.last_cycle_duration, 2),
        }
