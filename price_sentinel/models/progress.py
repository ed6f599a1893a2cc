"""
Run progress and per-item result models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .alert import AlertEvent
from .item import TrackedItem
from .price import PriceRecord


@dataclass
class ErrorDetail:
    """Serializable description of a failure."""

    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_exception(cls, error: BaseException) -> "ErrorDetail":
        """Build an ErrorDetail from any exception."""
        to_detail = getattr(error, "to_detail", None)
        if callable(to_detail):
            return to_detail()
        return cls(code=type(error).__name__, message=str(error))


@dataclass
class FetchResult:
    """Outcome of fetching one item's price."""

    item: TrackedItem
    record: Optional[PriceRecord] = None
    error: Optional[ErrorDetail] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.record is not None


@dataclass
class MonitoringResult:
    """Outcome of one item in an orchestrator run."""

    item: TrackedItem
    status: str  # "success", "no_data" or "error"
    record: Optional[PriceRecord] = None
    alerts: List[AlertEvent] = field(default_factory=list)
    error: Optional[ErrorDetail] = None

    def validate(self) -> bool:
        """Validate monitoring result data."""
        if self.status not in ("success", "no_data", "error"):
            raise ValueError("status must be 'success', 'no_data' or 'error'")

        if self.status == "error" and self.error is None:
            raise ValueError("error detail required when status is 'error'")

        if self.status == "success" and self.record is None:
            raise ValueError("record required when status is 'success'")

        return True


@dataclass
class RunProgress:
    """In-memory progress of the current (or last) monitoring run."""

    is_running: bool = False
    current_item: Optional[str] = None
    total_items: int = 0
    completed_items: int = 0
    failed_items: int = 0
    start_time: Optional[datetime] = None
    estimated_time_remaining: Optional[float] = None
    last_run_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "current_item": self.current_item,
            "total_items": self.total_items,
            "completed_items": self.completed_items,
            "failed_items": self.failed_items,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "estimated_time_remaining": self.estimated_time_remaining,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
        }
