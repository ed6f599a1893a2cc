"""
Monitoring orchestrator for the Price Sentinel system.

This module drives one monitoring run: it snapshots the enabled catalog,
fetches canonical prices through the aggregator, persists history, evaluates
and stores alerts, forwards them to the notifier and keeps run progress.
"""

import asyncio
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .components.alert_evaluator import (
    AlertEvaluator,
    build_release_alert,
    resolve_historical_low,
)
from .interfaces import ICatalogStore, INotifier
from .models.alert import AlertEvent
from .models.item import TrackedItem
from .models.price import PriceSource
from .models.progress import ErrorDetail, FetchResult, MonitoringResult, RunProgress
from .services.aggregation_service import PriceAggregator
from .utils.error_handling import ErrorCategory, ErrorSeverity, ErrorTracker, get_error_tracker
from .utils.logging import get_logger


class MonitoringOrchestrator:
    """
    Runs the fetch, persist, evaluate and notify pipeline over the catalog.

    Only one run may be active at a time; overlapping triggers are skipped.
    """

    def __init__(
        self,
        store: ICatalogStore,
        aggregator: PriceAggregator,
        evaluator: AlertEvaluator,
        notifier: Optional[INotifier] = None,
        error_tracker: Optional[ErrorTracker] = None,
    ):
        self.store = store
        self.aggregator = aggregator
        self.evaluator = evaluator
        self.notifier = notifier
        self.error_tracker = error_tracker or get_error_tracker()
        self.logger = get_logger("orchestrator")

        self.running = False
        self.progress = RunProgress(last_run_time=self._read_last_run_time())
        self.stats: Dict[str, int] = {
            "runs_completed": 0,
            "runs_skipped": 0,
            "items_processed": 0,
            "items_failed": 0,
            "alerts_created": 0,
            "notifications_sent": 0,
            "notifications_failed": 0,
        }

    def _read_last_run_time(self) -> Optional[datetime]:
        try:
            return self.store.get_last_run_time()
        except Exception as e:
            self.logger.warning(f"Could not read last run time: {e}")
            return None

    async def run_monitoring(self, is_manual: bool = False) -> List[MonitoringResult]:
        """
        Run the monitoring pipeline over all enabled items.

        Args:
            is_manual: Use the slower one-at-a-time manual pacing

        Returns:
            One MonitoringResult per item; empty when another run is active
        """
        if self.running:
            self.logger.warning("Monitoring run already in progress, skipping trigger")
            self.stats["runs_skipped"] += 1
            return []

        self.running = True
        results: List[MonitoringResult] = []

        try:
            items = self.store.get_enabled_items()
            start_time = datetime.now()
            self.progress = RunProgress(
                is_running=True,
                total_items=len(items),
                start_time=start_time,
                last_run_time=self.progress.last_run_time,
            )

            self.logger.info(
                f"Starting {'manual' if is_manual else 'scheduled'} monitoring of {len(items)} items"
            )

            async def on_progress(name: str, completed: int, total: int, fetch: FetchResult):
                self.progress.current_item = name
                result = await self._process_fetch(fetch)
                results.append(result)

                self.progress.completed_items = completed
                if result.status == "error":
                    self.progress.failed_items += 1

                elapsed = (datetime.now() - start_time).total_seconds()
                remaining = total - completed
                self.progress.estimated_time_remaining = (
                    elapsed / completed * remaining if completed else None
                )

            await self.aggregator.get_many(items, is_manual_batch=is_manual, on_progress=on_progress)

            finished = datetime.now()
            self.store.set_last_run_time(finished)
            self.progress.last_run_time = finished
            self.stats["runs_completed"] += 1

            self.logger.info(
                "Monitoring run completed",
                extra={
                    "total": len(items),
                    "failed": self.progress.failed_items,
                    "alerts": sum(len(r.alerts) for r in results),
                    "duration_seconds": (finished - start_time).total_seconds(),
                },
            )
            return results

        finally:
            self.running = False
            self.progress.is_running = False
            self.progress.current_item = None
            self.progress.estimated_time_remaining = None

    async def monitor_single_item(self, external_id: int) -> Optional[MonitoringResult]:
        """Run the pipeline for one catalog item."""
        item = self.store.get_item(external_id)
        if item is None:
            self.logger.warning(f"Item {external_id} is not in the catalog")
            return None

        fetched = await self.aggregator.get_many([item], is_manual_batch=True)
        return await self._process_fetch(fetched[0])

    async def _process_fetch(self, fetch: FetchResult) -> MonitoringResult:
        item = fetch.item
        self.stats["items_processed"] += 1

        if fetch.error is not None:
            self.stats["items_failed"] += 1
            return MonitoringResult(item=item, status="error", error=fetch.error)

        if fetch.record is None:
            return MonitoringResult(item=item, status="no_data")

        try:
            return await self._persist_and_evaluate(item, fetch)
        except Exception as e:
            self.stats["items_failed"] += 1
            self.error_tracker.record_error(
                component="orchestrator",
                category=ErrorCategory.PERSISTENCE,
                severity=ErrorSeverity.MEDIUM,
                message=f"Failed to process {item.display_name}: {e}",
                exception=e,
                context={"external_id": item.external_id},
            )
            return MonitoringResult(item=item, status="error", error=ErrorDetail.from_exception(e))

    async def _persist_and_evaluate(self, item: TrackedItem, fetch: FetchResult) -> MonitoringResult:
        record = replace(fetch.record, item_id=item.id)

        if record.canonical_name and record.canonical_name != item.name:
            self.store.update_item_name(item.id, record.canonical_name)
            item.name = record.canonical_name

        previous = self.store.get_latest_record(item.id)
        alerts: List[AlertEvent] = []

        now_unreleased = record.source == PriceSource.UNRELEASED
        was_unreleased = item.was_unreleased or (
            previous is not None and previous.source == PriceSource.UNRELEASED
        )
        released = record.state_observed and was_unreleased and not now_unreleased
        release_alert = build_release_alert(item, record) if released else None

        record = resolve_historical_low(item, record, previous)
        record = self.store.add_price_record(record)

        if release_alert is not None:
            self.logger.info(f"{item.display_name} has been released")
            alerts.append(self.store.add_alert(release_alert))
            self.store.set_was_unreleased(item.id, False)
            item.was_unreleased = False
        elif now_unreleased and not item.was_unreleased:
            self.store.set_was_unreleased(item.id, True)
            item.was_unreleased = True

        alert = self.evaluator.evaluate(item, record, previous)
        if alert:
            alerts.append(self.store.add_alert(alert))

        self.stats["alerts_created"] += len(alerts)
        for event in alerts:
            await self._notify(event, item)

        return MonitoringResult(item=item, status="success", record=record, alerts=alerts)

    async def _notify(self, alert: AlertEvent, item: TrackedItem) -> None:
        if self.notifier is None:
            return

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self.notifier.notify, alert, item)
        except Exception as e:
            self.stats["notifications_failed"] += 1
            self.logger.error(f"Notification for {item.display_name} failed: {e}")
            return

        if result.success:
            self.stats["notifications_sent"] += 1
            if alert.id is not None:
                self.store.mark_alert_notified(alert.id)
                alert.notified = True
        else:
            self.stats["notifications_failed"] += 1
            self.logger.warning(
                f"Notification for {item.display_name} not delivered: {result.error_message}"
            )

    def get_progress(self) -> RunProgress:
        """Return a copy of the current run progress."""
        return replace(self.progress)

    def get_monitoring_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            **self.stats,
            "progress": self.progress.to_dict(),
            "errors": self.error_tracker.get_error_stats(),
        }
        store_stats = getattr(self.store, "get_stats", None)
        if callable(store_stats):
            stats["store"] = store_stats()
        return stats

    async def get_health_status(self) -> Dict[str, Any]:
        """Report provider, store and notifier health."""
        providers = await self.aggregator.health_check()

        try:
            self.store.get_last_run_time()
            store_ok = True
        except Exception as e:
            self.logger.error(f"Store health check failed: {e}")
            store_ok = False

        notifier_stats = self.notifier.get_stats() if self.notifier is not None else None

        healthy = providers["overall"] and store_ok
        if not healthy:
            self.logger.warning(
                "Unhealthy components detected",
                extra={"providers": providers, "store": store_ok},
            )

        return {
            "healthy": healthy,
            "providers": providers,
            "store": store_ok,
            "notifier": notifier_stats,
            "is_running": self.running,
            "last_run_time": self.progress.last_run_time,
        }

    async def shutdown(self) -> None:
        """Release provider resources."""
        self.logger.info("Shutting down monitoring orchestrator")
        await self.aggregator.close()
