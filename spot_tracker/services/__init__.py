"""Long-running services that feed and maintain the spot store."""

from spot_tracker.services.aggregator_service import AggregatorService, CycleResult, RunOnceResult

__all__ = ["AggregatorService", "CycleResult", "RunOnceResult"]
