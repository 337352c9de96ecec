"""Security dashboard endpoints."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query

from shield.app.api.deps import get_store
from shield.app.core.store import CounterStore
from shield.app.services.maintenance import sweep_orphaned_counters
from shield.app.services.security_metrics import SecurityMetricsAggregator, severity_summary

router = APIRouter()


def get_metrics_aggregator() -> SecurityMetricsAggregator:
    return SecurityMetricsAggregator()


@router.get("")
async def security_overview(
    severity: Optional[Literal["LOW", "MEDIUM", "HIGH"]] = None,
    limit: int = Query(50, ge=1, le=1000),
    aggregator: SecurityMetricsAggregator = Depends(get_metrics_aggregator),
) -> dict[str, Any]:
    """Metrics, the most recent alerts and a per-severity summary."""
    metrics = await aggregator.summarize()
    alerts = await aggregator.recent_alerts(severity=severity, limit=limit)
    return {
        "metrics": metrics.to_dict(),
        "alerts": [alert.to_dict() for alert in alerts],
        "summary": severity_summary(alerts),
    }


@router.post("/cleanup")
async def cleanup_counters(
    store: CounterStore = Depends(get_store),
) -> dict[str, Any]:
    """Give orphaned rate limit and brute force counters an expiry."""
    report = await sweep_orphaned_counters(store)
    return {"success": True, **report.to_dict()}
