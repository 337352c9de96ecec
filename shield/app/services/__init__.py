"""Services package for the request defense layer.

This package provides:
- Threat detection over request content
- Durable security event recording
- Security metrics aggregation for the admin dashboard
- Brute force tracking and counter maintenance
"""

from shield.app.services.threat_detector import (
    SECURITY_PATTERNS,
    DetectionResult,
    SecurityPattern,
    Severity,
    ThreatDetector,
    get_threat_detector,
)
from shield.app.services.event_recorder import (
    SecurityEventData,
    SecurityEventRecorder,
    get_event_recorder,
    reset_event_recorder,
)
from shield.app.services.security_metrics import (
    SecurityMetrics,
    SecurityMetricsAggregator,
    fold_event_counts,
    severity_summary,
)
from shield.app.services.brute_force import BruteForceGuard, BruteForceStatus
from shield.app.services.maintenance import SweepReport, sweep_orphaned_counters

__all__ = [
    # Threat detection
    "ThreatDetector",
    "DetectionResult",
    "SecurityPattern",
    "Severity",
    "SECURITY_PATTERNS",
    "get_threat_detector",
    # Event recording
    "SecurityEventData",
    "SecurityEventRecorder",
    "get_event_recorder",
    "reset_event_recorder",
    # Metrics
    "SecurityMetrics",
    "SecurityMetricsAggregator",
    "fold_event_counts",
    "severity_summary",
    # Brute force and maintenance
    "BruteForceGuard",
    "BruteForceStatus",
    "SweepReport",
    "sweep_orphaned_counters",
]
