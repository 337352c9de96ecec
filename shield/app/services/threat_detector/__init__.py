"""Threat detection for request content."""

from shield.app.services.threat_detector.detector import (
    ThreatDetector,
    collect_fragments,
    get_threat_detector,
    iter_string_leaves,
)
from shield.app.services.threat_detector.models import DetectionResult, SecurityPattern, Severity
from shield.app.services.threat_detector.patterns import (
    COMMAND_INJECTION,
    PATH_TRAVERSAL,
    SECURITY_PATTERNS,
    SQL_INJECTION,
    SUSPICIOUS_USER_AGENT,
    XSS,
)

__all__ = [
    "ThreatDetector",
    "DetectionResult",
    "SecurityPattern",
    "Severity",
    "SECURITY_PATTERNS",
    "SQL_INJECTION",
    "XSS",
    "PATH_TRAVERSAL",
    "COMMAND_INJECTION",
    "SUSPICIOUS_USER_AGENT",
    "collect_fragments",
    "iter_string_leaves",
    "get_threat_detector",
]
