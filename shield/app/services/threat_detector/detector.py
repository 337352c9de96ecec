"""Signature-based request inspection."""

from collections.abc import Mapping
from typing import Any, Iterator, Optional, Sequence
from urllib.parse import unquote

from shield.app.core.logging import get_logger
from shield.app.services.threat_detector.models import DetectionResult, SecurityPattern, Severity
from shield.app.services.threat_detector.patterns import SECURITY_PATTERNS, SUSPICIOUS_USER_AGENT

logger = get_logger(__name__)

# Bodies nested deeper than this are not inspected past the limit
MAX_BODY_DEPTH = 32


def iter_string_leaves(value: Any, max_depth: int = MAX_BODY_DEPTH) -> Iterator[str]:
    """Yield every string leaf of a nested body in document order.

    Dict values, list and tuple items are descended into; numbers, booleans
    and None are ignored. Traversal is iterative so hostile nesting cannot
    exhaust the interpreter stack.
    """
    stack: list[tuple[Any, int]] = [(value, 0)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, str):
            yield node
        elif depth >= max_depth:
            continue
        elif isinstance(node, Mapping):
            stack.extend((child, depth + 1) for child in reversed(list(node.values())))
        elif isinstance(node, (list, tuple)):
            stack.extend((child, depth + 1) for child in reversed(node))


def _header_value(headers: Any, name: str) -> str:
    if headers is None or not hasattr(headers, "get"):
        return ""
    value = headers.get(name)
    if value is None and isinstance(headers, Mapping):
        # Plain dicts are case-sensitive
        for key, candidate in headers.items():
            if isinstance(key, str) and key.lower() == name:
                value = candidate
                break
    return value if isinstance(value, str) else ""


def collect_fragments(request: Any) -> list[str]:
    """Candidate text fragments of a request: body leaves, then the URL.

    The percent-decoded URL is added when it differs from the raw one.
    Missing attributes contribute nothing.
    """
    fragments = list(iter_string_leaves(getattr(request, "body", None)))

    url = getattr(request, "url", None)
    if url is not None and not isinstance(url, str):
        url = str(url)
    if url:
        fragments.append(url)
        decoded = unquote(url)
        if decoded != url:
            fragments.append(decoded)
    return fragments


class ThreatDetector:
    """Classify request content against a fixed catalogue of attack signatures.

    Example:
        >>> detector = ThreatDetector()
        >>> result = detector.inspect(RequestContext(url="/api/files/../../etc/passwd"))
        >>> result.reasons
        ['Path traversal pattern detected']
    """

    def __init__(
        self,
        patterns: Sequence[SecurityPattern] = SECURITY_PATTERNS,
        user_agent_pattern: Optional[SecurityPattern] = SUSPICIOUS_USER_AGENT,
    ) -> None:
        self.patterns = tuple(patterns)
        self.user_agent_pattern = user_agent_pattern

    def inspect(self, request: Any) -> DetectionResult:
        """Inspect a request's body, URL and user agent.

        Args:
            request: A RequestContext, or any object exposing some of
                ``body``, ``url`` and ``headers``

        Returns:
            DetectionResult; a request with nothing to inspect is benign
        """
        fragments = collect_fragments(request)
        reasons: list[str] = []
        matched: list[str] = []
        severities: list[Severity] = []

        for pattern in self.patterns:
            if any(pattern.matches(fragment) for fragment in fragments):
                reasons.append(pattern.reason)
                matched.append(pattern.name)
                severities.append(pattern.severity)

        if self.user_agent_pattern is not None:
            user_agent = _header_value(getattr(request, "headers", None), "user-agent")
            if user_agent and self.user_agent_pattern.matches(user_agent):
                reasons.append(self.user_agent_pattern.reason)
                matched.append(self.user_agent_pattern.name)
                severities.append(self.user_agent_pattern.severity)

        result = DetectionResult(
            is_suspicious=bool(reasons),
            reasons=reasons,
            severity=Severity.max_of(severities),
            matched=matched,
        )
        if result.is_suspicious:
            logger.debug(f"Request matched {', '.join(matched)}", extra={"severity": result.severity.value})
        return result


# Global detector instance (patterns are immutable, so one is enough)
_detector: Optional[ThreatDetector] = None


def get_threat_detector() -> ThreatDetector:
    """Get or create the global threat detector."""
    global _detector
    if _detector is None:
        _detector = ThreatDetector()
    return _detector
