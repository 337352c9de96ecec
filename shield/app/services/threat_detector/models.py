"""Threat detector models."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable


class Severity(str, Enum):
    """Ordered severity scale: LOW < MEDIUM < HIGH."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        """Parse a severity name case-insensitively.

        Raises:
            ValueError: If value is not a known severity
        """
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().upper())

    @classmethod
    def max_of(cls, severities: Iterable["Severity"]) -> "Severity":
        """Highest severity in severities, LOW when empty."""
        return max(severities, key=lambda s: s.rank, default=cls.LOW)

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


@dataclass(frozen=True)
class SecurityPattern:
    """Named attack signature matched against text fragments."""
    name: str
    reason: str
    severity: Severity
    regex: re.Pattern

    def matches(self, fragment: str) -> bool:
        return self.regex.search(fragment) is not None


@dataclass
class DetectionResult:
    """Threat detection result.

    Attributes:
        is_suspicious: True when at least one pattern matched
        reasons: One human-readable reason per matched pattern, in pattern order
        severity: Highest severity among matched patterns, LOW if none
        matched: Names of the matched patterns
    """
    is_suspicious: bool = False
    reasons: list[str] = field(default_factory=list)
    severity: Severity = Severity.LOW
    matched: list[str] = field(default_factory=list)
