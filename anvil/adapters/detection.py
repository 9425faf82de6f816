"""
Weighted indicator detection.

Each dialect declares (pattern, weight) indicators. The score is the sum
of the weights of matching indicators, capped at 100. Scores are not
normalized by indicator count, so two dialects with indicator sets of
very different size are not strictly comparable on the same scale.
"""

import re
from typing import List, Optional, Pattern, Sequence, Union

from anvil.models.adapter import DetectionResult


MAX_CONFIDENCE = 100
DEFAULT_THRESHOLD = 50


class Indicator:
    """A structural marker of a dialect and the weight it contributes."""

    def __init__(self, pattern: Union[str, Pattern[str]], weight: int, name: Optional[str] = None):
        if isinstance(pattern, str):
            pattern = re.compile(pattern, re.MULTILINE)
        self.pattern = pattern
        self.weight = weight
        self.name = name or pattern.pattern

    def matches(self, content: str) -> bool:
        return self.pattern.search(content) is not None

    def __repr__(self) -> str:
        return f"Indicator({self.name!r}, weight={self.weight})"


class WeightedDetector:
    """
    Capped weighted-sum scorer.

    Usage:
        detector = WeightedDetector([
            Indicator(r"^#\\s+Feature:", 30),
            Indicator(r"\\*\\*FR-\\d+\\*\\*", 20),
        ])
        result = detector.detect(text)
    """

    def __init__(self, indicators: Sequence[Indicator], threshold: int = DEFAULT_THRESHOLD):
        self.indicators: List[Indicator] = list(indicators)
        self.threshold = threshold

    def detect(self, content: str) -> DetectionResult:
        matched = [i for i in self.indicators if i.matches(content)]
        confidence = min(sum(i.weight for i in matched), MAX_CONFIDENCE)
        return create_detection(
            detected=confidence >= self.threshold,
            confidence=confidence,
            reason=f"Matched {len(matched)} of {len(self.indicators)} indicators (score {confidence})",
        )


def create_detection(detected: bool, confidence: float, reason: Optional[str] = None) -> DetectionResult:
    """Build a DetectionResult with confidence clamped to 0-100."""
    clamped = int(max(0, min(MAX_CONFIDENCE, round(confidence))))
    return DetectionResult(detected=detected, confidence=clamped, reason=reason)
