"""
Threat scoring for a single analysed report, based on weighted
action, target and casualty factors.
"""

import logging
import re
from typing import Optional

from intelsuite.core.config import (
    DEFAULT_ACTION_WEIGHT,
    DEFAULT_TARGET_WEIGHT,
    THREAT_BANDS,
    THREAT_WEIGHTS,
)
from intelsuite.data.schemas import AnalysisRecord, ThreatLevel

logger = logging.getLogger(__name__)


class ThreatScorer:
    """
    Calculates a report's threat score as:
    - weight of the action category (3 when unweighted)
    - weight of the target category (2 when unweighted or absent)
    - per-unit casualty weight x count for each casualty fragment

    The score is banded into Low / Medium / High / Severe.
    """

    # "<count> x ... <type>"; greedy middle so the last type token wins
    CASUALTY_PATTERN = re.compile(r"(\d+)\s*x\s*.*\s*(sh|inj|Ts killed)")

    def __init__(self, weights: Optional[dict] = None):
        self.weights = weights or THREAT_WEIGHTS

    def score(self, analysis: AnalysisRecord) -> ThreatLevel:
        total = self.raw_score(analysis)
        level, width = self.level_for_score(total)
        return ThreatLevel(level=level, score=total, width=width)

    def raw_score(self, analysis: AnalysisRecord) -> int:
        total = self.weights["actions"].get(analysis.action, DEFAULT_ACTION_WEIGHT)
        total += self.weights["targets"].get(analysis.target or "", DEFAULT_TARGET_WEIGHT)
        for fragment in analysis.casualties:
            total += self._casualty_score(fragment)
        return total

    def _casualty_score(self, fragment: str) -> int:
        match = self.CASUALTY_PATTERN.search(fragment)
        if not match:
            return 0
        per_unit = self.weights["casualties"].get(match.group(2), 0)
        return per_unit * int(match.group(1))

    @staticmethod
    def level_for_score(score: float) -> tuple[str, str]:
        """Map a score to (level, display width)."""
        for upper, level, width in THREAT_BANDS:
            if upper is None or score < upper:
                return level, width
        raise ValueError(f"No threat band for score {score}")
