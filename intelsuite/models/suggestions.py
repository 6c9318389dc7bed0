"""
Smart suggestions shown next to a freshly converted report.

Each rule runs independently; a generic authoring tip is returned only
when no rule fired.
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Optional

from intelsuite.core.config import PATTERN_WINDOW_DAYS, UNKNOWN_ACTOR
from intelsuite.data.schemas import AnalysisRecord, SmartSuggestion, ValidatedReport

logger = logging.getLogger(__name__)

CASUALTY_HINT_TERMS = ("cas", "casualties")


class SuggestionEngine:
    """Proposes authoring hints from the current analysis and the report history."""

    def suggest(self, analysis: AnalysisRecord, history: list[ValidatedReport],
                raw_input: str = "", now: Optional[datetime] = None) -> list[SmartSuggestion]:
        if now is None:
            now = datetime.now()

        suggestions = []

        attribution = self._attribution_hint(analysis, history)
        if attribution:
            suggestions.append(attribution)

        pattern = self._pattern_hint(analysis, history, now)
        if pattern:
            suggestions.append(pattern)

        if not analysis.casualties and raw_input:
            lower = raw_input.lower()
            if any(term in lower for term in CASUALTY_HINT_TERMS):
                suggestions.append(SmartSuggestion(
                    text="Report mentions casualties but none were parsed. Add details?",
                    action="focusField",
                    field="casualties",
                ))

        if not suggestions:
            suggestions.append(SmartSuggestion(
                text='<strong>Pro Tip:</strong> Add your own analysis or context in the "Notes" field before saving.',
                action="focusField",
                field="notes",
            ))

        return suggestions

    @staticmethod
    def _attribution_hint(analysis: AnalysisRecord,
                          history: list[ValidatedReport]) -> Optional[SmartSuggestion]:
        """Suggest the actor most often reported in the same location code."""
        if analysis.who != UNKNOWN_ACTOR or not analysis.location:
            return None

        location_code = analysis.location.split(",")[-1].strip()
        groups = Counter(
            r.analysis.who for r in history
            if r.analysis.location
            and location_code in r.analysis.location
            and r.analysis.who != UNKNOWN_ACTOR
        )
        if not groups:
            return None

        top_group = groups.most_common(1)[0][0]
        logger.debug(f"Attribution candidate for {location_code}: {top_group} ({groups[top_group]} reports)")
        return SmartSuggestion(
            text=f"Consider attributing to <strong>{top_group}</strong>, which is active in {location_code}.",
            action="setField",
            field="who",
            value=top_group,
        )

    @staticmethod
    def _pattern_hint(analysis: AnalysisRecord, history: list[ValidatedReport],
                      now: datetime) -> Optional[SmartSuggestion]:
        """Flag a recent prior report with the same action and target."""
        previous = next(
            (r for r in history
             if r.analysis.action == analysis.action and r.analysis.target == analysis.target),
            None,
        )
        if previous is None:
            return None

        days_ago = _days_between(previous.timestamp, now)
        if days_ago >= PATTERN_WINDOW_DAYS:
            return None

        plural = "s" if days_ago > 1 else ""
        return SmartSuggestion(
            text=f"This matches a pattern: a similar attack occurred <strong>{days_ago} day{plural} ago</strong>.",
            action="highlightPattern",
        )


def _days_between(earlier: datetime, later: datetime) -> int:
    """Whole days between two instants, rounded half up."""
    if (earlier.tzinfo is None) != (later.tzinfo is None):
        earlier = earlier.replace(tzinfo=None)
        later = later.replace(tzinfo=None)
    seconds = (later - earlier).total_seconds()
    return math.floor(seconds / 86400 + 0.5)
