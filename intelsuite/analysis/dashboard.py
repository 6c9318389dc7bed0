"""
Dashboard analytics over the validated report log.

Provides: headline KPIs, a short-horizon threat forecast narrative,
activity windows, location-code hotspots and the recent log.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

import pandas as pd

from intelsuite.core.config import (
    ACTIVITY_WINDOWS,
    FORECAST_MIN_REPORTS,
    FORECAST_WINDOW_DAYS,
    UNKNOWN_ACTOR,
)
from intelsuite.data.schemas import ValidatedReport
from intelsuite.intel.tables import ConfigurationTables
from intelsuite.models.threat_scorer import ThreatScorer

logger = logging.getLogger(__name__)

LETHAL_MARKERS = ("sh", "killed", "martyred")

INSUFFICIENT_DATA_FORECAST = (
    "Insufficient recent data for reliable forecast. "
    "Need more reports from the last 7 days."
)


class DashboardAnalyzer:
    """Summarises a report log for the intelligence dashboard."""

    def __init__(self, reports: list[ValidatedReport],
                 scorer: Optional[ThreatScorer] = None,
                 tables: Optional[ConfigurationTables] = None):
        self.reports = reports
        self.scorer = scorer or ThreatScorer()
        self.tables = tables or ConfigurationTables()
        self.df = self._build_frame()

    def _build_frame(self) -> pd.DataFrame:
        rows = []
        for r in self.reports:
            threat = self.scorer.score(r.analysis)
            ts = r.timestamp
            if ts.tzinfo is not None:
                ts = ts.astimezone().replace(tzinfo=None)
            rows.append({
                "timestamp": ts,
                "who": r.analysis.who,
                "location": r.analysis.location,
                "score": threat.score,
                "level": threat.level,
                "lethal": any(
                    marker in fragment
                    for fragment in r.analysis.casualties
                    for marker in LETHAL_MARKERS
                ),
            })
        df = pd.DataFrame(rows, columns=["timestamp", "who", "location", "score", "level", "lethal"])
        if not df.empty:
            df["timestamp"] = pd.to_datetime(df["timestamp"])
        return df

    def kpis(self) -> dict:
        if self.df.empty:
            return {
                "total_incidents": 0,
                "avg_threat_level": "N/A",
                "most_active_group": "N/A",
                "lethal_attacks": 0,
            }

        avg_level, _ = ThreatScorer.level_for_score(self.df["score"].mean())

        # Counter keeps first-seen order on ties
        groups = Counter(w for w in self.df["who"] if w and w != UNKNOWN_ACTOR)
        most_active = groups.most_common(1)[0][0] if groups else "N/A"

        return {
            "total_incidents": len(self.df),
            "avg_threat_level": avg_level,
            "most_active_group": most_active,
            "lethal_attacks": int(self.df["lethal"].sum()),
        }

    def forecast(self, now: Optional[datetime] = None) -> str:
        """Narrative outlook from the last week of reports."""
        now = now or datetime.now()
        recent = self._since(now - timedelta(days=FORECAST_WINDOW_DAYS))

        if len(recent) < FORECAST_MIN_REPORTS:
            return INSUFFICIENT_DATA_FORECAST

        avg_daily = len(recent) / FORECAST_WINDOW_DAYS
        avg_threat = recent["score"].mean()
        text = (
            f"Based on {len(recent)} incidents in the last {FORECAST_WINDOW_DAYS} days "
            f"({avg_daily:.1f} per day), "
        )

        if avg_threat < 10:
            text += "threat levels remain relatively stable with low-to-medium risk activities expected."
        elif avg_threat < 18:
            text += "moderate threat levels suggest continued militant activity with potential for escalation."
        else:
            text += "high threat environment indicates elevated risk of significant incidents in the near term."
        return text

    def activity_windows(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now()
        return {
            name: len(self._since(now - timedelta(days=days)))
            for name, days in ACTIVITY_WINDOWS.items()
        }

    def hotspots(self, top_n: int = 5) -> list[dict]:
        """Location codes with the most reports, with coordinates where known."""
        if self.df.empty:
            return []

        coords = {loc.code: loc for loc in self.tables.location_codes.values()}
        codes = self.df["location"].map(lambda loc: _location_code(loc, coords)).dropna()
        if codes.empty:
            return []

        hotspots = []
        for code, count in Counter(codes).most_common(top_n):
            loc = coords.get(code)
            hotspots.append({
                "code": code,
                "incident_count": int(count),
                "lat": loc.lat if loc else None,
                "lon": loc.lon if loc else None,
            })
        return hotspots

    def recent_log(self, limit: int = 10) -> list[dict]:
        """Newest reports with their threat level."""
        ordered = sorted(self.reports, key=lambda r: r.timestamp, reverse=True)
        log = []
        for r in ordered[:limit]:
            threat = self.scorer.score(r.analysis)
            log.append({
                "timestamp": r.timestamp.isoformat(),
                "output": r.output,
                "threat_level": threat.level,
                "threat_score": threat.score,
            })
        return log

    def summary(self, now: Optional[datetime] = None, top_n: int = 5) -> dict:
        now = now or datetime.now()
        return {
            "kpis": self.kpis(),
            "forecast": self.forecast(now),
            "activity": self.activity_windows(now),
            "hotspots": self.hotspots(top_n),
            "recent": self.recent_log(),
        }

    def _since(self, start: datetime) -> pd.DataFrame:
        if self.df.empty:
            return self.df
        return self.df[self.df["timestamp"] >= pd.Timestamp(start)]


def _location_code(location: Optional[str], known_codes) -> Optional[str]:
    """'Miran Shah, NWD' -> 'NWD', 'Tirah, KHY' -> 'Khy'; None unless the code is in the table."""
    if not location:
        return None
    code = location.rsplit(",", 1)[-1].strip().upper()
    for known in known_codes:
        if known.upper() == code:
            return known
    return None
