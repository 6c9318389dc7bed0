"""
Report history store: persists validated SITREPs, feeds the suggestion
engine and dashboard, and handles log export/import.
"""

import json
import logging
from collections import OrderedDict
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import pandas as pd
from dateutil import parser as dateparser
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from intelsuite.core.database import ReportRecord, get_session, init_db
from intelsuite.data.schemas import AnalysisRecord, ValidatedReport
from intelsuite.models.threat_scorer import ThreatScorer

logger = logging.getLogger(__name__)

# Callback signature: (event, timestamp) with event in {"saved", "deleted"}
ChangeListener = Callable[[str, datetime], None]


class ReportStore:
    """Stores validated reports and notifies listeners when the log changes."""

    def __init__(self, db_url: Optional[str] = None):
        init_db(db_url)
        self.session = get_session(db_url)
        self.scorer = ThreatScorer()
        self._listeners: list[ChangeListener] = []

    # --- Change notification ---

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, event: str, timestamp: datetime) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, timestamp)
            except Exception as e:
                logger.error(f"Report change listener failed on '{event}': {e}")

    # --- History port ---

    def load_all(self) -> list[ValidatedReport]:
        """All validated reports, newest first. Store errors yield an empty log."""
        try:
            records = (
                self.session.query(ReportRecord)
                .order_by(ReportRecord.timestamp.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error loading reports: {e}")
            return []

        reports = []
        for record in records:
            try:
                reports.append(self._to_report(record))
            except ValidationError as e:
                logger.warning(f"Skipping report #{record.id} with unreadable analysis: {e}")
        return reports

    def save(self, report: ValidatedReport) -> bool:
        threat = self.scorer.score(report.analysis)
        timestamp = self.parse_timestamp(report.timestamp)
        record = ReportRecord(
            timestamp=timestamp,
            raw_input=report.raw_input,
            output=report.output,
            analysis=report.analysis.model_dump(),
            threat_level=threat.level,
            location=report.analysis.location or None,
        )
        try:
            self.session.add(record)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error saving report: {e}")
            return False

        logger.info(f"Saved report #{record.id}: {report.output[:80]}")
        self._notify("saved", timestamp)
        return True

    def delete(self, timestamp: datetime) -> bool:
        timestamp = self.parse_timestamp(timestamp)
        try:
            deleted = (
                self.session.query(ReportRecord)
                .filter(ReportRecord.timestamp == timestamp)
                .delete()
            )
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Error deleting report {timestamp}: {e}")
            return False

        if not deleted:
            logger.warning(f"No report found with timestamp {timestamp}")
            return False

        logger.info(f"Deleted report {timestamp.isoformat()}")
        self._notify("deleted", timestamp)
        return True

    @staticmethod
    def _to_report(record: ReportRecord) -> ValidatedReport:
        return ValidatedReport(
            timestamp=record.timestamp,
            raw_input=record.raw_input or "",
            output=record.output,
            analysis=AnalysisRecord.model_validate(record.analysis),
        )

    # --- Log views ---

    def filter_log(self, query: str,
                   reports: Optional[list[ValidatedReport]] = None) -> list[ValidatedReport]:
        """Case-insensitive match on the SITREP line or the analyst notes."""
        if reports is None:
            reports = self.load_all()
        needle = query.lower()
        return [
            r for r in reports
            if needle in r.output.lower()
            or (r.analysis.notes and needle in r.analysis.notes.lower())
        ]

    def group_by_date(self, reports: Optional[list[ValidatedReport]] = None
                      ) -> "OrderedDict[str, list[ValidatedReport]]":
        """Group reports by calendar day, most recent day first."""
        if reports is None:
            reports = self.load_all()
        grouped: dict[str, list[ValidatedReport]] = {}
        for report in reports:
            grouped.setdefault(report.timestamp.date().isoformat(), []).append(report)
        return OrderedDict(sorted(grouped.items(), reverse=True))

    def export_dataframe(self, reports: Optional[list[ValidatedReport]] = None) -> pd.DataFrame:
        """Flatten reports into a DataFrame for analysis and export."""
        if reports is None:
            reports = self.load_all()
        if not reports:
            return pd.DataFrame()

        rows = []
        for r in reports:
            a = r.analysis
            threat = self.scorer.score(a)
            rows.append({
                "timestamp": r.timestamp,
                "output": r.output,
                "raw_input": r.raw_input,
                "who": a.who,
                "action": a.action,
                "target": a.target,
                "location": a.location,
                "casualties": "; ".join(a.casualties),
                "details": "; ".join(a.details),
                "source": a.source,
                "notes": a.notes,
                "threat_level": threat.level,
                "threat_score": threat.score,
            })
        return pd.DataFrame(rows)

    # --- Export / import ---

    def export_reports(self, file_path: str | Path, fmt: str = "json") -> int:
        """Write the log as JSON (re-importable) or CSV. Returns the report count."""
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        reports = self.load_all()

        if fmt == "json":
            payload = [r.model_dump(mode="json") for r in reports]
            with open(path, "w") as f:
                json.dump(payload, f, indent=2)
        elif fmt == "csv":
            self.export_dataframe(reports).to_csv(path, index=False)
        else:
            raise ValueError(f"Unsupported export format '{fmt}'. Use 'json' or 'csv'.")

        logger.info(f"Exported {len(reports)} reports to {path}")
        return len(reports)

    def ingest_bulk_reports(self, reports_data: list[dict]) -> list[ValidatedReport]:
        """Validate and store report dicts, skipping malformed entries."""
        ingested = []
        for data in reports_data:
            try:
                data = dict(data)
                data["timestamp"] = self.parse_timestamp(data.get("timestamp"))
                if "rawInput" in data and "raw_input" not in data:
                    data["raw_input"] = data.pop("rawInput")
                report = ValidatedReport.model_validate(data)
            except (ValidationError, ValueError, OverflowError, TypeError) as e:
                logger.error(f"Failed to ingest report: {e} | Data: {data}")
                continue
            if self.save(report):
                ingested.append(report)
        return ingested

    def ingest_from_json_file(self, file_path: str | Path) -> list[ValidatedReport]:
        """Load and ingest a report log previously written by ``export_reports``."""
        path = Path(file_path)
        if not path.exists():
            logger.error(f"File not found: {path}")
            return []

        with open(path) as f:
            data = json.load(f)

        if isinstance(data, dict):
            data = data.get("reports", [data])

        return self.ingest_bulk_reports(data)

    @staticmethod
    def parse_timestamp(value) -> datetime:
        """Accept datetimes, ISO/free-form strings, or epoch milliseconds."""
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000)
        elif isinstance(value, str) and value.strip():
            parsed = dateparser.parse(value)
        else:
            raise ValueError(f"Missing or invalid timestamp: {value!r}")
        # Stored timestamps are naive local time
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone().replace(tzinfo=None)
        return parsed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the database session."""
        self.session.close()
