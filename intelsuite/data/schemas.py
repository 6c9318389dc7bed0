"""
Pydantic schemas for analysis records, validated reports and the
configuration import/export format.
"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intelsuite.core.config import BASELINE_ACTION, UNKNOWN_ACTOR


def _unique_in_order(fragments: list[str]) -> list[str]:
    seen = set()
    ordered = []
    for fragment in fragments:
        if fragment not in seen:
            seen.add(fragment)
            ordered.append(fragment)
    return ordered


class AnalysisRecord(BaseModel):
    """
    Working structure for one report.

    ``casualties`` and ``details`` behave as ordered sets: fragments keep
    the order they were added in and duplicates are dropped.
    """

    who: str = UNKNOWN_ACTOR
    action: str = BASELINE_ACTION
    target: Optional[str] = None
    location: str = ""
    casualties: list[str] = []
    details: list[str] = []
    source: str = ""
    notes: str = ""

    @field_validator("casualties", "details")
    @classmethod
    def _dedupe(cls, value: list[str]) -> list[str]:
        return _unique_in_order(value)

    def add_casualty(self, fragment: str) -> None:
        if fragment not in self.casualties:
            self.casualties.append(fragment)

    def add_detail(self, fragment: str) -> None:
        if fragment not in self.details:
            self.details.append(fragment)


class ConversionResult(BaseModel):
    """Assembled SITREP line plus the analysis it was built from."""

    report: str
    analysis: AnalysisRecord


class ValidatedReport(BaseModel):
    """A report accepted by an analyst and stored in the history log."""

    timestamp: datetime
    raw_input: str = ""
    output: str
    analysis: AnalysisRecord


class ThreatLevel(BaseModel):
    level: Literal["Low", "Medium", "High", "Severe"]
    score: int
    width: str


class SmartSuggestion(BaseModel):
    """Authoring hint. ``text`` may carry <strong> emphasis for display."""

    text: str
    action: Literal["setField", "focusField", "highlightPattern"]
    field: Optional[str] = None
    value: Optional[str] = None


class LocationCode(BaseModel):
    code: str
    lat: float
    lon: float


class ConfigurationPayload(BaseModel):
    """Import/export format. Absent keys leave the current table untouched on import."""

    model_config = ConfigDict(populate_by_name=True)

    action_map: Optional[dict[str, list[str]]] = Field(default=None, alias="actionMap")
    target_map: Optional[dict[str, list[str]]] = Field(default=None, alias="targetMap")
    location_codes: Optional[dict[str, LocationCode]] = Field(default=None, alias="locationCodes")
    militant_groups: Optional[list[str]] = Field(default=None, alias="militantGroups")


# --- API request bodies ---

class ConvertRequest(BaseModel):
    text: str
    suggest: bool = True


class SaveReportRequest(BaseModel):
    raw_input: str = ""
    output: Optional[str] = None
    analysis: Optional[AnalysisRecord] = None
    timestamp: Optional[datetime] = None


class KeywordRequest(BaseModel):
    category: str
    keyword: str


class GroupRequest(BaseModel):
    name: str
