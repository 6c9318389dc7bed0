"""
FastAPI application for the intelsuite SITREP engine.
Provides REST API endpoints for conversion, the validated log,
the dashboard and the editable lookup tables.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

from intelsuite.analysis.dashboard import DashboardAnalyzer
from intelsuite.core.database import init_db
from intelsuite.data.processor import ReportStore
from intelsuite.data.schemas import (
    ConvertRequest,
    GroupRequest,
    KeywordRequest,
    SaveReportRequest,
    ValidatedReport,
)
from intelsuite.intel.report_assembler import assemble_report
from intelsuite.intel.report_parser import ReportParser
from intelsuite.intel.tables import ConfigurationError, ConfigurationTables, SqlConfigurationStore
from intelsuite.models.suggestions import SuggestionEngine
from intelsuite.models.threat_scorer import ThreatScorer

logger = logging.getLogger(__name__)

app = FastAPI(
    title="intelsuite",
    description="Converts shorthand field reports into standardized one-line SITREPs "
                "with threat scoring, authoring suggestions and a validated report log.",
    version="0.1.0",
)

# Global state
scorer = ThreatScorer()
suggestion_engine = SuggestionEngine()
_tables: Optional[ConfigurationTables] = None


def get_tables() -> ConfigurationTables:
    """Process-wide lookup tables, loaded from the store on first use."""
    global _tables
    if _tables is None:
        _tables = ConfigurationTables(SqlConfigurationStore()).load()
    return _tables


def _parse_timestamp(value: str) -> datetime:
    try:
        if value.isdigit():
            return ReportStore.parse_timestamp(int(value))
        return ReportStore.parse_timestamp(value)
    except (ValueError, OverflowError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid timestamp '{value}': {e}")


@app.on_event("startup")
def startup():
    init_db()
    get_tables()


# --- Conversion ---

@app.post("/api/convert", tags=["Conversion"])
def convert_report(req: ConvertRequest):
    """Convert a raw field report into a SITREP line with threat and suggestions."""
    result = ReportParser(get_tables()).convert(req.text)
    threat = scorer.score(result.analysis)

    suggestions = []
    if req.suggest and req.text.strip():
        store = ReportStore()
        try:
            history = store.load_all()
        finally:
            store.close()
        suggestions = suggestion_engine.suggest(result.analysis, history, raw_input=req.text)

    return {
        "report": result.report,
        "analysis": result.analysis.model_dump(),
        "threat": threat.model_dump(),
        "suggestions": [s.model_dump() for s in suggestions],
    }


@app.post("/api/convert/batch", tags=["Conversion"])
def convert_batch(req: ConvertRequest):
    """Convert one report per line."""
    results = ReportParser(get_tables()).batch_convert(req.text)
    return {
        "reports": [
            {
                "report": r.report,
                "analysis": r.analysis.model_dump(),
                "threat": scorer.score(r.analysis).model_dump(),
            }
            for r in results
        ],
        "total": len(results),
    }


# --- Validated log ---

@app.get("/api/reports", tags=["Reports"])
def list_reports(
    q: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
):
    """List validated reports, newest first, optionally filtered by text."""
    store = ReportStore()
    try:
        reports = store.load_all()
        if q:
            reports = store.filter_log(q, reports)
        return {
            "reports": [r.model_dump(mode="json") for r in reports[:limit]],
            "total": len(reports),
        }
    finally:
        store.close()


@app.post("/api/reports", tags=["Reports"])
def save_report(req: SaveReportRequest):
    """
    Validate and store a report. When ``analysis`` is omitted the raw input
    is converted first; when ``output`` is omitted it is assembled from the analysis.
    """
    if req.analysis is None:
        if not req.raw_input.strip():
            raise HTTPException(status_code=400, detail="Either raw_input or analysis is required")
        analysis = ReportParser(get_tables()).convert(req.raw_input).analysis
    else:
        analysis = req.analysis

    output = req.output or assemble_report(analysis)
    report = ValidatedReport(
        timestamp=req.timestamp or datetime.now(),
        raw_input=req.raw_input,
        output=output,
        analysis=analysis,
    )

    store = ReportStore()
    try:
        if not store.save(report):
            raise HTTPException(status_code=503, detail="Report could not be stored")
    finally:
        store.close()

    return {
        "status": "created",
        "timestamp": report.timestamp.isoformat(),
        "output": output,
        "threat": scorer.score(analysis).model_dump(),
    }


@app.get("/api/reports/export", tags=["Reports"])
def export_reports(fmt: str = Query(default="json", pattern="^(json|csv)$")):
    """Export the validated log as JSON records or CSV."""
    store = ReportStore()
    try:
        reports = store.load_all()
        if fmt == "csv":
            return PlainTextResponse(store.export_dataframe(reports).to_csv(index=False),
                                     media_type="text/csv")
        return {"reports": [r.model_dump(mode="json") for r in reports], "total": len(reports)}
    finally:
        store.close()


@app.delete("/api/reports/{timestamp}", tags=["Reports"])
def delete_report(timestamp: str):
    """Delete a validated report by its timestamp (ISO string or epoch milliseconds)."""
    ts = _parse_timestamp(timestamp)
    store = ReportStore()
    try:
        if not store.delete(ts):
            raise HTTPException(status_code=404, detail="Report not found")
        return {"status": "deleted", "timestamp": ts.isoformat()}
    finally:
        store.close()


# --- Dashboard ---

@app.get("/api/dashboard", tags=["Dashboard"])
def dashboard(top_n: int = Query(default=5, ge=1, le=50)):
    """KPIs, forecast, activity windows, hotspots and the recent log."""
    store = ReportStore()
    try:
        reports = store.load_all()
    finally:
        store.close()

    return DashboardAnalyzer(reports, scorer, get_tables()).summary(datetime.now(), top_n)


# --- Configuration ---

@app.get("/api/config", tags=["Configuration"])
def export_config():
    """Export the current lookup tables."""
    return get_tables().export_configuration()


@app.put("/api/config", tags=["Configuration"])
def import_config(payload: dict):
    """Import lookup tables; only the keys present are replaced. Persists on success."""
    tables = get_tables()
    try:
        tables.import_configuration(payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not tables.save():
        raise HTTPException(status_code=503, detail="Configuration imported but could not be saved")
    return {"status": "imported", "config": tables.export_configuration()}


@app.post("/api/config/save", tags=["Configuration"])
def save_config():
    if not get_tables().save():
        raise HTTPException(status_code=503, detail="Configuration could not be saved")
    return {"status": "saved"}


@app.post("/api/config/reset", tags=["Configuration"])
def reset_config():
    """Restore built-in defaults and persist them."""
    tables = get_tables()
    if not tables.reset_to_defaults():
        raise HTTPException(status_code=503, detail="Defaults restored but could not be saved")
    return {"status": "reset", "config": tables.export_configuration()}


@app.post("/api/config/keywords/{table}", tags=["Configuration"])
def add_keyword(table: str, req: KeywordRequest):
    """Add a keyword to the action or target table (in memory until saved)."""
    try:
        added = get_tables().add_keyword(table, req.category, req.keyword)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "added" if added else "unchanged", "table": table, "category": req.category}


@app.delete("/api/config/keywords/{table}", tags=["Configuration"])
def remove_keyword(table: str, category: str, keyword: str):
    try:
        removed = get_tables().remove_keyword(table, category, keyword)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not removed:
        raise HTTPException(status_code=404, detail=f"Keyword '{keyword}' not found in '{category}'")
    return {"status": "removed", "table": table, "category": category}


@app.post("/api/config/groups", tags=["Configuration"])
def add_group(req: GroupRequest):
    tables = get_tables()
    added = tables.add_group(req.name)
    return {"status": "added" if added else "unchanged", "groups": tables.militant_groups}


@app.delete("/api/config/groups", tags=["Configuration"])
def remove_group(name: str):
    tables = get_tables()
    if not tables.remove_group(name):
        raise HTTPException(status_code=404, detail=f"Group '{name}' not found")
    return {"status": "removed", "groups": tables.militant_groups}


# --- System ---

@app.get("/api/status", tags=["System"])
def system_status():
    """Get system status and configuration summary."""
    tables = get_tables()
    return {
        "status": "operational",
        "version": "0.1.0",
        "action_categories": len(tables.action_map),
        "target_categories": len(tables.target_map),
        "location_codes": len(tables.location_codes),
        "militant_groups": len(tables.militant_groups),
    }
