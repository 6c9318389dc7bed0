"""
Command-line interface for intelsuite.
"""

import json
import logging
import sys
from datetime import datetime

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from intelsuite.core.database import init_db
from intelsuite.data.processor import ReportStore
from intelsuite.data.schemas import ValidatedReport
from intelsuite.intel.report_assembler import assemble_report
from intelsuite.intel.report_parser import ReportParser
from intelsuite.intel.tables import ConfigurationError, ConfigurationTables, SqlConfigurationStore

console = Console()
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

LEVEL_STYLES = {
    "Severe": "bold red",
    "High": "red",
    "Medium": "yellow",
    "Low": "green",
}


def _load_tables() -> ConfigurationTables:
    return ConfigurationTables(SqlConfigurationStore()).load()


def _styled(level: str) -> str:
    style = LEVEL_STYLES.get(level, "white")
    return f"[{style}]{level}[/{style}]"


@click.group()
def main():
    """intelsuite: shorthand field reports to standardized SITREPs."""
    pass


@main.command()
def init():
    """Initialize the database and create tables."""
    init_db()
    console.print("[green]Database initialized successfully.[/green]")


@main.command()
@click.argument("text", required=False)
@click.option("--file", "file_path", type=click.Path(exists=True), help="Read reports from a file, one per line")
@click.option("--json", "as_json", is_flag=True, help="Print the full analysis as JSON")
@click.option("--suggest/--no-suggest", default=True, help="Show smart suggestions from the report log")
def convert(text, file_path, as_json, suggest):
    """Convert a raw report (or a file of reports) into SITREP lines."""
    from intelsuite.models.suggestions import SuggestionEngine
    from intelsuite.models.threat_scorer import ThreatScorer

    if file_path:
        with open(file_path) as f:
            text = f.read()
    if not text:
        console.print("[red]Provide report TEXT or --file.[/red]")
        sys.exit(1)

    parser = ReportParser(_load_tables())
    scorer = ThreatScorer()
    results = parser.batch_convert(text) if file_path else [parser.convert(text)]

    if as_json:
        payload = [
            {
                "report": r.report,
                "analysis": r.analysis.model_dump(),
                "threat": scorer.score(r.analysis).model_dump(),
            }
            for r in results
        ]
        console.print_json(json.dumps(payload if file_path else payload[0]))
        return

    history = []
    if suggest and not file_path:
        store = ReportStore()
        try:
            history = store.load_all()
        finally:
            store.close()

    for r in results:
        threat = scorer.score(r.analysis)
        console.print(f"[bold]{escape(r.report)}[/bold]")
        console.print(f"  Threat: {_styled(threat.level)} (score {threat.score})")
        if suggest and not file_path:
            for s in SuggestionEngine().suggest(r.analysis, history, raw_input=text):
                hint = s.text.replace("<strong>", "[bold]").replace("</strong>", "[/bold]")
                console.print(f"  [cyan]>[/cyan] {hint}")


@main.command()
@click.argument("text")
@click.option("--notes", default="", help="Analyst notes stored with the report")
@click.option("--output", default=None, help="Override the generated SITREP line")
def save(text, notes, output):
    """Convert a raw report and store it in the validated log."""
    result = ReportParser(_load_tables()).convert(text)
    if not result.report:
        console.print("[red]Nothing to save: report is empty.[/red]")
        sys.exit(1)

    analysis = result.analysis
    analysis.notes = notes
    report = ValidatedReport(
        timestamp=datetime.now(),
        raw_input=text,
        output=output or assemble_report(analysis),
        analysis=analysis,
    )

    store = ReportStore()
    try:
        if store.save(report):
            console.print(f"[green]Saved:[/green] {escape(report.output)}")
            console.print(f"  Timestamp: {report.timestamp.isoformat()}")
        else:
            console.print("[red]Failed to save report.[/red]")
            sys.exit(1)
    finally:
        store.close()


@main.command()
@click.option("--query", "-q", default=None, help="Filter by text in the SITREP or notes")
@click.option("--limit", default=50, help="Maximum reports to show")
def log(query, limit):
    """Show the validated report log grouped by date."""
    from intelsuite.models.threat_scorer import ThreatScorer

    store = ReportStore()
    try:
        reports = store.load_all()
        if query:
            reports = store.filter_log(query, reports)
        if not reports:
            console.print("[yellow]No validated reports.[/yellow]")
            return

        scorer = ThreatScorer()
        for day, day_reports in store.group_by_date(reports[:limit]).items():
            table = Table(title=day)
            table.add_column("Time")
            table.add_column("SITREP")
            table.add_column("Threat")
            table.add_column("Timestamp", style="dim")
            for r in day_reports:
                threat = scorer.score(r.analysis)
                table.add_row(
                    r.timestamp.strftime("%H:%M"),
                    escape(r.output),
                    _styled(threat.level),
                    r.timestamp.isoformat(),
                )
            console.print(table)
    finally:
        store.close()


@main.command()
@click.argument("timestamp")
def delete(timestamp):
    """Delete a validated report by timestamp (as shown by 'log')."""
    store = ReportStore()
    try:
        try:
            ts = store.parse_timestamp(int(timestamp) if timestamp.isdigit() else timestamp)
        except (ValueError, OverflowError):
            console.print(f"[red]Invalid timestamp: {timestamp}[/red]")
            sys.exit(1)
        if store.delete(ts):
            console.print(f"[green]Deleted report {ts.isoformat()}[/green]")
        else:
            console.print(f"[red]No report found at {ts.isoformat()}[/red]")
            sys.exit(1)
    finally:
        store.close()


@main.command()
@click.option("--top", default=5, help="Number of hotspots to show")
def dashboard(top):
    """Display KPIs, forecast and hotspots for the validated log."""
    from intelsuite.analysis.dashboard import DashboardAnalyzer

    store = ReportStore()
    try:
        reports = store.load_all()
    finally:
        store.close()

    if not reports:
        console.print("[yellow]No validated reports available.[/yellow]")
        return

    analyzer = DashboardAnalyzer(reports, tables=_load_tables())
    kpis = analyzer.kpis()

    table = Table(title="intelsuite: Intelligence Dashboard")
    table.add_column("Total Incidents")
    table.add_column("Avg Threat Level")
    table.add_column("Most Active Group")
    table.add_column("Lethal Attacks")
    table.add_row(
        str(kpis["total_incidents"]),
        _styled(kpis["avg_threat_level"]),
        kpis["most_active_group"],
        str(kpis["lethal_attacks"]),
    )
    console.print(table)

    activity = analyzer.activity_windows()
    console.print(
        f"Activity: {activity['last_24h']} (24h) / {activity['last_7d']} (7d) / {activity['last_30d']} (30d)"
    )
    console.print(f"[bold]Forecast:[/bold] {analyzer.forecast()}")

    hotspots = analyzer.hotspots(top)
    if hotspots:
        hs_table = Table(title="Hotspots")
        hs_table.add_column("Code", style="bold")
        hs_table.add_column("Incidents")
        hs_table.add_column("Lat/Lon")
        for h in hotspots:
            coords = f"{h['lat']}, {h['lon']}" if h["lat"] is not None else "N/A"
            hs_table.add_row(h["code"], str(h["incident_count"]), coords)
        console.print(hs_table)


@main.command()
@click.argument("file_path")
@click.option("--format", "fmt", type=click.Choice(["json", "csv"]), default="json")
def export(file_path, fmt):
    """Export the validated log to a JSON or CSV file."""
    store = ReportStore()
    try:
        count = store.export_reports(file_path, fmt)
        console.print(f"[green]Exported {count} reports to {file_path}[/green]")
    finally:
        store.close()


@main.command()
@click.argument("file_path")
def ingest(file_path):
    """Ingest validated reports from a JSON export."""
    store = ReportStore()
    try:
        reports = store.ingest_from_json_file(file_path)
        console.print(f"[green]Ingested {len(reports)} reports from {file_path}[/green]")
    finally:
        store.close()


@main.command("config-export")
@click.argument("file_path", required=False)
def config_export(file_path):
    """Export the lookup tables as JSON (to stdout or a file)."""
    payload = _load_tables().export_configuration()
    if file_path:
        with open(file_path, "w") as f:
            json.dump(payload, f, indent=2)
        console.print(f"[green]Configuration exported to {file_path}[/green]")
    else:
        console.print_json(json.dumps(payload))


@main.command("config-import")
@click.argument("file_path", type=click.Path(exists=True))
def config_import(file_path):
    """Import lookup tables from a JSON file and persist them."""
    with open(file_path) as f:
        try:
            payload = json.load(f)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid JSON in {file_path}: {e}[/red]")
            sys.exit(1)

    tables = _load_tables()
    try:
        tables.import_configuration(payload)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if tables.save():
        console.print("[green]Configuration imported successfully.[/green]")
    else:
        console.print("[red]Configuration could not be saved.[/red]")
        sys.exit(1)


@main.command("config-reset")
@click.confirmation_option(prompt="Reset all lookup tables to defaults?")
def config_reset():
    """Restore the built-in lookup tables."""
    if _load_tables().reset_to_defaults():
        console.print("[green]Configuration reset to defaults.[/green]")
    else:
        console.print("[red]Configuration could not be saved.[/red]")
        sys.exit(1)


@main.command()
@click.option("--port", default=8000, help="Port to listen on")
def serve(port):
    """Start the intelsuite API server."""
    import uvicorn
    console.print(f"[green]Starting intelsuite server on http://0.0.0.0:{port}[/green]")
    console.print(f"  API Docs:    http://localhost:{port}/docs")
    uvicorn.run("intelsuite.api.app:app", host="0.0.0.0", port=port, reload=True)


if __name__ == "__main__":
    main()
