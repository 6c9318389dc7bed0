"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from intelsuite.cli import main
from intelsuite.core.database import init_db
from intelsuite.data.processor import ReportStore


@pytest.fixture(autouse=True)
def setup_db(tmp_path, monkeypatch):
    """Point every command at a temporary database."""
    db_url = f"sqlite:///{tmp_path / 'test_cli.db'}"
    monkeypatch.setenv("INTELSUITE_DB_URL", db_url)
    from intelsuite.core import config
    monkeypatch.setattr(config, "DATABASE_URL", db_url)
    init_db(db_url)
    return db_url


@pytest.fixture
def runner():
    return CliRunner()


class TestConvertCommand:
    def test_convert(self, runner):
        result = runner.invoke(main, ["convert", "--no-suggest", "TTP ambushed SFs convoy in Bannu"])
        assert result.exit_code == 0
        assert "TTP ambush on SFs cny at Bxu. @X" in result.output
        assert "Threat:" in result.output

    def test_convert_json(self, runner):
        result = runner.invoke(main, ["convert", "--json", "Attack claimed by TTP"])
        assert result.exit_code == 0
        assert '"claimed attk"' in result.output

    def test_convert_file(self, runner, tmp_path):
        path = tmp_path / "reports.txt"
        path.write_text("Attack claimed by TTP\n\nTTP ambushed SFs convoy in Bannu\n")
        result = runner.invoke(main, ["convert", "--file", str(path)])
        assert result.exit_code == 0
        assert "TTP claimed attk. @X" in result.output
        assert "TTP ambush on SFs cny at Bxu. @X" in result.output

    def test_convert_requires_input(self, runner):
        result = runner.invoke(main, ["convert"])
        assert result.exit_code == 1


class TestLogCommands:
    def test_save_then_log(self, runner, setup_db):
        result = runner.invoke(main, ["save", "Attack claimed by TTP", "--notes", "follow up"])
        assert result.exit_code == 0
        assert "Saved:" in result.output

        store = ReportStore(setup_db)
        try:
            [saved] = store.load_all()
        finally:
            store.close()
        assert saved.output == "TTP claimed attk. @X [Notes: follow up]"
        assert saved.analysis.notes == "follow up"

        result = runner.invoke(main, ["log"])
        assert result.exit_code == 0
        assert saved.timestamp.strftime("%Y-%m-%d") in result.output

    def test_save_output_override_keeps_given_line(self, runner, setup_db):
        runner.invoke(main, ["save", "Attack claimed by TTP", "--notes", "x", "--output", "Edited line. @X"])
        store = ReportStore(setup_db)
        try:
            [saved] = store.load_all()
        finally:
            store.close()
        assert saved.output == "Edited line. @X"
        assert saved.analysis.notes == "x"

    def test_log_no_match(self, runner):
        runner.invoke(main, ["save", "Attack claimed by TTP"])
        result = runner.invoke(main, ["log", "-q", "BLA"])
        assert "No validated reports." in result.output

    def test_save_empty(self, runner):
        result = runner.invoke(main, ["save", "   "])
        assert result.exit_code == 1

    def test_delete(self, runner, setup_db):
        runner.invoke(main, ["save", "Attack claimed by TTP"])
        store = ReportStore(setup_db)
        try:
            [saved] = store.load_all()
        finally:
            store.close()

        result = runner.invoke(main, ["delete", saved.timestamp.isoformat()])
        assert result.exit_code == 0
        result = runner.invoke(main, ["delete", saved.timestamp.isoformat()])
        assert result.exit_code == 1

    def test_export_and_ingest(self, runner, setup_db, tmp_path):
        runner.invoke(main, ["save", "Attack claimed by TTP"])
        path = tmp_path / "log.json"
        result = runner.invoke(main, ["export", str(path)])
        assert result.exit_code == 0
        assert len(json.loads(path.read_text())) == 1

        [entry] = json.loads(path.read_text())
        runner.invoke(main, ["delete", entry["timestamp"]])
        result = runner.invoke(main, ["ingest", str(path)])
        assert "Ingested 1 reports" in result.output

    def test_dashboard_empty(self, runner):
        result = runner.invoke(main, ["dashboard"])
        assert result.exit_code == 0
        assert "No validated reports available." in result.output

    def test_dashboard(self, runner):
        runner.invoke(main, ["save", "TTP ambushed SFs convoy in Bannu"])
        result = runner.invoke(main, ["dashboard"])
        assert result.exit_code == 0
        assert "Forecast:" in result.output


class TestConfigCommands:
    def test_export_import(self, runner, tmp_path):
        path = tmp_path / "config.json"
        result = runner.invoke(main, ["config-export", str(path)])
        assert result.exit_code == 0
        assert "TTP" in json.loads(path.read_text())["militantGroups"]

        path.write_text(json.dumps({"militantGroups": ["ISKP"]}))
        result = runner.invoke(main, ["config-import", str(path)])
        assert result.exit_code == 0
        assert "Configuration imported successfully." in result.output

        runner.invoke(main, ["config-export", str(path)])
        assert json.loads(path.read_text())["militantGroups"] == ["ISKP"]

    def test_import_invalid_json(self, runner, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        result = runner.invoke(main, ["config-import", str(path)])
        assert result.exit_code == 1

    def test_import_invalid_shape(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"militantGroups": "TTP"}))
        result = runner.invoke(main, ["config-import", str(path)])
        assert result.exit_code == 1

    def test_reset(self, runner, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"militantGroups": ["ISKP"]}))
        runner.invoke(main, ["config-import", str(path)])

        result = runner.invoke(main, ["config-reset", "--yes"])
        assert result.exit_code == 0
        assert "Configuration reset to defaults." in result.output

        runner.invoke(main, ["config-export", str(path)])
        assert "TTP" in json.loads(path.read_text())["militantGroups"]
