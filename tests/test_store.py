"""Tests for the validated report store."""

import json
from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from intelsuite.data.processor import ReportStore
from intelsuite.data.schemas import AnalysisRecord, ValidatedReport

BASE = datetime(2024, 5, 20, 9, 30, 0)


@pytest.fixture
def store(tmp_path):
    db_url = f"sqlite:///{tmp_path / 'test.db'}"
    s = ReportStore(db_url)
    yield s
    s.close()


def _report(offset_hours=0, output="TTP ambush on SFs cny at Miran Shah, NWD. @TTP", **analysis):
    analysis.setdefault("who", "TTP")
    analysis.setdefault("action", "ambush")
    analysis.setdefault("target", "SFs cny")
    analysis.setdefault("location", "Miran Shah, NWD")
    return ValidatedReport(
        timestamp=BASE + timedelta(hours=offset_hours),
        raw_input="raw text",
        output=output,
        analysis=AnalysisRecord(**analysis),
    )


class TestSaveLoad:
    def test_save_and_load_newest_first(self, store):
        assert store.save(_report(0, output="first"))
        assert store.save(_report(5, output="second"))
        assert store.save(_report(2, output="middle"))

        outputs = [r.output for r in store.load_all()]
        assert outputs == ["second", "middle", "first"]

    def test_analysis_round_trips(self, store):
        store.save(_report(casualties=["2 x sldrs sh", "1 x sldrs inj"], details=["intense EoF"]))
        [loaded] = store.load_all()
        assert loaded.analysis.casualties == ["2 x sldrs sh", "1 x sldrs inj"]
        assert loaded.analysis.details == ["intense EoF"]
        assert loaded.timestamp == BASE

    def test_duplicate_timestamp_rejected(self, store):
        assert store.save(_report(0)) is True
        assert store.save(_report(0, output="again")) is False
        assert len(store.load_all()) == 1

    def test_timezone_aware_timestamp_stored_naive(self, store):
        aware = ValidatedReport(
            timestamp=datetime(2024, 5, 20, 9, 30, tzinfo=timezone.utc),
            output="aware",
            analysis=AnalysisRecord(),
        )
        assert store.save(aware)
        [loaded] = store.load_all()
        assert loaded.timestamp.tzinfo is None

    def test_empty_store(self, store):
        assert store.load_all() == []


class TestDelete:
    def test_delete_existing(self, store):
        store.save(_report(0, output="keep"))
        store.save(_report(1, output="drop"))
        assert store.delete(BASE + timedelta(hours=1)) is True
        assert [r.output for r in store.load_all()] == ["keep"]

    def test_delete_missing(self, store):
        assert store.delete(BASE) is False


class TestChangeNotification:
    def test_listeners_called_after_save_and_delete(self, store):
        events = []
        store.subscribe(lambda event, ts: events.append((event, ts)))

        store.save(_report(0))
        store.delete(BASE)
        store.delete(BASE)

        assert events == [("saved", BASE), ("deleted", BASE)]

    def test_failed_save_does_not_notify(self, store):
        events = []
        store.save(_report(0))
        store.subscribe(lambda event, ts: events.append(event))
        store.save(_report(0))
        assert events == []

    def test_failing_listener_does_not_break_save(self, store):
        def broken(event, ts):
            raise RuntimeError("view refresh failed")

        store.subscribe(broken)
        assert store.save(_report(0)) is True

    def test_unsubscribe(self, store):
        events = []
        listener = lambda event, ts: events.append(event)  # noqa: E731
        store.subscribe(listener)
        store.unsubscribe(listener)
        store.save(_report(0))
        assert events == []


class TestLogViews:
    def test_filter_log_matches_output_and_notes(self, store):
        store.save(_report(0, output="BLA blast on FC at Bxu. @X"))
        store.save(_report(1, output="TTP raid on LEAs. @X", notes="Follow-up to the Bannu blast"))
        store.save(_report(2, output="FAK raid on SFs. @X"))

        matched = [r.output for r in store.filter_log("BLAST")]
        assert matched == ["TTP raid on LEAs. @X", "BLA blast on FC at Bxu. @X"]

    def test_group_by_date(self, store):
        store.save(_report(0, output="day one"))
        store.save(_report(24, output="day two a"))
        store.save(_report(25, output="day two b"))

        grouped = store.group_by_date()
        assert list(grouped) == ["2024-05-21", "2024-05-20"]
        assert [r.output for r in grouped["2024-05-21"]] == ["day two b", "day two a"]

    def test_export_dataframe(self, store):
        store.save(_report(0, casualties=["2 x sldrs sh"]))
        df = store.export_dataframe()
        assert isinstance(df, pd.DataFrame)
        assert len(df) == 1
        assert df.iloc[0]["casualties"] == "2 x sldrs sh"
        assert df.iloc[0]["threat_level"] == "Severe"

    def test_export_dataframe_empty(self, store):
        assert store.export_dataframe().empty


class TestExportIngest:
    def test_json_export_reingests(self, store, tmp_path):
        store.save(_report(0, casualties=["1 x sldrs inj"]))
        store.save(_report(3))
        path = tmp_path / "exports" / "log.json"
        assert store.export_reports(path, "json") == 2

        other = ReportStore(f"sqlite:///{tmp_path / 'other.db'}")
        try:
            ingested = other.ingest_from_json_file(path)
            assert len(ingested) == 2
            assert [r.timestamp for r in other.load_all()] == [BASE + timedelta(hours=3), BASE]
        finally:
            other.close()

    def test_csv_export(self, store, tmp_path):
        store.save(_report(0))
        path = tmp_path / "log.csv"
        store.export_reports(path, "csv")
        df = pd.read_csv(path)
        assert list(df["who"]) == ["TTP"]

    def test_unknown_format(self, store, tmp_path):
        with pytest.raises(ValueError):
            store.export_reports(tmp_path / "log.xml", "xml")

    def test_ingest_parses_various_timestamps(self, store, tmp_path):
        path = tmp_path / "legacy.json"
        epoch_ms = int(datetime(2024, 1, 2, 3, 4, 5).timestamp() * 1000)
        path.write_text(json.dumps([
            {"timestamp": "2024-01-01 08:15", "output": "one", "analysis": {"who": "TTP"}},
            {"timestamp": epoch_ms, "rawInput": "raw", "output": "two", "analysis": {}},
            {"timestamp": None, "output": "bad", "analysis": {}},
            {"timestamp": "2024-01-03", "analysis": {}},
        ]))

        ingested = store.ingest_from_json_file(path)
        assert [r.output for r in ingested] == ["one", "two"]
        loaded = {r.output: r for r in store.load_all()}
        assert loaded["one"].timestamp == datetime(2024, 1, 1, 8, 15)
        assert loaded["two"].timestamp == datetime(2024, 1, 2, 3, 4, 5)
        assert loaded["two"].raw_input == "raw"

    def test_ingest_missing_file(self, store, tmp_path):
        assert store.ingest_from_json_file(tmp_path / "nope.json") == []
