"""Tests for smart suggestions."""

from datetime import datetime, timedelta

import pytest

from intelsuite.data.schemas import AnalysisRecord, ValidatedReport
from intelsuite.models.suggestions import SuggestionEngine

NOW = datetime(2024, 5, 20, 12, 0, 0)


def _report(days_ago, **analysis):
    return ValidatedReport(
        timestamp=NOW - timedelta(days=days_ago),
        output="stored report",
        analysis=AnalysisRecord(**analysis),
    )


@pytest.fixture
def engine():
    return SuggestionEngine()


class TestPatternHint:
    def test_similar_attack_five_days_ago(self, engine):
        history = [
            _report(5, who="TTP", action="ambush", target="SFs cny"),
            _report(10, who="TTP", action="ambush", target="SFs cny"),
        ]
        current = AnalysisRecord(who="TTP", action="ambush", target="SFs cny")
        suggestions = engine.suggest(current, history, raw_input="TTP ambushed convoy", now=NOW)

        patterns = [s for s in suggestions if s.action == "highlightPattern"]
        assert len(patterns) == 1
        assert "5 days" in patterns[0].text

    def test_single_day_not_pluralised(self, engine):
        history = [_report(1, action="blast", target="FC")]
        current = AnalysisRecord(action="blast", target="FC")
        [hint] = [s for s in engine.suggest(current, history, now=NOW) if s.action == "highlightPattern"]
        assert "1 day ago" in hint.text

    def test_half_day_rounds_up(self, engine):
        history = [_report(2.5, action="blast", target="FC")]
        current = AnalysisRecord(action="blast", target="FC")
        [hint] = [s for s in engine.suggest(current, history, now=NOW) if s.action == "highlightPattern"]
        assert "3 days" in hint.text

    def test_outside_window(self, engine):
        history = [_report(14, action="blast", target="FC")]
        current = AnalysisRecord(action="blast", target="FC")
        assert not [s for s in engine.suggest(current, history, now=NOW) if s.action == "highlightPattern"]

    def test_target_must_match(self, engine):
        history = [_report(2, action="blast", target="FC")]
        current = AnalysisRecord(action="blast", target="LEAs")
        assert not [s for s in engine.suggest(current, history, now=NOW) if s.action == "highlightPattern"]


class TestAttributionHint:
    def test_most_active_group_in_location_code(self, engine):
        history = [
            _report(1, who="BLA", location="Mir Ali, NWD"),
            _report(2, who="TTP", location="Miran Shah, NWD"),
            _report(3, who="TTP", location="Shewa, NWD"),
            _report(4, who="FAK", location="Bxu"),
            _report(5, who="Unknown Ts", location="Datta Khel, NWD"),
        ]
        current = AnalysisRecord(location="Razmak, NWD", action="strike", target="Army")
        suggestions = engine.suggest(current, history, now=NOW)

        [hint] = [s for s in suggestions if s.action == "setField"]
        assert hint.field == "who"
        assert hint.value == "TTP"
        assert "NWD" in hint.text

    def test_not_offered_when_actor_known(self, engine):
        history = [_report(1, who="TTP", location="Mir Ali, NWD")]
        current = AnalysisRecord(who="BLA", location="Razmak, NWD")
        assert not [s for s in engine.suggest(current, history, now=NOW) if s.action == "setField"]


class TestCasualtyAndTipHints:
    def test_casualty_mention_without_parsed_casualties(self, engine):
        current = AnalysisRecord(action="raid", target="SFs")
        suggestions = engine.suggest(current, [], raw_input="Heavy casualties in the raid", now=NOW)
        assert [(s.action, s.field) for s in suggestions] == [("focusField", "casualties")]

    def test_no_casualty_hint_when_casualties_parsed(self, engine):
        current = AnalysisRecord(casualties=["2 x sldrs sh"])
        suggestions = engine.suggest(current, [], raw_input="2 sldrs sh, more cas expected", now=NOW)
        assert all(s.field != "casualties" for s in suggestions)

    def test_pro_tip_when_nothing_else(self, engine):
        suggestions = engine.suggest(AnalysisRecord(), [], raw_input="quiet day", now=NOW)
        assert len(suggestions) == 1
        assert suggestions[0].action == "focusField"
        assert suggestions[0].field == "notes"
        assert "Pro Tip" in suggestions[0].text
