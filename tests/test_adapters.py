import pytest

from conftest import csv_text, espn_event, mock_feed, routes, run, scoreboard, week1_feed
from pickem.ingestion.adapters import build_canonical_csv, to_canonical_csv
from pickem.ingestion.schedule import EmptyFeedError
from pickem.models.enums import FeedKind
from pickem.models.game import ScheduleRow
from pickem.normalization.csv_parser import parse_csv
from pickem.normalization.resolver import accept_schedule_rows


def adapt(settings, mapping, kind, **kwargs):
    async def go():
        async with mock_feed(settings, routes(mapping)) as feed:
            return await build_canonical_csv(settings, feed, kind, **kwargs)

    return run(go())


def test_to_canonical_csv():
    rows = [
        ScheduleRow(season=2025, week=1, home="KC", away="BAL", kickoff="2025-09-07T17:00:00Z"),
        ScheduleRow(season=2025, week=1, home="BUF", away="NE"),
    ]
    assert to_canonical_csv(rows) == (
        "season,week,kickoff,home,away,is_tiebreaker\n"
        "2025,1,2025-09-07T17:00:00Z,KC,BAL,false\n"
        "2025,1,,BUF,NE,false\n"
    )


class TestBuildCanonicalCsv:
    def test_nflverse(self, settings):
        text = adapt(settings, {"/games.csv": week1_feed()}, FeedKind.NFLVERSE)
        lines = text.splitlines()
        assert lines[0] == "season,week,kickoff,home,away,is_tiebreaker"
        assert len(lines) == 17
        assert lines[1] == "2025,1,2025-09-07T13:00:00Z,KC,BAL,false"

    def test_nflverse_week_filter(self, settings):
        body = csv_text(
            "season,week,home_team,away_team",
            "2025,1,KC,BAL",
            "2025,2,BAL,KC",
        )
        text = adapt(settings, {"/games.csv": body}, FeedKind.NFLVERSE, week=2)
        assert text.splitlines()[1:] == ["2025,2,,BAL,KC,false"]

    def test_output_reads_back_as_schedule(self, settings):
        text = adapt(settings, {"/games.csv": week1_feed()}, FeedKind.NFLVERSE)
        rows = accept_schedule_rows(parse_csv(text), 2025)
        assert len(rows) == 16
        assert rows[0].kickoff == "2025-09-07T13:00:00Z"

    def test_espn(self, settings):
        board = scoreboard([espn_event("KC", "BAL", 0, 0, "pre")])
        text = adapt(settings, {"/scoreboard": board}, FeedKind.ESPN, week=1)
        assert text.splitlines()[1] == "2025,1,2025-09-07T17:00Z,KC,BAL,false"

    def test_no_rows_for_season(self, settings):
        with pytest.raises(EmptyFeedError, match="no rows for season 2026"):
            adapt(settings, {"/games.csv": week1_feed()}, FeedKind.NFLVERSE, season=2026)
