from pickem.normalization.resolver import (
    FieldResolver,
    accept_schedule_rows,
    compose_kickoff,
    parse_int,
    starts_on,
)


def resolve(record):
    return FieldResolver(record.keys()).resolve(record)


class TestParseInt:
    def test_plain_and_float_integers(self):
        assert parse_int("7") == 7
        assert parse_int(" 24.0 ") == 24

    def test_non_numeric(self):
        assert parse_int("") is None
        assert parse_int("NA") is None
        assert parse_int("3.5") is None
        assert parse_int(None) is None


class TestKickoff:
    def test_compose_pads_seconds(self):
        assert compose_kickoff("2025-09-07", "13:00") == "2025-09-07T13:00:00Z"

    def test_compose_keeps_full_time(self):
        assert compose_kickoff("2025-09-07", "13:00:30") == "2025-09-07T13:00:30Z"

    def test_compose_needs_both_parts(self):
        assert compose_kickoff("2025-09-07", "") is None
        assert compose_kickoff(None, "13:00") is None

    def test_direct_kickoff_wins_over_date_and_time(self):
        row = resolve(
            {"kickoff": "2025-09-05T00:20:00Z", "gameday": "2025-09-04", "gametime": "20:20"}
        )
        assert row.kickoff == "2025-09-05T00:20:00Z"

    def test_undated_direct_value_falls_back_to_composed(self):
        row = resolve(
            {"game_time_eastern": "8:20 PM", "gameday": "2025-09-04", "gametime": "20:20"}
        )
        assert row.kickoff == "2025-09-04T20:20:00Z"

    def test_undated_value_is_dropped(self):
        row = resolve({"kickoff": "TBD"})
        assert row.kickoff is None

    def test_starts_on(self):
        assert starts_on("2025-09-07T13:00:00Z") == "2025-09-07"
        assert starts_on("TBD") is None
        assert starts_on(None) is None


class TestFieldResolver:
    def test_alias_priority(self):
        resolver = FieldResolver(["home_team", "home", "season", "week", "away"])
        row = resolver.resolve(
            {"home_team": "KC", "home": "BUF", "season": "2025", "week": "1", "away": "BAL"}
        )
        assert row.home == "KC"

    def test_empty_alias_falls_through_to_next(self):
        resolver = FieldResolver(["home_team", "home"])
        assert resolver.pick({"home_team": " ", "home": "BUF"}, "home") == "BUF"

    def test_teams_are_normalized(self):
        row = resolve(
            {"season": "2025", "week": "1", "home_team": "kan", "away_team": "LA"}
        )
        assert (row.home, row.away) == ("KC", "LAR")

    def test_scores_resolved_from_aliases(self):
        row = resolve({"home_pts": "27", "away_points": "20.0"})
        assert (row.home_score, row.away_score) == (27, 20)
        assert row.has_scores

    def test_missing_columns_resolve_to_none(self):
        row = resolve({"season": "2025"})
        assert row.week is None and row.home is None
        assert not row.has_game_key

    def test_week_zero_has_no_game_key(self):
        row = resolve(
            {"season": "2025", "week": "0", "home": "KC", "away": "BAL"}
        )
        assert not row.has_game_key


class TestAcceptScheduleRows:
    def test_filters_season_and_incomplete_rows(self):
        records = [
            {"season": "2025", "week": "1", "home_team": "KC", "away_team": "BAL", "gameday": "", "gametime": ""},
            {"season": "2024", "week": "1", "home_team": "KC", "away_team": "BAL", "gameday": "", "gametime": ""},
            {"season": "2025", "week": "", "home_team": "BUF", "away_team": "NE", "gameday": "", "gametime": ""},
            {"season": "2025", "week": "2", "home_team": "", "away_team": "NE", "gameday": "", "gametime": ""},
        ]
        rows = accept_schedule_rows(records, 2025)
        assert [(r.season, r.week, r.home, r.away) for r in rows] == [(2025, 1, "KC", "BAL")]
        assert rows[0].kickoff is None

    def test_empty_records(self):
        assert accept_schedule_rows([], 2025) == []
