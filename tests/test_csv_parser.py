import csv

from pickem.normalization.csv_parser import FIELD_SIZE_LIMIT, header_names, parse_csv


class TestParseCsv:
    def test_headers_are_lowercased_and_trimmed(self):
        records = parse_csv(" Season ,WEEK,Home_Team\n2025,1,KC\n")
        assert records == [{"season": "2025", "week": "1", "home_team": "KC"}]

    def test_values_are_trimmed(self):
        records = parse_csv("a,b\n  x , y  \n")
        assert records[0] == {"a": "x", "b": "y"}

    def test_quoted_fields_with_commas_and_escaped_quotes(self):
        records = parse_csv('name,note\n"Smith, J","said ""hi"""\n')
        assert records[0]["name"] == "Smith, J"
        assert records[0]["note"] == 'said "hi"'

    def test_short_rows_are_padded_and_extra_cells_ignored(self):
        records = parse_csv("a,b,c\n1\n1,2,3,4\n")
        assert records[0] == {"a": "1", "b": "", "c": ""}
        assert records[1] == {"a": "1", "b": "2", "c": "3"}

    def test_blank_lines_are_skipped(self):
        records = parse_csv("a,b\n\n1,2\n , \n3,4\n")
        assert [r["a"] for r in records] == ["1", "3"]

    def test_crlf_line_endings(self):
        records = parse_csv("a,b\r\n1,2\r\n")
        assert records == [{"a": "1", "b": "2"}]

    def test_byte_order_mark_is_stripped(self):
        records = parse_csv("\ufeffseason,week\n2025,1\n")
        assert "season" in records[0]

    def test_empty_input(self):
        assert parse_csv("") == []
        assert parse_csv("\n\n") == []

    def test_header_only(self):
        assert parse_csv("season,week\n") == []

    def test_oversized_field(self):
        notes = "x" * 200000
        records = parse_csv("season,week,home,away,notes\n2025,1,KC,BAL," + notes + "\n")
        assert records[0]["home"] == "KC"
        assert len(records[0]["notes"]) == 200000

    def test_unterminated_quote_keeps_earlier_rows(self):
        text = "season,week,home,away,notes\n2025,1,KC,BAL,ok\n2025,2,BUF,NE,\"never closed\n2025,3,GB,CHI,\n"
        records = parse_csv(text)
        assert records[0]["home"] == "KC"
        assert records[1]["home"] == "BUF"

    def test_reader_error_stops_parsing(self):
        csv.field_size_limit(8)
        try:
            records = parse_csv("a,b\n1,2\n3,xxxxxxxxxxxxxxxx\n5,6\n")
        finally:
            csv.field_size_limit(FIELD_SIZE_LIMIT)
        assert records == [{"a": "1", "b": "2"}]


def test_header_names():
    assert header_names("\ufeff Season,Week\n2025,1\n") == ["season", "week"]
    assert header_names("") == []
