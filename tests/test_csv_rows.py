"""
Unit tests for ingestion.csv_rows — the quoted-CSV tokenizer used by the
GTFS table parsers.
"""

from ingestion.csv_rows import for_each_csv_row, iter_csv_rows


def _rows(content: str) -> list[list[str]]:
    return [row for _, row in iter_csv_rows(content)]


# ---------------------------------------------------------------------------
# Quoting
# ---------------------------------------------------------------------------

class TestQuoting:
    def test_quoted_comma_and_escaped_quote(self):
        content = 'a,"b,c","d""e"\r\nf,g,h'
        assert _rows(content) == [["a", "b,c", 'd"e'], ["f", "g", "h"]]

    def test_quoted_newline_stays_in_field(self):
        assert _rows('x,"line1\nline2"\ny,z\n') == [["x", "line1\nline2"], ["y", "z"]]

    def test_quoted_crlf_stays_in_field(self):
        assert _rows('"a\r\nb",c') == [["a\r\nb", "c"]]

    def test_empty_quoted_field(self):
        assert _rows('"",x') == [["", "x"]]

    def test_unterminated_quote_runs_to_end(self):
        # Malformed input must not raise
        assert _rows('a,"bc\nd,e') == [["a", "bc\nd,e"]]


# ---------------------------------------------------------------------------
# Row boundaries
# ---------------------------------------------------------------------------

class TestRowBoundaries:
    def test_lf(self):
        assert _rows("a,b\nc,d\n") == [["a", "b"], ["c", "d"]]

    def test_crlf(self):
        assert _rows("a,b\r\nc,d\r\n") == [["a", "b"], ["c", "d"]]

    def test_bare_cr(self):
        assert _rows("a,b\rc,d") == [["a", "b"], ["c", "d"]]

    def test_mixed_line_endings(self):
        assert _rows("a\r\nb\rc\nd") == [["a"], ["b"], ["c"], ["d"]]

    def test_trailing_row_without_newline_is_emitted(self):
        assert _rows("a,b\nc,d") == [["a", "b"], ["c", "d"]]

    def test_blank_lines_are_skipped(self):
        assert _rows("a\n\n\r\nb\n") == [["a"], ["b"]]

    def test_empty_input(self):
        assert _rows("") == []

    def test_trailing_empty_field(self):
        assert _rows("a,\n") == [["a", ""]]

    def test_bom_is_left_for_the_caller(self):
        rows = _rows("\ufeffroute_id,route_type\n")
        assert rows[0][0] == "\ufeffroute_id"


# ---------------------------------------------------------------------------
# Callback form
# ---------------------------------------------------------------------------

class TestForEachCsvRow:
    def test_row_indices_count_emitted_rows_only(self):
        seen = []
        for_each_csv_row("h1,h2\n\nv1,v2\n", lambda row, idx: seen.append((idx, row)))
        assert seen == [(0, ["h1", "h2"]), (1, ["v1", "v2"])]
