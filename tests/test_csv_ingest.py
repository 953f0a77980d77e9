# =============================================================================
# Unit Tests — CSV Ingestion
# =============================================================================

import pytest

from app.services.csv_ingest import CsvIngestError, parse_csv


class TestParseCsv:

    def test_basic_upload(self):
        parsed = parse_csv(b"Segment,Sales\nGovernment,\"$1,000.00\"\nMidmarket,250\n")
        assert parsed.columns == ["Segment", "Sales"]
        assert parsed.rows == [
            {"Segment": "Government", "Sales": "$1,000.00"},
            {"Segment": "Midmarket", "Sales": "250"},
        ]

    def test_values_stay_text(self):
        parsed = parse_csv(b"Code,Amount\n00123,12.50\n")
        assert parsed.rows[0] == {"Code": "00123", "Amount": "12.50"}

    def test_header_and_values_are_trimmed(self):
        parsed = parse_csv(b" Segment , Sales \n Government , 10 \n")
        assert parsed.columns == ["Segment", "Sales"]
        assert parsed.rows[0] == {"Segment": "Government", "Sales": "10"}

    def test_quoted_commas_and_doubled_quotes(self):
        parsed = parse_csv(b'Name,Note\n"Acme, Inc.","said ""hi"""\n')
        assert parsed.rows[0] == {"Name": "Acme, Inc.", "Note": 'said "hi"'}

    def test_byte_order_mark_is_ignored(self):
        parsed = parse_csv(b"\xef\xbb\xbfSales\n5\n")
        assert parsed.columns == ["Sales"]

    def test_blank_rows_are_skipped(self):
        parsed = parse_csv(b"A,B\n1,2\n\n,\n3,4\n")
        assert [row["A"] for row in parsed.rows] == ["1", "3"]

    def test_long_rows_are_skipped(self):
        parsed = parse_csv(b"A,B\n1,2\n1,2,3\n5,6\n")
        assert [row["A"] for row in parsed.rows] == ["1", "5"]

    def test_long_first_row_does_not_shift_columns(self):
        parsed = parse_csv(b"Segment,Sales\nGov,100,EXTRA\nMid,200\nEnt,300\n")
        assert parsed.columns == ["Segment", "Sales"]
        assert parsed.rows == [
            {"Segment": "Mid", "Sales": "200"},
            {"Segment": "Ent", "Sales": "300"},
        ]

    def test_short_rows_are_padded(self):
        parsed = parse_csv(b"A,B,C\n1,2\n")
        assert parsed.rows[0]["A"] == "1"
        assert parsed.rows[0]["C"] in (None, "")

    def test_empty_file(self):
        with pytest.raises(CsvIngestError, match="empty"):
            parse_csv(b"  \n")

    def test_header_only(self):
        with pytest.raises(CsvIngestError, match="No valid records"):
            parse_csv(b"A,B\n")

    def test_not_utf8(self):
        with pytest.raises(CsvIngestError, match="UTF-8"):
            parse_csv(b"\xff\xfe\x00A")

    def test_row_limit(self):
        with pytest.raises(CsvIngestError, match="limit"):
            parse_csv(b"A\n1\n2\n3\n", max_rows=2)
