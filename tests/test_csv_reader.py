"""Tests for the streaming CSV record reader."""

import pytest

from folder_ingest.exceptions import ErrorCode, RecordValidationError, SchemaValidationError
from folder_ingest.models import CsvFieldRule, CsvSchema
from folder_ingest.readers import CsvRecordReader, detect_delimiter


class TestDelimiterDetection:

    def test_configured_delimiter_wins_ties(self):
        """No other candidate is strictly more frequent."""
        assert detect_delimiter("a,b;c", ",") is None
        assert detect_delimiter("single", ",") is None

    def test_more_frequent_candidate_detected(self):
        assert detect_delimiter("id;name;amount", ",") == ";"
        assert detect_delimiter("id\tname\tamount", ",") == "\t"
        assert detect_delimiter("id,name,amount", ";") == ","


class TestHeaderChecks:

    def test_header_without_required_column_rejected(self, csv_schema, write_file):
        """A header missing a required column fails before any record."""
        path = write_file("bad.csv", "name,value\nBob,1\n")
        with pytest.raises(SchemaValidationError, match="Required column missing in CSV header: 'id'") as exc_info:
            CsvRecordReader(path, csv_schema)
        assert exc_info.value.code == ErrorCode.MISSING_COLUMN

    def test_header_with_no_expected_column_rejected(self, csv_schema, write_file):
        path = write_file("bad.csv", "foo,bar\n1,2\n")
        with pytest.raises(SchemaValidationError, match="none of the expected headers") as exc_info:
            CsvRecordReader(path, csv_schema)
        assert exc_info.value.code == ErrorCode.UNEXPECTED_COLUMN

    def test_delimiter_mismatch_rejected(self, csv_schema, write_file):
        path = write_file("semi.csv", "id;name;amount\n1;Bob;2.5\n")
        with pytest.raises(SchemaValidationError, match="delimiter mismatch"):
            CsvRecordReader(path, csv_schema)

    def test_empty_file_with_header_rejected(self, csv_schema, write_file):
        path = write_file("empty.csv", "\n   \n")
        with pytest.raises(SchemaValidationError, match="empty"):
            CsvRecordReader(path, csv_schema)

    def test_header_cells_are_trimmed(self, csv_schema, write_file):
        path = write_file("spaced.csv", " id , name ,amount\n1,Bob,3\n")
        with CsvRecordReader(path, csv_schema) as reader:
            assert list(reader) == [{"id": "1", "name": "Bob", "amount": "3"}]


class TestRecords:

    def test_values_trimmed_and_blank_lines_skipped(self, csv_schema, write_file):
        """Blank lines never produce records."""
        path = write_file("data.csv", "id,name,amount\n\n 1 , Bob ,2.50\n   \n2,Ann,\n")
        with CsvRecordReader(path, csv_schema) as reader:
            records = list(reader)
        assert records == [
            {"id": "1", "name": "Bob", "amount": "2.50"},
            {"id": "2", "name": "Ann", "amount": ""},
        ]

    def test_delimiter_only_row_is_a_record(self, csv_schema, write_file):
        """A row of bare delimiters is not blank and is counted like any line."""
        path = write_file("gaps.csv", "id,name,amount\n1,Ann,2\n,,\n")
        with CsvRecordReader(path, csv_schema) as reader:
            records = list(reader)
        assert records == [
            {"id": "1", "name": "Ann", "amount": "2"},
            {"id": "", "name": "", "amount": ""},
        ]
        assert reader.records_read == 2

    def test_short_row_gives_none(self, csv_schema, write_file):
        path = write_file("short.csv", "id,name,amount\n1,Bob\n")
        with CsvRecordReader(path, csv_schema) as reader:
            assert next(reader) == {"id": "1", "name": "Bob", "amount": None}

    def test_columns_located_by_header_name(self, csv_schema, write_file):
        """Column order in the file does not matter."""
        path = write_file("reordered.csv", "amount,name,id,extra\n9,Zoe,5,x\n")
        with CsvRecordReader(path, csv_schema) as reader:
            assert next(reader) == {"id": "5", "name": "Zoe", "amount": "9"}

    def test_quoted_values_with_delimiter(self, csv_schema, write_file):
        path = write_file("quoted.csv", 'id,name,amount\n1,"Doe, John",4\n')
        with CsvRecordReader(path, csv_schema) as reader:
            assert next(reader)["name"] == "Doe, John"

    def test_utf8_bom_is_ignored(self, csv_schema, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes(b"\xef\xbb\xbfid,name,amount\n1,Bob,1\n")
        with CsvRecordReader(path, csv_schema) as reader:
            assert next(reader)["id"] == "1"

    def test_headerless_file_uses_indexes(self, write_file):
        schema = CsvSchema(
            has_header=False,
            fields=[CsvFieldRule(name="id", index=1), CsvFieldRule(name="name", index=0)],
        )
        path = write_file("noheader.csv", "Bob,1\nAnn,2\n")
        with CsvRecordReader(path, schema) as reader:
            assert list(reader) == [{"id": "1", "name": "Bob"}, {"id": "2", "name": "Ann"}]

    def test_headerless_field_without_index_fails_each_record(self, write_file):
        """MISSING_COLUMN is raised per record and iteration continues."""
        schema = CsvSchema(
            has_header=False,
            fields=[CsvFieldRule(name="id", index=0), CsvFieldRule(name="name")],
        )
        path = write_file("noindex.csv", "1,Bob\n2,Ann\n")
        errors = []
        with CsvRecordReader(path, schema) as reader:
            while True:
                try:
                    next(reader)
                except StopIteration:
                    break
                except RecordValidationError as e:
                    errors.append(e)
        assert [e.code for e in errors] == [ErrorCode.MISSING_COLUMN, ErrorCode.MISSING_COLUMN]
        assert [e.line for e in errors] == [1, 2]

    def test_headerless_empty_file_has_no_records(self, write_file):
        schema = CsvSchema(has_header=False, fields=[CsvFieldRule(name="id", index=0)])
        path = write_file("empty.csv", "")
        with CsvRecordReader(path, schema) as reader:
            assert list(reader) == []


class TestResourceHandling:

    def test_closed_after_exhaustion(self, csv_schema, write_file):
        path = write_file("data.csv", "id,name,amount\n1,Bob,1\n")
        reader = CsvRecordReader(path, csv_schema)
        assert list(reader) == [{"id": "1", "name": "Bob", "amount": "1"}]
        assert reader.closed
        assert reader.records_read == 1

    def test_closed_when_leaving_with_block_early(self, csv_schema, write_file):
        path = write_file("data.csv", "id,name,amount\n1,Bob,1\n2,Ann,2\n")
        with CsvRecordReader(path, csv_schema) as reader:
            next(reader)
        assert reader.closed
        reader.close()

    def test_closed_when_open_fails(self, csv_schema, write_file, monkeypatch):
        """A header error releases the file handle."""
        closed = []
        original_close = CsvRecordReader.close

        def spy_close(self):
            closed.append(True)
            original_close(self)

        monkeypatch.setattr(CsvRecordReader, "close", spy_close)
        path = write_file("bad.csv", "foo,bar\n")
        with pytest.raises(SchemaValidationError):
            CsvRecordReader(path, csv_schema)
        assert closed == [True]
