"""Tests for single-file ingestion."""

import pytest

from folder_ingest.config_models import FileReaderConfig
from folder_ingest.config_store import default_employees_config
from folder_ingest.exceptions import ConfigurationError, InvalidFileFormatError, StreamProcessingError
from folder_ingest.models import LogStatus


@pytest.fixture
def ingestion(service):
    return service.ingestion


def test_dispatch_by_extension(ingestion, write_file, service):
    """Extensions are matched case-insensitively."""
    path = write_file("EMPLOYEES.CSV", "id,firstName,lastName\n1,John,Doe\n")
    assert ingestion.ingest(path, "EMPLOYEES") == 1
    assert service.list_logs()[0].file_name == "EMPLOYEES.CSV"


def test_unsupported_extension(ingestion, write_file):
    with pytest.raises(InvalidFileFormatError, match="Unsupported file type: a.json"):
        ingestion.ingest(write_file("a.json", "{}"), "EMPLOYEES")


def test_reader_errors_are_wrapped(ingestion, write_file):
    with pytest.raises(StreamProcessingError, match="^XML ingestion failed: Root element <staff>"):
        ingestion.ingest_xml(write_file("a.xml", "<staff/>"), "EMPLOYEES")
    with pytest.raises(StreamProcessingError, match="^CSV ingestion failed: CSV delimiter mismatch"):
        ingestion.ingest_csv(write_file("a.csv", "id;firstName;lastName\n"), "EMPLOYEES")


def test_missing_file_is_stream_error(ingestion, tmp_path):
    with pytest.raises(StreamProcessingError):
        ingestion.ingest_csv(tmp_path / "missing.csv", "EMPLOYEES")


def test_configuration_errors_not_wrapped(ingestion, write_file):
    with pytest.raises(ConfigurationError):
        ingestion.ingest_csv(write_file("a.csv", "id\n1\n"), "UNKNOWN")


def test_duplicate_check_field_must_be_persistable(ingestion, config_store, write_file, tmp_path):
    data = default_employees_config(str(tmp_path))
    data["config_id"] = "BADGES"
    data["csv_mapping"]["columns"].append({"name": "badge", "header": "badge"})
    data["csv_mapping"]["duplicate_check"] = ["badge"]
    config_store.put(FileReaderConfig.from_dict(data))

    with pytest.raises(ConfigurationError, match="Duplicate-check field 'badge'"):
        ingestion.ingest_csv(write_file("b.csv", "id,firstName,lastName,badge\n1,John,Doe,B1\n"), "BADGES")


def test_unknown_target_type(ingestion, config_store, write_file, tmp_path):
    data = default_employees_config(str(tmp_path))
    data["config_id"] = "INVOICES"
    data["target_type"] = "invoice"
    config_store.put(FileReaderConfig.from_dict(data))

    with pytest.raises(ConfigurationError, match="Unknown target type 'invoice'"):
        ingestion.ingest_csv(write_file("i.csv", "id,firstName,lastName\n1,John,Doe\n"), "INVOICES")


def test_progress_callback(ingestion, write_file, service):
    ticks = []
    path = write_file("e.xml", (
        "<employees>"
        "<employee><id>1</id><firstName>John</firstName><lastName>Doe</lastName></employee>"
        "<employee><id>x</id><firstName>Ann</firstName><lastName>Lee</lastName></employee>"
        "</employees>"
    ))
    assert ingestion.ingest(path, "EMPLOYEES", on_record=lambda: ticks.append(1)) == 1
    assert len(ticks) == 2
    assert service.list_logs()[0].status == LogStatus.PARTIALLY_TRAITED.value
