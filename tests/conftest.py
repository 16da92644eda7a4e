"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from folder_ingest.config_models import IngestSettings
from folder_ingest.config_store import JsonConfigStore
from folder_ingest.database import create_db_engine, init_db
from folder_ingest.log_store import ImportLogStore
from folder_ingest.models import CsvFieldRule, CsvSchema, XmlFieldRule, XmlSchema
from folder_ingest.registry import MappingRegistry
from folder_ingest.service import IngestService


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Base directory of the DATA folders."""
    return tmp_path / "data"


@pytest.fixture
def config_store(tmp_path, data_dir) -> JsonConfigStore:
    """Config store holding the default EMPLOYEES configuration."""
    store = JsonConfigStore(tmp_path / "configs")
    store.seed_default(str(data_dir))
    return store


@pytest.fixture
def registry(config_store) -> MappingRegistry:
    return MappingRegistry(config_store)


@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory database."""
    engine = create_db_engine("sqlite://")
    yield init_db(engine)
    engine.dispose()


@pytest.fixture
def log_store(session_factory) -> ImportLogStore:
    return ImportLogStore(session_factory, flush_every=2)


@pytest.fixture
def service(tmp_path, config_store):
    """Fully wired service on an in-memory database."""
    settings = IngestSettings(config_dir=str(tmp_path / "configs"), database_url="sqlite://")
    svc = IngestService(settings)
    yield svc
    svc.shutdown()
    svc.engine.dispose()


@pytest.fixture
def csv_schema() -> CsvSchema:
    """Small CSV schema: required numeric id, required name, optional amount."""
    return CsvSchema(
        delimiter=",",
        has_header=True,
        fields=[
            CsvFieldRule(name="id", type="LONG", required=True, nullable=False, header="id"),
            CsvFieldRule(name="name", type="STRING", required=True, header="name"),
            CsvFieldRule(name="amount", type="DECIMAL", header="amount"),
        ],
        duplicate_check=["id"],
    )


@pytest.fixture
def xml_schema() -> XmlSchema:
    return XmlSchema(
        root_element="employees",
        record_element="employee",
        fields=[
            XmlFieldRule(name="id", type="LONG", required=True, nullable=False, tag="id"),
            XmlFieldRule(name="firstName", required=True, tag="firstName"),
            XmlFieldRule(name="lastName", tag="lastName"),
        ],
        duplicate_check=["id"],
    )


@pytest.fixture
def write_file(tmp_path):
    """Write text content to a file under tmp_path/files."""
    def _write(name: str, content: str) -> Path:
        path = tmp_path / "files" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write
