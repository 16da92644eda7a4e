"""
File ingestion service: schema + handler + reader + pipeline for one file.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from folder_ingest.duplicates import DbDuplicateChecker
from folder_ingest.exceptions import ConfigurationError, InvalidFileFormatError, StreamProcessingError
from folder_ingest.models import CsvSchema, XmlSchema
from folder_ingest.persistence import HandlerRegistry, RecordHandler, persist_record
from folder_ingest.pipeline import IngestionPipeline, ProgressCallback
from folder_ingest.readers import CsvRecordReader, XmlRecordReader
from folder_ingest.registry import MappingRegistry

logger = logging.getLogger(__name__)


class FileIngestionService:
    """Ingests one CSV or XML file for a configuration id."""

    def __init__(self, registry: MappingRegistry, handlers: HandlerRegistry, pipeline: IngestionPipeline):
        self.registry = registry
        self.handlers = handlers
        self.pipeline = pipeline

    def _handler(self, config_id: str, schema: Union[CsvSchema, XmlSchema]) -> RecordHandler:
        handler = self.handlers.get(self.registry.target_type(config_id))
        unmapped = handler.validate_shape([f.name for f in schema.fields])
        if unmapped:
            logger.info(f"Fields not persisted by '{handler.type_name}': {', '.join(unmapped)}")
        for name in schema.duplicate_check:
            if name in unmapped:
                raise ConfigurationError(
                    f"Duplicate-check field '{name}' is not a field of target type '{handler.type_name}'"
                )
        return handler

    def _run(self, reader, file_path: Path, schema, handler: RecordHandler,
             on_record: Optional[ProgressCallback]) -> int:
        with reader:
            return self.pipeline.process(
                file_path.name,
                reader,
                schema.fields,
                schema.duplicate_check,
                lambda record: persist_record(record, schema.fields, handler),
                DbDuplicateChecker(handler, schema.fields),
                on_record,
            )

    def ingest_csv(self, file_path: Path, config_id: str, on_record: Optional[ProgressCallback] = None) -> int:
        """Ingest a CSV file.

        Raises:
            ConfigurationError: Unknown configuration, CSV mapping or target type
            StreamProcessingError: The file could not be read or ingested
        """
        file_path = Path(file_path)
        schema = self.registry.load_csv(config_id)
        handler = self._handler(config_id, schema)
        try:
            return self._run(CsvRecordReader(file_path, schema), file_path, schema, handler, on_record)
        except Exception as e:
            raise StreamProcessingError(f"CSV ingestion failed: {e}") from e

    def ingest_xml(self, file_path: Path, config_id: str, on_record: Optional[ProgressCallback] = None) -> int:
        """Ingest an XML file.

        Raises:
            ConfigurationError: Unknown configuration, XML mapping or target type
            StreamProcessingError: The file could not be read or ingested
        """
        file_path = Path(file_path)
        schema = self.registry.load_xml(config_id)
        handler = self._handler(config_id, schema)
        try:
            return self._run(XmlRecordReader(file_path, schema), file_path, schema, handler, on_record)
        except Exception as e:
            raise StreamProcessingError(f"XML ingestion failed: {e}") from e

    def ingest(self, file_path: Path, config_id: str, on_record: Optional[ProgressCallback] = None) -> int:
        """Dispatch by extension (case-insensitive)."""
        suffix = Path(file_path).suffix.lower()
        if suffix == '.csv':
            return self.ingest_csv(file_path, config_id, on_record)
        if suffix == '.xml':
            return self.ingest_xml(file_path, config_id, on_record)
        raise InvalidFileFormatError(f"Unsupported file type: {Path(file_path).name}")
