"""
Schema registry: translates stored mappings into reader schemas.
"""

import logging

from folder_ingest.config_models import FileReaderConfig
from folder_ingest.config_store import JsonConfigStore
from folder_ingest.exceptions import ConfigurationError
from folder_ingest.models import CsvFieldRule, CsvSchema, XmlFieldRule, XmlSchema
from folder_ingest.validators import validate_schema

logger = logging.getLogger(__name__)


class MappingRegistry:
    """Loads CSV/XML schemas for a configuration id from the config store."""

    def __init__(self, store: JsonConfigStore):
        self.store = store

    def config(self, config_id: str) -> FileReaderConfig:
        return self.store.get(config_id)

    def target_type(self, config_id: str) -> str:
        """Record handler name used to persist records of this configuration."""
        return self.config(config_id).target_type

    def load_csv(self, config_id: str) -> CsvSchema:
        mapping = self.config(config_id).csv_mapping
        if mapping is None:
            raise ConfigurationError(f"No CSV mapping for configuration '{config_id}'")

        schema = CsvSchema(
            delimiter=mapping.delimiter,
            has_header=mapping.has_header,
            fields=[
                CsvFieldRule(
                    name=col.name,
                    type=col.type.value,
                    required=col.required,
                    nullable=col.nullable,
                    pattern=col.pattern,
                    header=col.header,
                    index=col.index,
                )
                for col in mapping.columns
            ],
            duplicate_check=list(mapping.duplicate_check),
        )
        return self._checked(config_id, schema)

    def load_xml(self, config_id: str) -> XmlSchema:
        mapping = self.config(config_id).xml_mapping
        if mapping is None:
            raise ConfigurationError(f"No XML mapping for configuration '{config_id}'")

        schema = XmlSchema(
            root_element=mapping.root_element,
            record_element=mapping.record_element,
            fields=[
                XmlFieldRule(
                    name=fld.name,
                    type=fld.type.value,
                    required=fld.required,
                    nullable=fld.nullable,
                    pattern=fld.pattern,
                    tag=fld.tag,
                )
                for fld in mapping.fields
            ],
            duplicate_check=list(mapping.duplicate_check),
        )
        return self._checked(config_id, schema)

    @staticmethod
    def _checked(config_id, schema):
        errors = validate_schema(schema)
        if errors:
            for error in errors:
                logger.error(f"Schema error in '{config_id}': {error}")
            raise ConfigurationError(
                f"{schema.format.value.upper()} mapping of '{config_id}' is invalid: {errors[0]}"
            )
        return schema
