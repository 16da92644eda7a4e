"""
JSON-backed configuration store.

One document per configuration id (``<config_id>.json``) in a directory,
validated through FileReaderConfig on every read and write.
"""

import json
import logging
import re
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from folder_ingest.config_models import DEFAULT_CONFIG_ID, FileReaderConfig
from folder_ingest.exceptions import ConfigurationError
from folder_ingest.models import FileFormat

logger = logging.getLogger(__name__)

_CONFIG_ID_RE = re.compile(r'^[A-Za-z0-9_.-]+$')


def default_employees_config(base_dir: str) -> dict:
    """Example configuration for the ``employee`` record handler."""
    name_pattern = r"^[A-Za-zÀ-ÿ' -]{2,100}$"
    return {
        "config_id": DEFAULT_CONFIG_ID,
        "description": "Employees import (CSV and XML)",
        "load_mode": "CLI",
        "target_type": "employee",
        "paths": {
            "base_dir": base_dir,
            "in_dir": "DATA_IN",
            "treatment_dir": "DATA_TREATMENT",
            "backup_dir": "DATA_BACKUP",
            "failed_dir": "DATA_FAILED",
        },
        "csv_mapping": {
            "delimiter": ",",
            "has_header": True,
            "duplicate_check": ["id", "firstName", "lastName"],
            "columns": [
                {"order_index": 0, "name": "id", "header": "id", "type": "LONG",
                 "required": True, "nullable": False, "pattern": r"^[0-9]+$"},
                {"order_index": 1, "name": "firstName", "header": "firstName", "type": "STRING",
                 "required": True, "nullable": False, "pattern": name_pattern},
                {"order_index": 2, "name": "lastName", "header": "lastName", "type": "STRING",
                 "required": True, "nullable": False, "pattern": name_pattern},
                {"order_index": 3, "name": "position", "header": "position", "type": "STRING"},
                {"order_index": 4, "name": "department", "header": "department", "type": "STRING"},
                {"order_index": 5, "name": "hireDate", "header": "hireDate", "type": "LOCAL_DATE",
                 "pattern": r"^\d{4}-\d{2}-\d{2}$"},
                {"order_index": 6, "name": "salary", "header": "salary", "type": "DECIMAL",
                 "pattern": r"^-?\d+(\.\d+)?$"},
            ],
        },
        "xml_mapping": {
            "root_element": "employees",
            "record_element": "employee",
            "duplicate_check": ["id", "firstName", "lastName"],
            "fields": [
                {"order_index": 0, "name": "id", "tag": "id", "type": "LONG",
                 "required": True, "nullable": False, "pattern": r"^[0-9]+$"},
                {"order_index": 1, "name": "firstName", "tag": "firstName", "type": "STRING",
                 "required": True, "nullable": False, "pattern": name_pattern},
                {"order_index": 2, "name": "lastName", "tag": "lastName", "type": "STRING",
                 "required": True, "nullable": False, "pattern": name_pattern},
                {"order_index": 3, "name": "position", "tag": "position", "type": "STRING"},
                {"order_index": 4, "name": "department", "tag": "department", "type": "STRING"},
                {"order_index": 5, "name": "hireDate", "tag": "hireDate", "type": "LOCAL_DATE"},
                {"order_index": 6, "name": "salary", "tag": "salary", "type": "DECIMAL"},
            ],
        },
    }


class JsonConfigStore:
    """Read/write key-value store of FileReaderConfig documents."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, config_id: str) -> Path:
        if not config_id or not _CONFIG_ID_RE.match(config_id) or config_id in ('.', '..'):
            raise ConfigurationError(f"Invalid configuration id: '{config_id}'")
        return self.directory / f"{config_id}.json"

    def exists(self, config_id: str) -> bool:
        return self._path(config_id).is_file()

    def get(self, config_id: str) -> FileReaderConfig:
        """Load a configuration.

        Raises:
            ConfigurationError: Unknown id or invalid document
        """
        path = self._path(config_id)
        if not path.is_file():
            raise ConfigurationError(f"Configuration not found: {config_id}")
        try:
            return FileReaderConfig.from_json_file(str(path))
        except (ValidationError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid configuration '{config_id}': {e}") from e

    def put(self, config: FileReaderConfig) -> Path:
        path = self._path(config.config_id)
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix('.json.tmp')
            tmp.write_text(config.model_dump_json(indent=2), encoding='utf-8')
            tmp.replace(path)
        logger.info(f"Saved configuration '{config.config_id}' to {path}")
        return path

    def list_ids(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.stem for p in self.directory.glob('*.json') if p.is_file())

    def delete(self, config_id: str) -> bool:
        path = self._path(config_id)
        with self._lock:
            if not path.is_file():
                return False
            path.unlink()
        logger.info(f"Deleted configuration '{config_id}'")
        return True

    def update_duplicate_check(self, config_id: str, fmt: FileFormat, fields: List[str]) -> FileReaderConfig:
        """Replace the duplicate-check field list of one mapping.

        Raises:
            ConfigurationError: Missing mapping or fields unknown to it
        """
        config = self.get(config_id)
        fmt = FileFormat(fmt)
        mapping = config.csv_mapping if fmt == FileFormat.CSV else config.xml_mapping
        if mapping is None:
            raise ConfigurationError(f"No {fmt.value.upper()} mapping for configuration '{config_id}'")

        data = config.model_dump()
        key = 'csv_mapping' if fmt == FileFormat.CSV else 'xml_mapping'
        data[key]['duplicate_check'] = list(fields)
        try:
            updated = FileReaderConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid duplicate check for '{config_id}': {e}") from e

        self.put(updated)
        return updated

    def seed_default(self, base_dir: str) -> Optional[FileReaderConfig]:
        """Write the EMPLOYEES configuration when it does not exist yet.

        Returns:
            The created configuration, or None when one was already present
        """
        if self.exists(DEFAULT_CONFIG_ID):
            logger.info(f"Configuration '{DEFAULT_CONFIG_ID}' already exists, not seeding")
            return None
        config = FileReaderConfig.from_dict(default_employees_config(base_dir))
        self.put(config)
        return config
