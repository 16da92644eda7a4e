"""
Streaming record counter used to seed job progress.
"""

import logging
from pathlib import Path
from typing import Iterable

from lxml import etree

from folder_ingest.exceptions import FileProcessingError
from folder_ingest.readers.xml_reader import local_name, release
from folder_ingest.registry import MappingRegistry

logger = logging.getLogger(__name__)


class RecordCounter:
    """Counts the records a file will produce, without loading it."""

    def __init__(self, registry: MappingRegistry):
        self.registry = registry

    def count_records(self, file_path: Path, config_id: str) -> int:
        """Record count of one file; unsupported extensions count 0.

        Raises:
            FileProcessingError: The file could not be read
        """
        file_path = Path(file_path)
        suffix = file_path.suffix.lower()
        if suffix == '.csv':
            return self.count_csv(file_path, config_id)
        if suffix == '.xml':
            return self.count_xml(file_path, config_id)
        return 0

    def count_csv(self, file_path: Path, config_id: str) -> int:
        """Non-blank lines, minus the header line when the mapping has one."""
        schema = self.registry.load_csv(config_id)
        try:
            with open(file_path, 'r', encoding='utf-8-sig') as f:
                non_blank = sum(1 for line in f if line.strip())
        except (OSError, UnicodeDecodeError) as e:
            raise FileProcessingError(f"Cannot count CSV records for {file_path.name}: {e}") from e
        if schema.has_header:
            return max(0, non_blank - 1)
        return non_blank

    def count_xml(self, file_path: Path, config_id: str) -> int:
        """Record-element start tags that are not nested in another record."""
        schema = self.registry.load_xml(config_id)
        count = 0
        depth = 0
        try:
            with open(file_path, 'rb') as f:
                for event, elem in etree.iterparse(f, events=('start', 'end'), huge_tree=True,
                                                   resolve_entities=False, no_network=True):
                    is_record = local_name(elem) == schema.record_element
                    if event == 'start':
                        if is_record:
                            if depth == 0:
                                count += 1
                            depth += 1
                    else:
                        if is_record:
                            depth -= 1
                        if depth == 0 and elem.getparent() is not None:
                            release(elem)
        except (OSError, etree.XMLSyntaxError) as e:
            raise FileProcessingError(f"Cannot count XML records for {file_path.name}: {e}") from e
        return count

    def count_all(self, files: Iterable[Path], config_id: str) -> int:
        """Total over files; a file that cannot be counted contributes 0."""
        total = 0
        for path in files:
            try:
                total += max(0, self.count_records(path, config_id))
            except FileProcessingError as e:
                logger.error(f"Record count failed, counting 0: {e}")
        return total
