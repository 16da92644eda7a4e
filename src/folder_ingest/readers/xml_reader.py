"""
Streaming XML record reader built on lxml iterparse.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from lxml import etree

from folder_ingest.exceptions import ErrorCode, SchemaValidationError, StreamProcessingError
from folder_ingest.models import XmlSchema
from folder_ingest.readers.base import Record, RecordReader

logger = logging.getLogger(__name__)


def local_name(elem) -> str:
    """Tag name without namespace."""
    return etree.QName(elem).localname


def field_text(elem, field_tags) -> str:
    """Character data under elem, including non-field children.

    Descendants whose tag is itself a field tag keep their text for their own
    field; only their tails count here.
    """
    parts = [elem.text or '']
    for child in elem:
        if isinstance(child.tag, str) and local_name(child) not in field_tags:
            parts.append(field_text(child, field_tags))
        parts.append(child.tail or '')
    return ''.join(parts).strip()


def release(elem) -> None:
    """Clear a processed element and drop already-processed siblings."""
    elem.clear()
    while elem.getprevious() is not None:
        del elem.getparent()[0]


class XmlRecordReader(RecordReader):
    """Produces one record per record element under the expected root.

    Every configured field is a key of the record; a tag that does not occur
    maps to None and the first non-blank text wins when a tag repeats.
    """

    def __init__(self, file_path: Path, schema: XmlSchema):
        super().__init__(file_path)
        self.schema = schema

        # first field configured for a tag wins
        self._tag_to_field: Dict[str, str] = {}
        for fld in schema.fields:
            self._tag_to_field.setdefault(fld.tag, fld.name)

        self._record: Optional[Record] = None
        self._depth = 0

        self._fh = open(self.file_path, 'rb')
        try:
            self._events = etree.iterparse(
                self._fh,
                events=('start', 'end'),
                huge_tree=True,
                resolve_entities=False,
                no_network=True,
            )
            self._open()
        except Exception:
            self.close()
            raise

    def _open(self) -> None:
        try:
            event, root = next(self._events)
        except (StopIteration, etree.XMLSyntaxError) as e:
            raise SchemaValidationError(f"Invalid XML: no root element found in {self.file_path.name}") from e

        root_name = local_name(root)
        if root_name != self.schema.root_element:
            raise SchemaValidationError(
                f"Root element <{root_name}> does not match expected <{self.schema.root_element}>",
                code=ErrorCode.XML_ROOT_MISMATCH,
            )
        self._handle(event, root)

    def _handle(self, event: str, elem) -> Optional[Record]:
        name = local_name(elem)

        if event == 'start':
            if self._record is None:
                if name == self.schema.record_element:
                    self._record = {fld.name: None for fld in self.schema.fields}
                    self._depth = 1
            else:
                self._depth += 1
            return None

        if self._record is None:
            # content outside records
            if elem.getparent() is not None:
                release(elem)
            return None

        field_name = self._tag_to_field.get(name)
        if field_name is not None and self._depth > 1 and self._record[field_name] is None:
            text = field_text(elem, self._tag_to_field)
            if text:
                self._record[field_name] = text

        self._depth -= 1
        if self._depth > 0:
            return None

        record, self._record = self._record, None
        release(elem)
        self.records_read += 1
        return record

    def _read_next(self) -> Optional[Record]:
        try:
            for event, elem in self._events:
                record = self._handle(event, elem)
                if record is not None:
                    return record
        except etree.XMLSyntaxError as e:
            raise StreamProcessingError(
                f"XML stream error in {self.file_path.name} after record {self.records_read}: {e}"
            ) from e
        return None
