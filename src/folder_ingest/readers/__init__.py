"""
Record readers for the supported inbound formats.
"""

from folder_ingest.readers.base import Record, RecordReader
from folder_ingest.readers.csv_reader import CsvRecordReader, detect_delimiter
from folder_ingest.readers.xml_reader import XmlRecordReader

__all__ = [
    "Record",
    "RecordReader",
    "CsvRecordReader",
    "XmlRecordReader",
    "detect_delimiter",
]
