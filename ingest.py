"""
Folder Ingest: CSV/XML folder ingestion with per-line import logs.

Convenience wrapper for running from a checkout.

Recommended usage:
  - Command line: folder-ingest run --config-id EMPLOYEES
  - Python module: python -m folder_ingest.cli run
  - Programmatic: from folder_ingest.service import IngestService
"""

import sys

from folder_ingest.cli import main
from folder_ingest.service import IngestService

__all__ = ['main', 'IngestService']

if __name__ == "__main__":
    sys.exit(main())
