"""
File lifecycle: inbound -> in-treatment -> backup | failed.

Each configuration id owns four folders resolved from its ``paths``. Only one
file is moved out of the inbound folder at a time, which keeps per-file
processing of a job strictly sequential.
"""

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from folder_ingest.config_store import JsonConfigStore
from folder_ingest.exceptions import (
    FileConflictError,
    FileProcessingError,
    InvalidFileFormatError,
    InvalidFileNameError,
)
from folder_ingest.models import SUPPORTED_EXTENSIONS, FolderKind, Outcome

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_file_name(name: str) -> str:
    """Replace characters that are illegal in file names with '_'."""
    return _ILLEGAL_CHARS.sub('_', name)


def append_timestamp(file_name: str, now: datetime) -> str:
    """``report.csv`` -> ``report_2024-01-15_10-30-00.csv``; suffix at the end without extension."""
    ts = now.strftime(TIMESTAMP_FORMAT)
    dot = file_name.rfind('.')
    if 0 < dot < len(file_name) - 1:
        return f"{file_name[:dot]}_{ts}{file_name[dot:]}"
    return f"{file_name}_{ts}"


def check_single_segment(name: Optional[str]) -> str:
    """Reject names that are not exactly one plain path segment.

    Raises:
        InvalidFileNameError: On empty names, '.', '..' or any separator
    """
    if name is None or not name.strip():
        raise InvalidFileNameError("File name is empty")
    if '/' in name or '\\' in name or name in ('.', '..') or '\x00' in name:
        raise InvalidFileNameError(f"Invalid file name: '{name}'")
    return name


class FolderManager:
    """Owns the four lifecycle folders of every configuration id."""

    def __init__(self, store: JsonConfigStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock

    def folder_path(self, config_id: str, folder: Union[FolderKind, str]) -> Path:
        paths = self.store.get(config_id).paths
        name = {
            FolderKind.INBOUND: paths.in_dir,
            FolderKind.TREATMENT: paths.treatment_dir,
            FolderKind.BACKUP: paths.backup_dir,
            FolderKind.FAILED: paths.failed_dir,
        }[FolderKind(folder)]
        # absolute folder names are used as is
        return Path(paths.base_dir) / name

    def folders(self, config_id: str) -> Dict[FolderKind, Path]:
        return {kind: self.folder_path(config_id, kind) for kind in FolderKind}

    def ensure_folders(self, config_id: str) -> Dict[FolderKind, Path]:
        folders = self.folders(config_id)
        try:
            for path in folders.values():
                path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileProcessingError(f"Cannot create DATA folders: {e}") from e
        return folders

    def _regular_files(self, directory: Path) -> List[Path]:
        try:
            return [p for p in directory.iterdir() if p.is_file()]
        except OSError as e:
            raise FileProcessingError(f"Cannot list folder: {directory} => {e}") from e

    def list_folder(self, config_id: str, folder: Union[FolderKind, str]) -> List[str]:
        """Regular-file names of one folder, sorted."""
        directory = self.ensure_folders(config_id)[FolderKind(folder)]
        return sorted(p.name for p in self._regular_files(directory))

    def folder_status(self, config_id: str) -> Dict[str, List[str]]:
        """Listing of all four folders keyed by folder kind value."""
        return {kind.value: self.list_folder(config_id, kind) for kind in FolderKind}

    def save_inbound(self, config_id: str, data: bytes, suggested_name: str) -> Path:
        """Store an upload in the inbound folder without overwriting.

        Raises:
            InvalidFileFormatError: Empty content or unsupported extension
            FileConflictError: A file with that name is already waiting
        """
        if not data:
            raise InvalidFileFormatError("Uploaded file is empty")

        name = sanitize_file_name((suggested_name or '').strip() or 'file')
        if not name.lower().endswith(SUPPORTED_EXTENSIONS):
            raise InvalidFileFormatError(
                f"Unsupported file type: '{name}' (accepted: {', '.join(SUPPORTED_EXTENSIONS)})"
            )
        check_single_segment(name)

        dest = self.ensure_folders(config_id)[FolderKind.INBOUND] / name
        try:
            with open(dest, 'xb') as f:
                f.write(data)
        except FileExistsError as e:
            raise FileConflictError(f"File already exists in inbound folder: {name}") from e
        except OSError as e:
            raise FileProcessingError(f"Cannot save uploaded file into DATA_IN: {e}") from e

        logger.info(f"Saved {name} ({len(data):,} bytes) to {dest.parent}")
        return dest

    def delete_inbound(self, config_id: str, name: str) -> bool:
        """Delete one inbound file; False when it does not exist."""
        check_single_segment(name)
        path = self.ensure_folders(config_id)[FolderKind.INBOUND] / name
        if not path.is_file():
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FileProcessingError(f"Cannot delete {name} from DATA_IN: {e}") from e
        logger.info(f"Deleted {name} from inbound folder of {config_id}")
        return True

    def delete_all_inbound(self, config_id: str) -> List[str]:
        """Delete every regular file of the inbound folder; returns the deleted names."""
        return [name for name in self.list_folder(config_id, FolderKind.INBOUND)
                if self.delete_inbound(config_id, name)]

    def dequeue_one_to_treatment(self, config_id: str) -> Optional[Path]:
        """Move the oldest inbound file (by mtime, then name) into in-treatment, timestamped.

        Returns:
            The new in-treatment path, or None when the inbound folder is empty
        """
        folders = self.ensure_folders(config_id)
        candidates = []
        for path in self._regular_files(folders[FolderKind.INBOUND]):
            try:
                mtime = path.stat().st_mtime_ns
            except OSError:
                continue
            candidates.append((mtime, path.name, path))

        if not candidates:
            return None

        _, name, chosen = min(candidates)
        target = folders[FolderKind.TREATMENT] / append_timestamp(name, self.clock())
        try:
            os.replace(chosen, target)
        except OSError as e:
            raise FileProcessingError(f"Cannot move file DATA_IN -> DATA_TREATMENT: {e}") from e

        logger.info(f"Dequeued {name} -> {target.name}")
        return target

    def relocate(self, config_id: str, treatment_file: Path, outcome: Union[Outcome, str]) -> Path:
        """Move an in-treatment file to backup (success) or failed (failure), overwriting."""
        if treatment_file is None:
            raise FileProcessingError("treatment file is None")
        outcome = Outcome(outcome)
        kind = FolderKind.BACKUP if outcome == Outcome.SUCCESS else FolderKind.FAILED
        target = self.ensure_folders(config_id)[kind] / Path(treatment_file).name
        try:
            os.replace(treatment_file, target)
        except OSError as e:
            raise FileProcessingError(
                f"Cannot move file DATA_TREATMENT -> {kind.value.upper()}: {e}"
            ) from e
        logger.debug(f"Relocated {target.name} to {kind.value}")
        return target
