"""
File handles and raw CSV access.

A SensorFile is what the file-selection layer hands to the pipeline: a name
plus a way to get at the text. It can wrap a path on disk or an in-memory
buffer.
"""
import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

_ENCODINGS = ('utf-8-sig', 'utf-16', 'latin-1')


@dataclass
class SensorFile:
    name: str
    path: Optional[Path] = None
    text: Optional[str] = None
    last_modified: Optional[float] = None   # seconds since epoch

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> 'SensorFile':
        path = Path(path)
        return cls(name=path.name, path=path, last_modified=path.stat().st_mtime)

    @classmethod
    def from_text(cls, name: str, text: str,
                  last_modified: Optional[float] = None) -> 'SensorFile':
        return cls(name=name, text=text, last_modified=last_modified)

    def read_text(self) -> str:
        """Return the file content, trying a few encodings for on-disk files."""
        if self.text is not None:
            return self.text
        if self.path is None:
            raise OSError(f"File {self.name} has neither a path nor content")
        last_error = None
        for encoding in _ENCODINGS:
            try:
                return self.path.read_text(encoding=encoding)
            except UnicodeError as e:
                last_error = e
        raise OSError(f"Could not decode {self.name}: {last_error}")

    def modified_at(self) -> datetime:
        stamp = self.last_modified
        if stamp is None:
            stamp = self.path.stat().st_mtime if self.path is not None else 0.0
        return datetime.fromtimestamp(stamp)


def list_directory(base_dir: Union[str, Path]) -> List[SensorFile]:
    """All regular files directly inside ``base_dir``, sorted by name."""
    base_dir = Path(base_dir)
    if not base_dir.is_dir():
        raise FileNotFoundError(f"Directory not found: {base_dir}")
    files = [SensorFile.from_path(p) for p in sorted(base_dir.iterdir()) if p.is_file()]
    logger.info(f"Found {len(files)} files in {base_dir}")
    return files


def split_lines(text: str) -> List[str]:
    """Split on CRLF or LF, keeping empty lines."""
    return text.replace('\r\n', '\n').split('\n')


def read_rows(sensor_file: SensorFile) -> List[List[str]]:
    """Parse headerless CSV into a ragged grid of text fields.

    Blank lines are dropped; rows keep their own width so callers can check
    the column layout.
    """
    try:
        text = sensor_file.read_text()
    except OSError as e:
        logger.error(f"Error reading {sensor_file.name}: {str(e)}")
        raise
    rows = [row for row in csv.reader(io.StringIO(text)) if row]
    logger.debug(f"Read {len(rows)} rows from {sensor_file.name}")
    return rows


def numeric_column(rows: List[List[str]], index: int) -> pd.Series:
    """Column ``index`` of a ragged grid as floats (NaN where absent or non-numeric)."""
    raw = [row[index].strip() if len(row) > index else None for row in rows]
    return pd.to_numeric(pd.Series(raw, dtype=object), errors='coerce').astype(float)
