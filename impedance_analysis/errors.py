"""
Error taxonomy and structured parse results.

Fatal-to-run failures are raised as AnalysisError subclasses. Everything
below that level is reported through Diagnostic / FileStatus records so
callers can tell "degraded but usable" apart from "unusable".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class AnalysisError(Exception):
    """Base exception for the analysis pipeline"""
    pass


class ConfigurationError(AnalysisError):
    """Invalid run configuration (baseline time, cylinder concentration)"""
    pass


class FlowTableError(AnalysisError):
    """Gas flow table could not be parsed into any valid step"""
    pass


class SchemaError(AnalysisError):
    """Time-series file does not match the expected column layout"""
    pass


class FileParseError(AnalysisError):
    """Spectroscopy file has no usable data table"""
    pass


class ClassificationError(AnalysisError):
    """No relevant files, or the analysis mode could not be decided"""
    pass


class ErrorKind(str, Enum):
    NO_DATA_START = "no_data_start"
    NO_VALID_ROWS = "no_valid_rows"
    EMPTY_FILE = "empty_file"
    READ_FAILED = "read_failed"


class FileState(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class Diagnostic:
    level: str          # 'info', 'warning' or 'error'
    message: str
    row: Optional[int] = None


@dataclass
class ParseResult:
    """Outcome of parsing one file: either a value or an error kind."""
    value: Any = None
    error_kind: Optional[ErrorKind] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_kind is None and self.value is not None

    def warn(self, message: str, row: Optional[int] = None):
        self.diagnostics.append(Diagnostic('warning', message, row))

    def fail(self, kind: ErrorKind, message: str) -> 'ParseResult':
        self.error_kind = kind
        self.value = None
        self.diagnostics.append(Diagnostic('error', message))
        return self


@dataclass
class FileStatus:
    file_name: str
    state: FileState
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @classmethod
    def from_result(cls, file_name: str, result: ParseResult) -> 'FileStatus':
        if not result.ok:
            state = FileState.FAILED
        elif any(d.level == 'warning' for d in result.diagnostics):
            state = FileState.DEGRADED
        else:
            state = FileState.OK
        return cls(file_name, state, list(result.diagnostics))
