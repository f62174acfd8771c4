"""
Impedance-spectroscopy normalizer.

One file per sweep, named ``<stem>__IS_DD_MM_YYYY HH_MM_SS[.s].csv``. The
data table (frequency, |Z|, angle) may be preceded by instrument metadata.
Sweeps are placed on a relative clock anchored at the first parsed sweep.
"""
import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .classifier import SWEEP_NAME_RE
from .data_loader import split_lines
from .errors import ErrorKind, FileParseError, FileStatus, ParseResult
from .models import SpectroscopySweep, TimeSeriesFileItem
from .timeparse import build_timestamp, elapsed_seconds

logger = logging.getLogger(__name__)

HEADER_PREFIX = 'frequency (hz)'
FREQUENCY_TOLERANCE = 1e-9


def _to_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        return math.nan


def parse_sweep_timestamp(file_name: str) -> Optional[datetime]:
    """Timestamp embedded in a sweep filename, or None."""
    m = SWEEP_NAME_RE.search(file_name)
    if not m:
        return None
    day, month, year, hours, minutes, seconds = m.groups()
    return build_timestamp(day, month, year, hours, minutes, seconds)


def _numeric_triplet(line: str) -> Optional[Tuple[float, float, float]]:
    values = line.split(',')
    if len(values) < 3:
        return None
    triplet = tuple(_to_float(v) for v in values[:3])
    if any(math.isnan(v) for v in triplet):
        return None
    return triplet


def find_data_start(lines: Sequence[str]) -> Tuple[Optional[int], bool]:
    """Index of the first data line and whether a header marked it."""
    for i, line in enumerate(lines):
        if line.strip().lower().startswith(HEADER_PREFIX):
            return i + 1, True
    for i, line in enumerate(lines):
        if _numeric_triplet(line) is not None:
            return i, False
    return None, False


def parse_sweep_text(text: str, file_name: str, effective_name: str,
                     timestamp: datetime) -> ParseResult:
    """Parse the data table of one sweep; failures are returned, not raised."""
    result = ParseResult()
    lines = split_lines(text)

    start, from_header = find_data_start(lines)
    if start is None:
        return result.fail(ErrorKind.NO_DATA_START,
                           f"Data table start (marked by '{HEADER_PREFIX}' or numeric rows) "
                           f"not found in {effective_name}")
    if not from_header:
        result.warn(f'Header "{HEADER_PREFIX}" not found in {effective_name}. '
                    f"Attempting to parse data from line {start + 1}.")

    frequencies, impedances, phases = [], [], []
    for line in lines[start:]:
        if not line.strip():
            continue
        triplet = _numeric_triplet(line)
        if triplet is None:
            continue
        freq, z, angle = triplet
        frequencies.append(freq)
        impedances.append(z)
        phases.append(angle)

    if not frequencies:
        return result.fail(ErrorKind.NO_VALID_ROWS,
                           f"No valid data rows found in {effective_name} after data start index.")

    result.value = SpectroscopySweep(file_name=file_name, effective_name=effective_name,
                                     timestamp=timestamp, frequencies=frequencies,
                                     impedances=impedances, phases=phases)
    return result


def parse_spectroscopy_file(item: TimeSeriesFileItem) -> ParseResult:
    sensor_file = item.source
    timestamp = parse_sweep_timestamp(item.original_name)
    fallback_note = None
    if timestamp is None:
        timestamp = sensor_file.modified_at()
        fallback_note = (f"Timestamp pattern not found in filename: {item.original_name}. "
                         "Using file modification date as fallback.")
        logger.warning(fallback_note)

    try:
        text = sensor_file.read_text()
    except OSError as e:
        logger.error(f"Error reading file {item.effective_name}: {e}")
        return ParseResult().fail(ErrorKind.READ_FAILED, f"Error reading file {item.effective_name}")

    result = parse_sweep_text(text, item.original_name, item.effective_name, timestamp)
    if fallback_note:
        result.warn(fallback_note)
    if not result.ok:
        logger.error(f"Error parsing spectroscopy file {item.effective_name}: "
                     f"{result.diagnostics[-1].message}")
    return result


def align_sweeps(sweeps: List[SpectroscopySweep]) -> List[SpectroscopySweep]:
    """Set relative times against the first sweep (in processing order), then sort."""
    if not sweeps:
        return []
    t0 = sweeps[0].timestamp
    for sweep in sweeps:
        sweep.relative_time_min = elapsed_seconds(t0, sweep.timestamp) / 60
    return sorted(sweeps, key=lambda s: s.relative_time_min)


def process_spectroscopy_files(items: Sequence[TimeSeriesFileItem], progress=None
                               ) -> Tuple[List[SpectroscopySweep], List[FileStatus]]:
    """Parse every sweep file; a failing file is recorded and skipped."""
    sweeps: List[SpectroscopySweep] = []
    statuses: List[FileStatus] = []
    for item in items:
        logger.info(f"Processing spectroscopy file: {item.effective_name}...")
        result = parse_spectroscopy_file(item)
        statuses.append(FileStatus.from_result(item.effective_name, result))
        if result.ok:
            sweeps.append(result.value)
            logger.info(f"Completed processing: {item.effective_name}")
        else:
            logger.error(f"Skipped or failed to parse: {item.effective_name}")
        if progress is not None:
            progress(item.effective_name)
    return align_sweeps(sweeps), statuses


def load_sweep(item: TimeSeriesFileItem) -> SpectroscopySweep:
    """Parse a single sweep, raising FileParseError on failure."""
    result = parse_spectroscopy_file(item)
    if not result.ok:
        raise FileParseError(result.diagnostics[-1].message)
    return result.value


def unique_frequencies(sweeps: Sequence[SpectroscopySweep]) -> List[float]:
    freqs = set()
    for sweep in sweeps:
        freqs.update(sweep.frequencies)
    return sorted(freqs)


def slice_at_frequency(sweeps: Sequence[SpectroscopySweep], freq: float,
                       quantity: str = 'impedance') -> List[Tuple[float, float]]:
    """``(relative_time_min, value)`` at ``freq`` across sweeps, time-ordered.

    Uses the first sample within FREQUENCY_TOLERANCE in each sweep; sweeps
    without such a sample contribute nothing.
    """
    points = []
    for sweep in sweeps:
        values = sweep.values(quantity)
        for f, v in zip(sweep.frequencies, values):
            if abs(f - freq) < FREQUENCY_TOLERANCE:
                points.append((sweep.relative_time_min, v))
                break
    return sorted(points, key=lambda p: p[0])


def group_by_frequency(sweeps: Sequence[SpectroscopySweep], quantity: str = 'impedance'
                       ) -> Dict[float, List[Tuple[float, float, str]]]:
    """All samples keyed by frequency: ``freq -> [(time, value, file_name), ...]``.

    Keys are ascending and each series is time-ordered.
    """
    grouped = defaultdict(list)
    for sweep in sweeps:
        for f, v in zip(sweep.frequencies, sweep.values(quantity)):
            grouped[f].append((sweep.relative_time_min, v, sweep.file_name))
    return {f: sorted(grouped[f], key=lambda p: p[0]) for f in sorted(grouped)}
