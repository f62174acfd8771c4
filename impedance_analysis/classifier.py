"""
File classification.

Sorts an uploaded batch into time-series logs, spectroscopy sweeps and the
gas flow table, decides the analysis mode for the batch, and extracts
channel numbers from time-series filenames.

Rules are declared as ordered NameMatcher lists so the disambiguation policy
can be read (and tested) in one place.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .data_loader import SensorFile, split_lines
from .errors import ClassificationError
from .models import TimeSeriesFileItem

logger = logging.getLogger(__name__)

TIME_SERIES = 'time_series'
SPECTROSCOPY = 'spectroscopy'
FLOW_TABLE = 'flow_table'
UNRECOGNIZED = 'unrecognized'

DEFAULT_FLOW_TABLE_NAME = 'gas_flow_table.csv'

# Canonical time-series name: <stem>__<n>__vs_time.csv
_CHANNEL_RE = re.compile(r'__([0-9]+)__vs_time\.csv$', re.IGNORECASE)
# Alternate export form: <stem>_vs_time.csv<n> or <stem>__vs_time.csv<n>
_ALTERNATE_RE = re.compile(r'^(.*?)_{1,2}vs_time\.csv([0-9]+)$', re.IGNORECASE)
# <stem>__IS_DD_MM_YYYY HH_MM_SS[.s].csv
SWEEP_NAME_RE = re.compile(
    r'__IS_(\d{2})_(\d{2})_(\d{4}) (\d{2})_(\d{2})_(\d{2}(?:\.\d)?)\.csv$', re.IGNORECASE)


@dataclass(frozen=True)
class NameMatcher:
    category: str
    matches: Callable[[str], bool]
    description: str = ''


# Loose rules used to bucket a batch before the mode is known. Order matters:
# a name matching both is treated as spectroscopy.
BUCKET_MATCHERS: Tuple[NameMatcher, ...] = (
    NameMatcher(SPECTROSCOPY,
                lambda name: re.search(r'__IS_.*\.csv$', name, re.IGNORECASE) is not None,
                'contains __IS_ and ends in .csv'),
    NameMatcher(TIME_SERIES,
                lambda name: 'vs_time' in name and name.lower().endswith('.csv'),
                'contains vs_time and ends in .csv'),
)


def normalize_time_series_name(name: str) -> str:
    """Rewrite ``<stem>_vs_time.csv<n>`` into ``<stem>__<n>__vs_time.csv``."""
    m = _ALTERNATE_RE.match(name)
    if m:
        return f"{m.group(1)}__{m.group(2)}__vs_time.csv"
    return name


def extract_sensor_number(name: str) -> Tuple[Optional[int], Optional[int]]:
    """Return ``(raw, display)`` channel numbers for a time-series filename.

    The number in the name is the 1-based channel shown to users; the raw
    index is zero-based. Both are None when the name carries no number.
    """
    m = _CHANNEL_RE.search(normalize_time_series_name(name))
    if not m:
        return None, None
    display = int(m.group(1))
    return display - 1, display


def _accept_time_series(sensor_file: SensorFile) -> Optional[TimeSeriesFileItem]:
    effective = normalize_time_series_name(sensor_file.name)
    raw, display = extract_sensor_number(effective)
    if raw is None:
        logger.info(f"Skipping file as it does not conform to strict time-series naming "
                    f"after normalization: {effective} (original: {sensor_file.name})")
        return None
    return TimeSeriesFileItem(original_name=sensor_file.name, effective_name=effective,
                              sensor_number_raw=raw, sensor_number_display=display,
                              type=TIME_SERIES, source=sensor_file)


def _accept_spectroscopy(sensor_file: SensorFile) -> Optional[TimeSeriesFileItem]:
    if not SWEEP_NAME_RE.search(sensor_file.name):
        logger.info(f"Skipping file as it does not match spectroscopy naming pattern: "
                    f"{sensor_file.name}")
        return None
    return TimeSeriesFileItem(original_name=sensor_file.name, effective_name=sensor_file.name,
                              type=SPECTROSCOPY, source=sensor_file)


# Strict per-mode acceptance, applied once the mode is fixed
STRICT_ACCEPTORS = {
    TIME_SERIES: _accept_time_series,
    SPECTROSCOPY: _accept_spectroscopy,
}


def is_flow_table(name: str, flow_table_name: str = DEFAULT_FLOW_TABLE_NAME) -> bool:
    return name.lower() == flow_table_name.lower()


def match_bucket(name: str) -> str:
    for matcher in BUCKET_MATCHERS:
        if matcher.matches(name):
            return matcher.category
    return UNRECOGNIZED


def looks_like_spectroscopy(text: str, max_lines: int = 20) -> bool:
    for line in split_lines(text)[:max_lines]:
        lower = line.lower()
        if ('frequency (hz)' in lower
                and ('z' in lower or 'impedance' in lower)
                and 'angle' in lower):
            return True
    return False


def detect_analysis_type(sensor_file: Optional[SensorFile], max_lines: int = 20) -> Optional[str]:
    """Content sniffing: spectroscopy when a frequency/impedance/angle header
    appears within the first ``max_lines`` lines, otherwise time-series."""
    if sensor_file is None:
        return None
    try:
        text = sensor_file.read_text()
    except OSError as e:
        logger.error(f"Error during file content read for type detection: {e}")
        raise ClassificationError(f"Could not read {sensor_file.name} for type detection.") from e
    return SPECTROSCOPY if looks_like_spectroscopy(text, max_lines) else TIME_SERIES


def sort_file_items(items: Sequence[TimeSeriesFileItem]) -> List[TimeSeriesFileItem]:
    """Numbered items by raw channel, then un-numbered items by original name."""
    numbered = sorted((i for i in items if i.sensor_number_raw is not None),
                      key=lambda i: i.sensor_number_raw)
    unnumbered = sorted((i for i in items if i.sensor_number_raw is None),
                        key=lambda i: i.original_name)
    return numbered + unnumbered


def categorize_files(files: Sequence[SensorFile], mode: str,
                     flow_table_name: str = DEFAULT_FLOW_TABLE_NAME) -> List[TimeSeriesFileItem]:
    """Apply the strict rule of ``mode`` to every non-flow-table file."""
    if mode not in STRICT_ACCEPTORS:
        raise ClassificationError(f"Unknown analysis type: {mode}")
    accept = STRICT_ACCEPTORS[mode]
    items = []
    for sensor_file in files:
        if is_flow_table(sensor_file.name, flow_table_name):
            continue
        item = accept(sensor_file)
        if item is not None:
            items.append(item)
    return sort_file_items(items)


@dataclass
class Classification:
    """Outcome of classifying one batch.

    ``mode`` is None while the batch is ambiguous; call ``resolve`` with the
    user's choice to finish it.
    """
    files: List[SensorFile]
    flow_table: Optional[SensorFile] = None
    time_series_candidates: List[SensorFile] = field(default_factory=list)
    spectroscopy_candidates: List[SensorFile] = field(default_factory=list)
    mode: Optional[str] = None
    items: List[TimeSeriesFileItem] = field(default_factory=list)
    conflict: Optional[str] = None
    message: str = ''
    flow_table_name: str = DEFAULT_FLOW_TABLE_NAME

    @property
    def ambiguous(self) -> bool:
        return self.mode is None and self.conflict is not None

    @property
    def has_files(self) -> bool:
        return bool(self.items)

    def resolve(self, mode: str) -> 'Classification':
        self.mode = mode
        self.conflict = None
        self.items = categorize_files(self.files, mode, self.flow_table_name)

        self.message = (f"Analysis type set to: {mode.replace('_', ' ')}. "
                        f"Found {len(self.items)} relevant files.")
        if mode == TIME_SERIES:
            if self.flow_table is not None:
                self.message += f" Gas flow table ({self.flow_table.name}) found."
            else:
                self.message += " Gas flow table NOT found. Gas concentration analysis will be skipped."
        if not self.items:
            logger.warning(f"No relevant files for {mode} analysis")
        else:
            logger.info(self.message)
        return self


def classify_batch(files: Sequence[SensorFile],
                   flow_table_name: str = DEFAULT_FLOW_TABLE_NAME,
                   sniff_lines: int = 20) -> Classification:
    """Bucket the batch by name, confirm with content, and pick a mode."""
    result = Classification(files=list(files), flow_table_name=flow_table_name)
    first_data_file = None

    for sensor_file in files:
        if is_flow_table(sensor_file.name, flow_table_name):
            result.flow_table = sensor_file
            continue
        if first_data_file is None:
            first_data_file = sensor_file
        bucket = match_bucket(sensor_file.name)
        if bucket == SPECTROSCOPY:
            result.spectroscopy_candidates.append(sensor_file)
        elif bucket == TIME_SERIES:
            result.time_series_candidates.append(sensor_file)

    n_ts = len(result.time_series_candidates)
    n_is = len(result.spectroscopy_candidates)

    if n_ts and n_is:
        result.conflict = (f"Mixed file types detected ({n_ts} time-series, {n_is} spectroscopy). "
                           "Please choose an analysis type.")
    elif n_ts or n_is:
        expected = TIME_SERIES if n_ts else SPECTROSCOPY
        sample = (result.time_series_candidates or result.spectroscopy_candidates)[0]
        detected = detect_analysis_type(sample, sniff_lines)
        if detected == expected:
            result.resolve(expected)
        else:
            result.conflict = (f"Ambiguous files: {sample.name} named like {expected.replace('_', '-')} "
                               f"but content suggests {detected.replace('_', '-')}. Please choose.")
    elif first_data_file is not None:
        detected = detect_analysis_type(first_data_file, sniff_lines)
        logger.info(f"Attempting {detected.replace('_', ' ')} analysis based on content "
                    f"of {first_data_file.name}.")
        result.resolve(detected)
    else:
        result.message = "No valid sensor data files (time-series or spectroscopy) found in the selection."
        logger.warning(result.message)

    if result.conflict:
        result.message = result.conflict
        logger.warning(result.conflict)
    return result
