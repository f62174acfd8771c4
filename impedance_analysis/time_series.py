"""
Time-series normalizer.

Each channel export is a headerless CSV with a ``DD/MM/YYYY HH:MM:SS.s``
timestamp in column 0 and impedance / phase in columns 7 / 8. Rows are put
on a clock relative to the first row, calibrated against a baseline
impedance, and tagged with the gas concentration in effect.
"""
import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .data_loader import numeric_column, read_rows
from .errors import ErrorKind, ParseResult, SchemaError
from .interpolation import interpolate_many
from .models import ConcentrationPoint, SensorRow, SensorTable, TimeSeriesFileItem
from .timeparse import elapsed_seconds, parse_absolute_timestamp

logger = logging.getLogger(__name__)

# Readings above these magnitudes are instrument artifacts
IMPEDANCE_ARTIFACT_LIMIT = 1e12
SIGNAL_ARTIFACT_LIMIT = 1e4


@dataclass(frozen=True)
class ColumnSchema:
    time: int = 0
    impedance: int = 7
    phase: int = 8

    @property
    def min_columns(self) -> int:
        return max(self.time, self.impedance, self.phase) + 1

    def validate(self, first_row: Sequence[str], file_name: str) -> None:
        if len(first_row) < self.min_columns:
            raise SchemaError(
                f"File {file_name} does not have enough columns in its first data row "
                f"(expected at least {self.min_columns}). Found {len(first_row)}. "
                "Please check CSV structure.")


TIME_SERIES_SCHEMA = ColumnSchema()


def select_reference_index(time_min: np.ndarray, baseline_minutes: float) -> Optional[int]:
    """Index of the last row at or before the baseline time.

    Falls back to row 0 when no row qualifies but row 0 has a valid time;
    None when even that is unavailable.
    """
    valid = ~np.isnan(time_min)
    candidates = np.flatnonzero(valid & (time_min <= baseline_minutes))
    if candidates.size:
        return int(candidates[-1])
    if time_min.size and valid[0]:
        return 0
    return None


def compute_signal(impedance: np.ndarray, imp_ref: float) -> np.ndarray:
    """Percent deviation from ``imp_ref``; NaN where undefined."""
    impedance = np.asarray(impedance, dtype=float)
    if imp_ref is None or math.isnan(imp_ref) or imp_ref == 0:
        return np.full(impedance.shape, np.nan)
    return (impedance - imp_ref) / imp_ref * 100


def suppress_artifacts(impedance: np.ndarray, signal: np.ndarray):
    """Blank out-of-range readings. Each limit is applied independently."""
    impedance = np.array(impedance, dtype=float)
    signal = np.array(signal, dtype=float)
    with np.errstate(invalid='ignore'):
        impedance[impedance > IMPEDANCE_ARTIFACT_LIMIT] = np.nan
        signal[np.abs(signal) > SIGNAL_ARTIFACT_LIMIT] = np.nan
    return impedance, signal


def build_sensor_table(rows: List[List[str]], item: TimeSeriesFileItem,
                       baseline_minutes: float,
                       profile: Optional[Sequence[ConcentrationPoint]] = None,
                       schema: ColumnSchema = TIME_SERIES_SCHEMA) -> ParseResult:
    """Normalize raw rows of one channel file into a SensorTable.

    ``profile`` is None when the batch has no gas flow table. Raises
    SchemaError if the first row is too narrow.
    """
    name = item.effective_name
    result = ParseResult()
    if not rows:
        msg = f"File {name} is empty or parsing failed. Skipping."
        logger.warning(msg)
        return result.fail(ErrorKind.EMPTY_FILE, msg)

    schema.validate(rows[0], name)

    t0 = parse_absolute_timestamp(rows[0][schema.time])
    if t0 is None:
        msg = (f'Initial timestamp "{rows[0][schema.time]}" in {name} could not be parsed. '
               'Relative time calculations for this file will result in NaN.')
        logger.warning(msg)
        result.warn(msg, row=1)

    n = len(rows)
    time_s = np.full(n, np.nan)
    original = []
    for i, row in enumerate(rows):
        if len(row) < schema.min_columns:
            msg = f"Row {i + 1} in {name} does not have enough columns. Data for this row will be NaN."
            logger.warning(msg)
            result.warn(msg, row=i + 1)
            original.append(row[schema.time] if len(row) > schema.time else "Invalid Row Structure")
            continue
        original.append(row[schema.time])
        time_s[i] = elapsed_seconds(t0, parse_absolute_timestamp(row[schema.time]))

    short = np.array([len(row) < schema.min_columns for row in rows])
    time_min = time_s / 60
    impedance = numeric_column(rows, schema.impedance).to_numpy(dtype=float, copy=True)
    phase = numeric_column(rows, schema.phase).to_numpy(dtype=float, copy=True)
    impedance[short] = np.nan
    phase[short] = np.nan

    ref_idx = select_reference_index(time_min, baseline_minutes)
    if ref_idx == 0 and not (time_min[0] <= baseline_minutes):
        msg = (f"For {name}, no data points found at or before reference time. "
               "Using first valid data point.")
        logger.warning(msg)
        result.warn(msg)
    imp_ref = impedance[ref_idx] if ref_idx is not None else math.nan
    if math.isnan(imp_ref):
        msg = f"Reference impedance for {name} is NaN."
        logger.warning(msg)
        result.warn(msg)

    signal = compute_signal(impedance, imp_ref)
    impedance, signal = suppress_artifacts(impedance, signal)

    if profile is not None:
        gas = interpolate_many(profile, time_min)
    else:
        gas = np.full(n, np.nan)

    data = [
        SensorRow(original_time_s=original[i], time_s=float(time_s[i]),
                  time_min=float(time_min[i]), impedance=float(impedance[i]),
                  phase=float(phase[i]), signal=float(signal[i]),
                  gas_concentration=float(gas[i]))
        for i in range(n)
    ]
    result.value = SensorTable(file_name=name, original_file_name=item.original_name,
                               sensor_number=item.sensor_number_display, data=data)
    return result


def normalize_time_series_file(item: TimeSeriesFileItem, baseline_minutes: float,
                               profile: Optional[Sequence[ConcentrationPoint]] = None) -> ParseResult:
    logger.info(f"Processing Time-Series File: {item.effective_name}...")
    rows = read_rows(item.source)
    result = build_sensor_table(rows, item, baseline_minutes, profile)
    if result.ok:
        logger.info(f"Processing {item.effective_name}: Completed")
    return result
