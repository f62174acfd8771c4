"""Record types produced by an analysis run.

All records are built once per run and handed to consumers read-only.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class FlowStep:
    """One row of the gas schedule."""
    target_gas_flow: float       # Flow-rate fraction of cylinder 2
    duration_seconds: float      # Hold time of this step (s)


@dataclass(frozen=True)
class ConcentrationPoint:
    time_min: float
    conc: float


@dataclass(frozen=True)
class GasExposureEvent:
    """Maximal interval holding one constant positive concentration."""
    start_time: float            # min
    end_time: float              # min
    concentration: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class TimeSeriesFileItem:
    """Classification result for one accepted data file."""
    original_name: str
    effective_name: str
    sensor_number_raw: Optional[int] = None
    sensor_number_display: Optional[int] = None
    type: Optional[str] = None
    source: object = None        # SensorFile the item was built from


@dataclass
class SensorRow:
    original_time_s: str
    time_s: float = math.nan
    time_min: float = math.nan
    impedance: float = math.nan
    phase: float = math.nan
    signal: float = math.nan
    gas_concentration: float = math.nan


SENSOR_ROW_COLUMNS = ['original_time_s', 'time_s', 'time_min', 'impedance',
                      'phase', 'signal', 'gas_concentration']


@dataclass
class SensorTable:
    file_name: str
    original_file_name: str
    sensor_number: Optional[int]
    data: List[SensorRow] = field(default_factory=list)

    def to_frame(self) -> pd.DataFrame:
        """Rows as a DataFrame with one column per SensorRow field."""
        return pd.DataFrame(
            [[getattr(row, col) for col in SENSOR_ROW_COLUMNS] for row in self.data],
            columns=SENSOR_ROW_COLUMNS,
        )

    def valid_time_rows(self) -> List[SensorRow]:
        return [row for row in self.data if not math.isnan(row.time_min)]


@dataclass
class SpectroscopySweep:
    file_name: str
    effective_name: str
    timestamp: datetime
    frequencies: List[float]
    impedances: List[float]
    phases: List[float]
    relative_time_min: float = math.nan

    def values(self, quantity: str) -> List[float]:
        if quantity == 'impedance':
            return self.impedances
        if quantity == 'phase':
            return self.phases
        raise ValueError(f"Unknown spectroscopy quantity: {quantity}")


def profile_to_frame(profile: List[ConcentrationPoint]) -> pd.DataFrame:
    return pd.DataFrame({
        'time_min': np.array([p.time_min for p in profile], dtype=float),
        'conc': np.array([p.conc for p in profile], dtype=float),
    })


def sweeps_to_frame(sweeps: List[SpectroscopySweep]) -> pd.DataFrame:
    """Long-format table: one row per (sweep, frequency) sample."""
    frames = []
    for sweep in sweeps:
        frames.append(pd.DataFrame({
            'file_name': sweep.file_name,
            'relative_time_min': sweep.relative_time_min,
            'frequency': np.asarray(sweep.frequencies, dtype=float),
            'impedance': np.asarray(sweep.impedances, dtype=float),
            'phase': np.asarray(sweep.phases, dtype=float),
        }))
    if not frames:
        return pd.DataFrame(columns=['file_name', 'relative_time_min',
                                     'frequency', 'impedance', 'phase'])
    return pd.concat(frames, ignore_index=True)
