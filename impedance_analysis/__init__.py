"""
Gas / Impedance Analysis Package
--------------------------------
Normalization, calibration and event segmentation of impedance sensor
exports: time-series channel logs with an optional gas flow schedule, and
impedance-spectroscopy sweeps.
"""

__version__ = "1.0.0"

from .core.pipeline import AnalysisResult, AnalysisRun, run_full_pipeline
from .data_loader import SensorFile, list_directory
from .gas_profile import build_concentration_profile, identify_exposure_events
from .interpolation import interpolate
from .settings import AnalysisConfig, load_analysis_config
from .spectroscopy import slice_at_frequency, unique_frequencies
from .timeparse import parse_absolute_timestamp, parse_duration_string

__all__ = [
    'AnalysisConfig',
    'AnalysisResult',
    'AnalysisRun',
    'SensorFile',
    'build_concentration_profile',
    'identify_exposure_events',
    'interpolate',
    'list_directory',
    'load_analysis_config',
    'parse_absolute_timestamp',
    'parse_duration_string',
    'run_full_pipeline',
    'slice_at_frequency',
    'unique_frequencies',
]
