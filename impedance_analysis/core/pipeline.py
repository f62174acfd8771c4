"""
Analysis run orchestration.

An AnalysisRun owns everything produced for one batch: it is created fresh
per invocation and nothing is shared between runs.

    classify -> (flow table -> profile -> events) -> time-series tables
             -> spectroscopy sweeps -> unique frequencies
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from ..classifier import SPECTROSCOPY, TIME_SERIES, Classification, classify_batch
from ..data_loader import SensorFile, list_directory
from ..errors import ClassificationError, FileState, FileStatus
from ..gas_profile import (build_concentration_profile, identify_exposure_events,
                           parse_flow_table)
from ..models import (ConcentrationPoint, GasExposureEvent, SensorTable,
                      SpectroscopySweep, profile_to_frame, sweeps_to_frame)
from ..settings import AnalysisConfig
from ..spectroscopy import (group_by_frequency, process_spectroscopy_files,
                            slice_at_frequency, unique_frequencies)
from ..time_series import normalize_time_series_file

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]

STATUS_COMPLETED = 'completed'
STATUS_AMBIGUOUS = 'ambiguous'
STATUS_NO_FILES = 'no_relevant_files'


@dataclass
class AnalysisResult:
    """Everything one run hands to the rendering layer."""
    status: str
    mode: Optional[str]
    config: AnalysisConfig
    message: str = ''
    concentration_profile: List[ConcentrationPoint] = field(default_factory=list)
    exposure_events: List[GasExposureEvent] = field(default_factory=list)
    sensor_tables: List[SensorTable] = field(default_factory=list)
    sweeps: List[SpectroscopySweep] = field(default_factory=list)
    unique_frequencies: List[float] = field(default_factory=list)
    file_statuses: List[FileStatus] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    def slice_at_frequency(self, freq: float, quantity: str = 'impedance') -> List[Tuple[float, float]]:
        return slice_at_frequency(self.sweeps, freq, quantity)

    def group_by_frequency(self, quantity: str = 'impedance'):
        return group_by_frequency(self.sweeps, quantity)

    def profile_frame(self) -> pd.DataFrame:
        return profile_to_frame(self.concentration_profile)

    def sweeps_frame(self) -> pd.DataFrame:
        return sweeps_to_frame(self.sweeps)

    def summary(self) -> dict:
        return {
            'status': self.status,
            'mode': self.mode,
            'message': self.message,
            'files': {s.file_name: s.state.value for s in self.file_statuses},
            'exposure_events': len(self.exposure_events),
            'sensor_tables': len(self.sensor_tables),
            'sweeps': len(self.sweeps),
            'unique_frequencies': len(self.unique_frequencies),
        }


class AnalysisRun:
    """One analysis of one batch of files."""

    def __init__(self, files: Sequence[SensorFile],
                 config: Optional[Union[AnalysisConfig, Mapping]] = None,
                 mode: Optional[str] = None,
                 progress: Optional[ProgressCallback] = None):
        if config is None:
            config = AnalysisConfig()
        elif not isinstance(config, AnalysisConfig):
            config = AnalysisConfig.from_dict(config)
        if mode not in (None, TIME_SERIES, SPECTROSCOPY):
            raise ClassificationError(f"Unknown analysis type: {mode}")
        self.files = list(files)
        self.config = config
        self.mode = mode
        self._progress = progress
        self._completed_steps = 0
        self._total_steps = 1

    def _step(self, message: str):
        self._completed_steps += 1
        logger.info(message)
        if self._progress is not None:
            self._progress(self._completed_steps, self._total_steps, message)

    def classify(self) -> Classification:
        classification = classify_batch(self.files, self.config.flow_table_name,
                                        self.config.sniff_lines)
        if self.mode is not None and classification.mode != self.mode:
            classification.resolve(self.mode)
        return classification

    def run(self) -> AnalysisResult:
        """Process the batch. Fatal-to-run errors propagate as AnalysisError."""
        classification = self.classify()
        result = AnalysisResult(status=STATUS_COMPLETED, mode=classification.mode,
                                config=self.config, message=classification.message)
        if classification.mode is None:
            result.status = STATUS_AMBIGUOUS if classification.ambiguous else STATUS_NO_FILES
            return result
        if not classification.has_files:
            result.status = STATUS_NO_FILES
            return result

        with_gas = classification.mode == TIME_SERIES and classification.flow_table is not None
        self._total_steps = 1 + (2 if with_gas else 0) + len(classification.items)
        self._completed_steps = 0

        if classification.mode == TIME_SERIES:
            self.config.validate(needs_gas=with_gas)
        self._step('Configuration gathered.')

        if classification.mode == TIME_SERIES:
            self._run_time_series(classification, result)
        else:
            self._run_spectroscopy(classification, result)

        logger.info('Data processing complete!')
        return result

    def _run_time_series(self, classification: Classification, result: AnalysisResult):
        cfg = self.config
        profile = None
        flow_file = classification.flow_table
        if flow_file is not None:
            flow = parse_flow_table(flow_file)
            self._step(f'Parsed {flow_file.name}.')
            result.file_statuses.append(FileStatus.from_result(flow_file.name, flow))

            profile = build_concentration_profile(flow.value, cfg.cylinder2_concentration,
                                                  cfg.total_flowrate)
            result.concentration_profile = profile
            result.exposure_events = identify_exposure_events(profile)
            self._step('Gas concentration profile calculated.')
        else:
            logger.info(f'Gas flow table ({cfg.flow_table_name}) not found. '
                        'Skipping gas concentration analysis for time-series.')

        baseline = cfg.baseline_minutes
        for item in classification.items:
            outcome = normalize_time_series_file(item, baseline, profile)
            status = FileStatus.from_result(item.effective_name, outcome)
            if outcome.ok:
                result.sensor_tables.append(outcome.value)
            else:
                status.state = FileState.SKIPPED
            result.file_statuses.append(status)
            self._step(f'Processing {item.effective_name}: {status.state.value}')

    def _run_spectroscopy(self, classification: Classification, result: AnalysisResult):
        sweeps, statuses = process_spectroscopy_files(
            classification.items,
            progress=lambda name: self._step(f'Processed {name}'))
        result.sweeps = sweeps
        result.file_statuses.extend(statuses)
        result.unique_frequencies = unique_frequencies(sweeps)


def run_full_pipeline(files: Union[str, Sequence[SensorFile]],
                      config: Optional[Union[AnalysisConfig, Mapping]] = None,
                      mode: Optional[str] = None,
                      progress: Optional[ProgressCallback] = None) -> AnalysisResult:
    """Analyse a directory path or a list of SensorFiles in a fresh run."""
    if isinstance(files, str):
        files = list_directory(files)
    return AnalysisRun(files, config=config, mode=mode, progress=progress).run()
