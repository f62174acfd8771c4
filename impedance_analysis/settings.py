"""Run configuration built from the YAML defaults plus caller overrides."""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from config.config_loader import load_config

from .errors import ConfigurationError
from .timeparse import parse_duration_string

logger = logging.getLogger(__name__)

# Keys used by older exports of the settings form
_LEGACY_KEYS = {
    'cylinder2Concentration': 'cylinder2_concentration',
    'gasConcCyl2': 'cylinder2_concentration',
    'baselineTimeText': 'baseline_time',
    'refTimeStr': 'baseline_time',
    'totalFlowrate': 'total_flowrate',
    'cylinder1Concentration': 'cylinder1_concentration',
    'gasConcCyl1': 'cylinder1_concentration',
    'concentrationDecimalPrecision': 'concentration_precision',
    'gasConcPrecision': 'concentration_precision',
    'experimentName': 'experiment_name',
    'targetGasName': 'target_gas_name',
}


def _as_float(value, default: float) -> float:
    if value is None or value == '':
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


@dataclass
class AnalysisConfig:
    cylinder2_concentration: float = math.nan
    baseline_time: str = "00:00:00"
    total_flowrate: float = 500.0
    cylinder1_concentration: float = 0.0
    concentration_precision: int = 1
    experiment_name: str = "ExperimentData"
    target_gas_name: str = "Target Gas"
    flow_table_name: str = "gas_flow_table.csv"
    sniff_lines: int = 20

    @classmethod
    def from_dict(cls, mapping: Optional[Mapping[str, Any]] = None) -> 'AnalysisConfig':
        """Build from a flat mapping or from the sectioned YAML layout."""
        flat: Dict[str, Any] = {}
        mapping = mapping or {}
        for section in ('analysis', 'files'):
            if isinstance(mapping.get(section), Mapping):
                flat.update(mapping[section])
        flat.update({k: v for k, v in mapping.items() if k not in ('analysis', 'files')})
        flat = {_LEGACY_KEYS.get(k, k): v for k, v in flat.items()}

        unknown = set(flat) - set(cls.__dataclass_fields__)
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {sorted(unknown)}")

        return cls(
            cylinder2_concentration=_as_float(flat.get('cylinder2_concentration'), math.nan),
            baseline_time=str(flat.get('baseline_time', cls.baseline_time)),
            total_flowrate=_as_float(flat.get('total_flowrate'), cls.total_flowrate),
            cylinder1_concentration=_as_float(flat.get('cylinder1_concentration'),
                                              cls.cylinder1_concentration),
            concentration_precision=int(flat.get('concentration_precision',
                                                 cls.concentration_precision)),
            experiment_name=str(flat.get('experiment_name') or cls.experiment_name).strip(),
            target_gas_name=str(flat.get('target_gas_name') or cls.target_gas_name).strip(),
            flow_table_name=str(flat.get('flow_table_name', cls.flow_table_name)),
            sniff_lines=int(flat.get('sniff_lines', cls.sniff_lines)),
        )

    @property
    def concentration_label(self) -> str:
        return f"{self.target_gas_name} concentration (ppm)"

    @property
    def baseline_minutes(self) -> float:
        return parse_duration_string(self.baseline_time)

    def validate(self, *, needs_gas: bool = False) -> None:
        """Raise ConfigurationError for settings that make the run meaningless."""
        if math.isnan(self.baseline_minutes):
            raise ConfigurationError(
                f'Invalid Baseline Time format: "{self.baseline_time}". '
                'Please use HH:MM:SS.s or MM:SS.s.')
        if needs_gas and math.isnan(self.cylinder2_concentration):
            raise ConfigurationError(
                "Invalid input for Initial Target Gas Concentration for time-series analysis.")


def load_analysis_config(config_path: Optional[str] = None,
                         overrides: Optional[Mapping[str, Any]] = None) -> AnalysisConfig:
    """Read YAML defaults and apply ``overrides`` (None values are ignored)."""
    raw = load_config(config_path)
    if overrides:
        raw = dict(raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
    return AnalysisConfig.from_dict(raw)
