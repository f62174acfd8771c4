"""
Gas concentration model.

Replays the flow schedule from ``gas_flow_table.csv`` against the total
flow rate to get concentration vs. time, then segments that step function
into exposure events.
"""
import logging
import math
from typing import List, Optional, Sequence

from .data_loader import SensorFile, read_rows
from .errors import FlowTableError, ParseResult
from .models import ConcentrationPoint, FlowStep, GasExposureEvent

logger = logging.getLogger(__name__)

# Seconds inserted before each step so the profile has a sharp edge
EDGE_OFFSET_S = 0.05


def parse_flow_rows(rows: Sequence[Sequence[str]], name: str = 'gas flow table') -> ParseResult:
    """Turn raw rows ``[label, target_gas_flow, duration_s, ...]`` into FlowSteps.

    Short or non-numeric rows are dropped with a warning. Raises
    FlowTableError when no row survives.
    """
    result = ParseResult(value=[])
    for index, row in enumerate(rows):
        if len(row) < 3:
            msg = f"Gas flow file: Row {index + 1} is invalid (expected at least 3 columns). Skipping."
            logger.warning(msg)
            result.warn(msg, row=index + 1)
            continue
        try:
            flow = float(row[1])
            duration = float(row[2])
        except ValueError:
            flow = duration = math.nan
        if math.isnan(flow) or math.isnan(duration):
            msg = f"Gas flow file: Row {index + 1} contains non-numeric data in columns 2 or 3. Skipping."
            logger.warning(msg)
            result.warn(msg, row=index + 1)
            continue
        result.value.append(FlowStep(target_gas_flow=flow, duration_seconds=duration))

    if not result.value:
        raise FlowTableError(
            f"Failed to parse gas flow file ({name}): No valid data parsed from gas flow file. "
            "Check file format and content (should be numeric, with at least 3 columns per row).")
    logger.info(f"Parsed {len(result.value)} gas flow steps from {name}")
    return result


def parse_flow_table(sensor_file: SensorFile) -> ParseResult:
    try:
        rows = read_rows(sensor_file)
    except OSError as e:
        raise FlowTableError(f"Failed to parse gas flow file ({sensor_file.name}): {e}")
    return parse_flow_rows(rows, sensor_file.name)


def step_concentration(step: FlowStep, cylinder_concentration: float,
                       total_flowrate: float) -> float:
    if total_flowrate == 0:
        logger.warning("Total flowrate is 0, concentration calculation will be affected.")
        if cylinder_concentration > 0 and step.target_gas_flow > 0:
            return math.inf
        return 0.0
    return cylinder_concentration * step.target_gas_flow / total_flowrate


def build_concentration_profile(flow_steps: Sequence[FlowStep],
                                cylinder_concentration: float,
                                total_flowrate: float = 500.0) -> List[ConcentrationPoint]:
    """Concentration step function, one edge and one plateau point per step.

    Starts at ``(0, 0)``; the result has ``1 + 2 * len(flow_steps)`` points
    with non-decreasing ``time_min``.
    """
    profile = [ConcentrationPoint(time_min=0.0, conc=0.0)]
    clock_s = 0.0
    for step in flow_steps:
        conc = step_concentration(step, cylinder_concentration, total_flowrate)

        clock_s += EDGE_OFFSET_S
        profile.append(ConcentrationPoint(time_min=clock_s / 60, conc=conc))

        clock_s += step.duration_seconds
        profile.append(ConcentrationPoint(time_min=clock_s / 60, conc=conc))

    logger.debug(f"Concentration profile has {len(profile)} points")
    return profile


def identify_exposure_events(profile: Sequence[ConcentrationPoint]) -> List[GasExposureEvent]:
    """Merge runs of equal positive concentration into exposure events.

    Single forward pass over an already time-ordered profile. Runs that do not
    advance in time are dropped, so every event has ``end_time > start_time``.
    """
    events: List[GasExposureEvent] = []
    start = end = conc = None

    for point in profile:
        if start is None:
            if point.conc > 0:
                start, end, conc = point.time_min, point.time_min, point.conc
            continue

        if point.conc == conc and point.time_min > end:
            end = point.time_min
            continue

        if end > start:
            events.append(GasExposureEvent(start, end, conc))
        if point.conc > 0:
            start, end, conc = point.time_min, point.time_min, point.conc
        else:
            start = end = conc = None

    if start is not None and end > start:
        events.append(GasExposureEvent(start, end, conc))

    logger.info(f"Identified {len(events)} gas exposure events")
    return events


def events_in_window(events: Sequence[GasExposureEvent],
                     start: Optional[float] = None,
                     end: Optional[float] = None) -> List[GasExposureEvent]:
    """Events clipped to ``[start, end]``; events with no overlap are dropped."""
    lo = -math.inf if start is None or math.isnan(start) else start
    hi = math.inf if end is None or math.isnan(end) else end
    clipped = []
    for event in events:
        s = max(event.start_time, lo)
        e = min(event.end_time, hi)
        if s < e:
            clipped.append(GasExposureEvent(s, e, event.concentration))
    return clipped


def format_concentration(value: float, precision: int = 1) -> str:
    if math.isnan(value):
        return 'NaN'
    return f"{value:.{precision}f}"
