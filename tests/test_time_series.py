import math

import numpy as np
import pytest

from impedance_analysis.errors import ErrorKind, SchemaError
from impedance_analysis.gas_profile import build_concentration_profile
from impedance_analysis.models import FlowStep, TimeSeriesFileItem
from impedance_analysis.time_series import (
    TIME_SERIES_SCHEMA,
    build_sensor_table,
    compute_signal,
    select_reference_index,
    suppress_artifacts,
)


def _row(stamp, impedance, phase="-12.5"):
    return [stamp, "v", "i", "x", "y", "z", "w", str(impedance), str(phase)]


def _item(name="chip__1__vs_time.csv"):
    return TimeSeriesFileItem(original_name=name, effective_name=name,
                              sensor_number_raw=0, sensor_number_display=1, type="time_series")


def _rows(impedances):
    stamps = ["01/01/2024 10:00:00.0", "01/01/2024 10:00:30.0",
              "01/01/2024 10:01:00.0", "01/01/2024 10:01:30.0", "01/01/2024 10:02:00.0"]
    return [_row(s, z) for s, z in zip(stamps, impedances)]


def test_schema_requires_nine_columns():
    assert TIME_SERIES_SCHEMA.min_columns == 9
    with pytest.raises(SchemaError):
        build_sensor_table([["01/01/2024 10:00:00", "1", "2"]], _item(), 0.5)


def test_relative_time_and_signal():
    result = build_sensor_table(_rows([100, 100, 110, 90]), _item(), baseline_minutes=0.5)
    assert result.ok
    table = result.value
    assert table.sensor_number == 1
    assert [r.time_s for r in table.data] == pytest.approx([0, 30, 60, 90])
    assert [r.time_min for r in table.data] == pytest.approx([0, 0.5, 1.0, 1.5])
    assert [r.signal for r in table.data] == pytest.approx([0.0, 0.0, 10.0, -10.0])
    assert table.data[0].original_time_s == "01/01/2024 10:00:00.0"
    assert table.data[0].phase == pytest.approx(-12.5)


def test_baseline_uses_last_row_at_or_before_reference_time():
    result = build_sensor_table(_rows([50, 100, 110]), _item(), baseline_minutes=0.75)
    signal = [r.signal for r in result.value.data]
    assert signal == pytest.approx([-50.0, 0.0, 10.0])


def test_no_gas_concentration_without_flow_table():
    table = build_sensor_table(_rows([100, 101]), _item(), 0.0).value
    assert all(math.isnan(r.gas_concentration) for r in table.data)


def test_gas_concentration_follows_profile():
    profile = build_concentration_profile([FlowStep(0.5, 60)], 20, 500)
    table = build_sensor_table(_rows([100, 100, 100, 100]), _item(), 0.0, profile).value
    assert [r.gas_concentration for r in table.data] == pytest.approx([0.0, 0.02, 0.02, 0.02])


def test_signal_computation():
    assert compute_signal(np.array([110.0]), 100.0)[0] == pytest.approx(10.0)
    assert math.isnan(compute_signal(np.array([110.0]), 0.0)[0])
    assert math.isnan(compute_signal(np.array([110.0]), float("nan"))[0])
    assert math.isnan(compute_signal(np.array([float("nan")]), 100.0)[0])


def test_artifact_suppression():
    impedance, signal = suppress_artifacts(np.array([2e12, 100.0, 100.0]),
                                           np.array([5.0, 15000.0, 9999.0]))
    assert math.isnan(impedance[0])
    assert impedance[1] == 100.0
    assert math.isnan(signal[1])
    assert signal[2] == 9999.0
    assert signal[0] == 5.0


def test_artifacts_in_table():
    table = build_sensor_table(_rows([100, 100, 2e12, 15100, 10099]), _item(), 0.5).value
    assert math.isnan(table.data[2].impedance)
    assert math.isnan(table.data[2].signal)
    assert table.data[3].impedance == pytest.approx(15100)
    assert math.isnan(table.data[3].signal)
    assert table.data[4].signal == pytest.approx(9999.0)


def test_unparsable_origin_keeps_rows():
    rows = _rows([100, 110])
    rows[0][0] = "not a time"
    result = build_sensor_table(rows, _item(), 0.5)
    table = result.value
    assert len(table.data) == 2
    assert all(math.isnan(r.time_min) for r in table.data)
    assert all(math.isnan(r.signal) for r in table.data)
    assert table.data[1].impedance == 110
    assert any("could not be parsed" in d.message for d in result.diagnostics)


def test_short_row_after_first_becomes_nan():
    rows = _rows([100, 110])
    rows.append(["01/01/2024 10:01:00.0", "1", "2"])
    table = build_sensor_table(rows, _item(), 0.5).value
    last = table.data[-1]
    assert last.original_time_s == "01/01/2024 10:01:00.0"
    assert math.isnan(last.time_min) and math.isnan(last.impedance) and math.isnan(last.signal)


def test_non_numeric_impedance_is_nan_row_kept():
    table = build_sensor_table(_rows([100, "n/a", 120]), _item(), 0.0).value
    assert len(table.data) == 3
    assert math.isnan(table.data[1].impedance)
    assert math.isnan(table.data[1].signal)
    assert table.data[2].signal == pytest.approx(20.0)


def test_reference_index_fallbacks():
    assert select_reference_index(np.array([0.0, 0.5, 1.0]), 0.6) == 1
    assert select_reference_index(np.array([0.0, 1.0]), -1.0) == 0
    assert select_reference_index(np.array([np.nan, 1.0]), -1.0) is None
    assert select_reference_index(np.array([]), 1.0) is None


def test_empty_file_is_reported_not_raised():
    result = build_sensor_table([], _item(), 0.0)
    assert not result.ok
    assert result.error_kind == ErrorKind.EMPTY_FILE


def test_table_to_frame():
    frame = build_sensor_table(_rows([100, 110]), _item(), 0.0).value.to_frame()
    assert list(frame.columns) == ["original_time_s", "time_s", "time_min", "impedance",
                                   "phase", "signal", "gas_concentration"]
    assert frame["signal"].iloc[1] == pytest.approx(10.0)
