import math
from datetime import datetime

import pytest

from impedance_analysis.data_loader import SensorFile
from impedance_analysis.errors import ErrorKind, FileParseError, FileState
from impedance_analysis.models import SpectroscopySweep, TimeSeriesFileItem, sweeps_to_frame
from impedance_analysis.spectroscopy import (
    find_data_start,
    group_by_frequency,
    load_sweep,
    parse_sweep_text,
    parse_sweep_timestamp,
    process_spectroscopy_files,
    slice_at_frequency,
    unique_frequencies,
)

SWEEP_TEXT = (
    "Instrument,IMP-100\r\n"
    "Operator,lab\r\n"
    "Frequency (Hz),Z (Ohm),Angle (deg)\r\n"
    "1000.0,250.5,-10.2\r\n"
    "100.0,300.1,-20.3\r\n"
    "bad,row,here\r\n"
    "\r\n"
    "10.0,410.0,-35.0\r\n"
)


def _item(name, text=SWEEP_TEXT, last_modified=None):
    source = SensorFile.from_text(name, text, last_modified=last_modified)
    return TimeSeriesFileItem(original_name=name, effective_name=name,
                              type="spectroscopy", source=source)


def _sweep(t, freqs, zs):
    return SpectroscopySweep(file_name=f"s{t}.csv", effective_name=f"s{t}.csv",
                             timestamp=datetime(2024, 1, 1), frequencies=list(freqs),
                             impedances=list(zs), phases=[-z for z in zs],
                             relative_time_min=t)


def test_parse_sweep_timestamp():
    assert parse_sweep_timestamp("run__IS_01_02_2024 10_05_00.5.csv") == \
        datetime(2024, 2, 1, 10, 5, 0, 500000)
    assert parse_sweep_timestamp("run__is_01_02_2024 10_05_00.CSV") == datetime(2024, 2, 1, 10, 5)
    assert parse_sweep_timestamp("run__IS_2024.csv") is None
    assert parse_sweep_timestamp("run__IS_31_02_2024 10_05_00.csv") is None


def test_header_marks_data_start():
    lines = SWEEP_TEXT.replace("\r\n", "\n").split("\n")
    assert find_data_start(lines) == (3, True)


def test_numeric_fallback_start():
    assert find_data_start(["meta data", "1,2,3", "4,5,6"]) == (1, False)
    assert find_data_start(["only", "text"]) == (None, False)


def test_parse_sweep_text_drops_invalid_rows():
    result = parse_sweep_text(SWEEP_TEXT, "a.csv", "a.csv", datetime(2024, 1, 1))
    assert result.ok
    sweep = result.value
    assert sweep.frequencies == [1000.0, 100.0, 10.0]
    assert sweep.impedances == [250.5, 300.1, 410.0]
    assert sweep.phases == [-10.2, -20.3, -35.0]


def test_parse_sweep_text_failures():
    no_start = parse_sweep_text("nothing here\nat all", "a.csv", "a.csv", datetime(2024, 1, 1))
    assert no_start.error_kind == ErrorKind.NO_DATA_START
    no_rows = parse_sweep_text("Frequency (Hz),Z,Angle\nx,y,z\n", "a.csv", "a.csv", datetime(2024, 1, 1))
    assert no_rows.error_kind == ErrorKind.NO_VALID_ROWS
    assert not no_rows.ok


def test_sweeps_anchor_on_first_processed_file_and_sort():
    items = [_item("run__IS_01_02_2024 10_05_00.csv"),
             _item("run__IS_01_02_2024 10_00_00.csv"),
             _item("run__IS_01_02_2024 10_10_00.csv")]
    sweeps, statuses = process_spectroscopy_files(items)
    assert [s.relative_time_min for s in sweeps] == pytest.approx([-5.0, 0.0, 5.0])
    assert sweeps[0].file_name == "run__IS_01_02_2024 10_00_00.csv"
    assert all(s.state == FileState.OK for s in statuses)


def test_failed_file_is_excluded_batch_continues():
    items = [_item("bad__IS_01_02_2024 09_00_00.csv", text="no table"),
             _item("run__IS_01_02_2024 10_00_00.csv"),
             _item("run__IS_01_02_2024 10_02_30.csv")]
    sweeps, statuses = process_spectroscopy_files(items)
    assert len(sweeps) == 2
    assert sweeps[0].relative_time_min == 0.0
    assert sweeps[1].relative_time_min == pytest.approx(2.5)
    assert statuses[0].state == FileState.FAILED


def test_timestamp_falls_back_to_modification_time():
    sweep_result = process_spectroscopy_files([_item("odd.csv", last_modified=0.0)])
    sweeps, statuses = sweep_result
    assert sweeps[0].timestamp == datetime.fromtimestamp(0.0)
    assert statuses[0].state == FileState.DEGRADED


def test_load_sweep_raises_for_unusable_file():
    with pytest.raises(FileParseError):
        load_sweep(_item("x__IS_01_02_2024 10_00_00.csv", text=""))


def test_unique_frequencies_sorted():
    sweeps = [_sweep(0, [1000.0, 100.0], [1, 2]), _sweep(5, [10.0, 1000.0], [3, 4])]
    assert unique_frequencies(sweeps) == [10.0, 100.0, 1000.0]
    assert unique_frequencies([]) == []


def test_slice_at_frequency():
    sweeps = [_sweep(5, [1000.0, 100.0], [11.0, 12.0]), _sweep(0, [100.0, 1000.0], [21.0, 22.0])]
    points = slice_at_frequency(sweeps, 1000.0)
    assert points == [(0, 22.0), (5, 11.0)]
    assert slice_at_frequency(sweeps, 1000.0, "phase") == [(0, -22.0), (5, -11.0)]
    assert slice_at_frequency(sweeps, 12345.0) == []


def test_slice_skips_sweeps_without_frequency():
    sweeps = [_sweep(0, [1000.0], [1.0]), _sweep(5, [100.0], [2.0])]
    assert slice_at_frequency(sweeps, 100.0) == [(5, 2.0)]


def test_group_by_frequency():
    sweeps = [_sweep(5, [1000.0, 100.0], [11.0, 12.0]), _sweep(0, [1000.0], [21.0])]
    grouped = group_by_frequency(sweeps)
    assert list(grouped) == [100.0, 1000.0]
    assert [p[0] for p in grouped[1000.0]] == [0, 5]
    with pytest.raises(ValueError):
        group_by_frequency(sweeps, "capacitance")


def test_sweeps_to_frame():
    frame = sweeps_to_frame([_sweep(0, [1.0, 2.0], [3.0, 4.0])])
    assert len(frame) == 2
    assert math.isclose(frame["impedance"].sum(), 7.0)
    assert sweeps_to_frame([]).empty
