import argparse
import logging
import math
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running from anywhere
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from impedance_analysis.core.pipeline import run_full_pipeline  # noqa: E402
from impedance_analysis.errors import AnalysisError  # noqa: E402
from impedance_analysis.gas_profile import format_concentration  # noqa: E402
from impedance_analysis.settings import load_analysis_config  # noqa: E402


def _print_time_series(result):
    cfg = result.config
    if result.exposure_events:
        print(f"\nGas exposure events ({cfg.concentration_label})")
        print("-------------------")
        for event in result.exposure_events:
            conc = format_concentration(event.concentration, cfg.concentration_precision)
            print(f"  {event.start_time:8.3f} - {event.end_time:8.3f} min  {conc}")
    print("\nSensor tables")
    print("-------------")
    for table in result.sensor_tables:
        valid = len(table.valid_time_rows())
        print(f"  Sensor {table.sensor_number}: {table.file_name} "
              f"({len(table.data)} rows, {valid} with valid time)")


def _print_spectroscopy(result):
    print("\nSpectroscopy sweeps")
    print("-------------------")
    for sweep in result.sweeps:
        print(f"  {sweep.relative_time_min:8.2f} min  {sweep.file_name} "
              f"({len(sweep.frequencies)} points)")
    freqs = result.unique_frequencies
    if freqs:
        print(f"Unique frequencies: {len(freqs)} ({freqs[0]:.2e} .. {freqs[-1]:.2e} Hz)")


def main():
    parser = argparse.ArgumentParser(
        description="Headless impedance analysis: classify -> normalize -> calibrate -> segment"
    )
    parser.add_argument("--data", required=True, help="Directory holding the exported files")
    parser.add_argument("--config", default=None, help="YAML configuration (defaults to config/config.yaml)")
    parser.add_argument("--mode", choices=["time_series", "spectroscopy"], default=None,
                        help="Analysis type to use when the batch is ambiguous")
    parser.add_argument("--baseline-time", default=None,
                        help="Baseline reference time, HH:MM:SS.s or MM:SS.s")
    parser.add_argument("--cylinder-concentration", type=float, default=None,
                        help="Target gas concentration in cylinder 2 (ppm)")
    parser.add_argument("--experiment-name", default=None)
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    config = load_analysis_config(args.config, {
        'baseline_time': args.baseline_time,
        'cylinder2_concentration': args.cylinder_concentration,
        'experiment_name': args.experiment_name,
    })

    data_dir = str(Path(args.data).resolve())
    print("Running analysis...")
    print(f"  data_dir: {data_dir}")
    print(f"  baseline_time: {config.baseline_time}")
    if not math.isnan(config.cylinder2_concentration):
        print(f"  cylinder2_concentration: {config.cylinder2_concentration}")

    def report(done, total, message):
        print(f"  [{done}/{total}] {message}")

    try:
        result = run_full_pipeline(data_dir, config=config, mode=args.mode, progress=report)
    except AnalysisError as e:
        print(f"Error during processing: {e}", file=sys.stderr)
        return 1

    print(f"\n{result.message}")
    if not result.completed:
        print(f"Analysis not run ({result.status}).", file=sys.stderr)
        if result.status == "ambiguous":
            print("Re-run with --mode time_series or --mode spectroscopy.", file=sys.stderr)
        return 2

    if result.mode == "time_series":
        _print_time_series(result)
    else:
        _print_spectroscopy(result)

    print("\nFile status")
    print("-----------")
    for status in result.file_statuses:
        print(f"  {status.state.value:9s} {status.file_name}")
        for diag in status.diagnostics:
            print(f"            {diag.level}: {diag.message}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
