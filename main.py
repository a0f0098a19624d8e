"""quicksim: command-line entry point.

Usage:
    python main.py analyze  <config.yaml> <kinematics.csv> [--skip-bad-rows]
    python main.py weights  <records.csv> --energy 10x100 [--lumi lumi.csv]
    python main.py migration <migration.yaml>
"""

import argparse
import logging
import os
import sys

from quicksim.constants import APP_NAME, APP_VERSION, WEIGHTS_SUFFIX
from quicksim.core.analysis import Analysis
from quicksim.core.luminosity import parse_energy_config
from quicksim.core.migration import MigrationMatrix
from quicksim.core.serializers import load_analysis_config
from quicksim.core.weights import WeightTable
from quicksim.errors import QuickSimError
from quicksim.export import (
    CsvExporter,
    load_luminosity_table,
    read_file_records,
    read_kinematics_csv,
)
from quicksim.export.csv_import import filter_records_by_energy
from quicksim.models.records import ErrorPolicy, WeightMode

logger = logging.getLogger(APP_NAME)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def cmd_analyze(args) -> int:
    """Bin a kinematics CSV with the weights of an analysis config."""
    config = load_analysis_config(args.config)
    policy = ErrorPolicy.SKIP if args.skip_bad_rows else ErrorPolicy.RAISE
    report = read_kinematics_csv(args.kinematics, config.analysis_type, policy)
    analysis = Analysis(config)
    summary = analysis.run(report.items)
    path = analysis.end()
    print(
        f"{summary.events_binned}/{summary.events_processed} events binned, "
        f"total weight {summary.total_weight:g} -> {path}"
    )
    if report.rejected:
        print(f"{len(report.rejected)} kinematics rows skipped")
    return 0


def cmd_weights(args) -> int:
    """Export weighted records and precalculated weights for one energy."""
    e_energy, h_energy = parse_energy_config(args.energy)
    records = filter_records_by_energy(
        read_file_records(args.records).items, e_energy, h_energy,
    )
    if args.lumi:
        table = WeightTable.from_records(
            records, WeightMode.LUMINOSITY, load_luminosity_table(args.lumi),
        )
    else:
        table = WeightTable.from_records(records, WeightMode.DEFAULT)

    stem = os.path.splitext(os.path.basename(args.records))[0]
    out_dir = args.output_dir
    exporter = CsvExporter()
    exporter.export_weighted_records(
        table, records, os.path.join(out_dir, f"{stem}_{args.energy}{WEIGHTS_SUFFIX}"),
    )
    exporter.export_precalculated_weights(
        table, os.path.join(out_dir, f"{stem}_{args.energy}_precalculated{WEIGHTS_SUFFIX}"),
    )
    for diag in table.diagnostics():
        print(
            f"Q2 in [{diag.q2_min:g}, {diag.q2_max:g}): count={diag.event_count} "
            f"xsec={diag.cross_section:g} pb weight={diag.final_weight:g}"
        )
    return 0


def cmd_migration(args) -> int:
    """Print the response of every true/reco bin pair."""
    matrix = MigrationMatrix.from_yaml(args.matrix)
    for line in matrix.summary_lines():
        print(line)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Cross-section weighting and N-D binning of sliced DIS samples.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Run an analysis config on a kinematics CSV")
    p.add_argument("config", help="Analysis YAML")
    p.add_argument("kinematics", help="Kinematics CSV, one column per field")
    p.add_argument("--skip-bad-rows", action="store_true", help="Skip malformed kinematics rows")
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("weights", help="Export per-record and precalculated weights")
    p.add_argument("records", help="Records CSV")
    p.add_argument("--energy", required=True, help="Beam energies, e.g. 10x100")
    p.add_argument("--lumi", default="", help="Experimental luminosity CSV")
    p.add_argument("--output-dir", default=".", help="Directory for the weight tables")
    p.set_defaults(func=cmd_weights)

    p = sub.add_parser("migration", help="Dump a migration matrix")
    p.add_argument("matrix", help="Migration YAML")
    p.set_defaults(func=cmd_migration)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        return args.func(args)
    except (QuickSimError, OSError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
