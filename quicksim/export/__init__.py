"""Export: CSV tables in and out."""

from quicksim.export.csv_export import CsvExporter
from quicksim.export.csv_import import (
    load_explicit_geometry,
    load_luminosity_table,
    read_file_records,
    read_kinematics_csv,
    read_precalculated_weights,
)

__all__ = [
    "CsvExporter",
    "load_explicit_geometry",
    "load_luminosity_table",
    "read_file_records",
    "read_kinematics_csv",
    "read_precalculated_weights",
]
