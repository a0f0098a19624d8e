"""CSV export: binned tables, weighted records and reusable weight tables."""

from __future__ import annotations

import csv
import logging
import os
from typing import TYPE_CHECKING

from quicksim.constants import (
    COUNT_COLUMN,
    PRECALCULATED_HEADER,
    WEIGHTED_RECORD_HEADER,
)

if TYPE_CHECKING:
    from quicksim.core.binning import BinAccumulator
    from quicksim.core.weights import WeightTable
    from quicksim.models.records import FileRecord

logger = logging.getLogger(__name__)


def _ensure_parent(output_path: str) -> None:
    parent = os.path.dirname(output_path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class CsvExporter:
    """CSV file export operations."""

    def export_bin_table(self, accumulator: BinAccumulator, output_path: str) -> None:
        """Export the binned table of an accumulator.

        Columns: ``<dim>_min``, ``<dim>_max`` per dimension, then
        ``scaled_events``.

        Args:
            accumulator: Filled accumulator.
            output_path: Destination file path (.csv).
        """
        _ensure_parent(output_path)
        rows = accumulator.bin_table_rows()
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(accumulator.bin_table_header() + [COUNT_COLUMN])
            writer.writerows(rows)
        logger.info("Saved %d bins to %s.", len(rows), output_path)

    def export_weighted_records(
        self,
        table: WeightTable,
        records: list[FileRecord],
        output_path: str,
    ) -> None:
        """Export the records with their event weight appended.

        Args:
            table: Weight table built from the same records.
            records: Per-file records, written in the given order.
            output_path: Destination file path (.csv).
        """
        _ensure_parent(output_path)
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(WEIGHTED_RECORD_HEADER)
            for rec, weight in table.weighted_record_rows(records):
                writer.writerow([
                    rec.filename, rec.q2_min, rec.q2_max,
                    rec.e_energy, rec.h_energy,
                    rec.n_events, rec.cross_section_pb, weight,
                ])
        logger.info("Saved %d weighted records to %s.", len(records), output_path)

    def export_precalculated_weights(self, table: WeightTable, output_path: str) -> None:
        """Export one reusable weight row per Q² interval.

        The output can be read back with ``read_precalculated_weights``.
        """
        _ensure_parent(output_path)
        rows = table.precalculated_rows()
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(PRECALCULATED_HEADER)
            for r in rows:
                writer.writerow([
                    r.q2_min, r.q2_max, r.collision_type,
                    r.e_energy, r.h_energy, r.weight,
                ])
        logger.info("Saved %d precalculated weights to %s.", len(rows), output_path)
