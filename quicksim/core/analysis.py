"""Weighted binning run: records → weights → kinematics → bins → CSV.

Typical use::

    analysis = Analysis(load_analysis_config("dis.yaml"))
    summary = analysis.run(read_kinematics_csv(path, RecordKind.DIS).items)
    analysis.end()
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from quicksim.constants import DEFAULT_OUTPUT_DIR
from quicksim.core.binning import BinAccumulator
from quicksim.core.kinematics import make_value_extractor
from quicksim.core.luminosity import parse_energy_config
from quicksim.core.serializers import load_geometry_yaml
from quicksim.core.weights import WeightTable
from quicksim.errors import ConfigError
from quicksim.export.csv_import import (
    cap_event_counts,
    filter_records_by_energy,
    load_explicit_geometry,
    load_luminosity_table,
    read_file_records,
    read_precalculated_weights,
)
from quicksim.models.analysis import AnalysisConfig
from quicksim.models.binning import BinGeometry
from quicksim.models.records import WeightMode
from quicksim.models.results import AnalysisSummary

logger = logging.getLogger(__name__)

_FORMAT_BY_SUFFIX = {".yaml": "yaml", ".yml": "yaml", ".csv": "csv"}


def binning_format(config: AnalysisConfig) -> str:
    """Declared binning format, else inferred from the scheme suffix."""
    if config.binning_format:
        return config.binning_format
    fmt = _FORMAT_BY_SUFFIX.get(Path(config.binning_scheme).suffix.lower())
    if fmt is None:
        raise ConfigError(
            f"Cannot infer binning format of {config.binning_scheme!r}; "
            f"set binning_format to yaml or csv."
        )
    return fmt


def load_geometry(config: AnalysisConfig) -> BinGeometry:
    if binning_format(config) == "csv":
        return load_explicit_geometry(
            config.binning_scheme,
            energy_config=config.energy_config,
            miss_policy=config.explicit_miss_policy,
        )
    geometry = load_geometry_yaml(config.binning_scheme, miss_policy=config.explicit_miss_policy)
    if geometry.energy_config != config.energy_config:
        logger.warning(
            "Binning %r is declared for %s but the analysis runs at %s.",
            geometry.name, geometry.energy_config, config.energy_config,
        )
    return geometry


def build_weight_table(config: AnalysisConfig) -> WeightTable:
    """Weight table for the configured beam energies.

    Precalculated weights win over a luminosity table; with neither the
    experimental luminosity defaults to 1 pb⁻¹.  With ``max_events`` set,
    each record counts at most that many events.
    """
    e_energy, h_energy = parse_energy_config(config.energy_config)
    records = filter_records_by_energy(
        read_file_records(config.records_csv).items, e_energy, h_energy,
    )
    records = cap_event_counts(records, config.max_events)
    if config.weights_csv and os.path.exists(config.weights_csv):
        return WeightTable.from_precalculated(
            read_precalculated_weights(config.weights_csv),
            e_energy, h_energy, records=records,
        )
    if config.weights_csv:
        logger.warning(
            "Precalculated weights %s not found; deriving weights instead.",
            config.weights_csv,
        )
    if config.lumi_csv:
        return WeightTable.from_records(
            records, WeightMode.LUMINOSITY, load_luminosity_table(config.lumi_csv),
        )
    return WeightTable.from_records(records, WeightMode.DEFAULT)


def default_output_path(config: AnalysisConfig) -> str:
    scheme = Path(config.binning_scheme).stem
    name = (
        f"analysis_{config.analysis_type.value}_energy={config.energy_config}"
        f"_type={config.collision_type}_yamlName={scheme}"
        f"_maxEvents={config.max_events}.csv"
    )
    return os.path.join(DEFAULT_OUTPUT_DIR, name)


class Analysis:
    """One configured weighted binning run.

    Weight table, geometry and branch accessors are set up on the first
    :meth:`run` call; later calls keep accumulating.
    """

    def __init__(self, config: AnalysisConfig) -> None:
        self.config = config
        self.weights: WeightTable | None = None
        self.accumulator: BinAccumulator | None = None
        self._extract = None
        self._summary = AnalysisSummary()

    def setup(self) -> None:
        if self.accumulator is not None:
            return
        self.weights = build_weight_table(self.config)
        self.accumulator = BinAccumulator(load_geometry(self.config))
        self._extract = make_value_extractor(
            self.config.analysis_type, self.accumulator.reco_branches(),
        )
        self._summary.intervals = self.weights.diagnostics()

    def run(self, events: Iterable) -> AnalysisSummary:
        """Weight and bin kinematics records.

        Args:
            events: Records of the configured analysis type.

        Returns:
            Running totals over all calls so far.
        """
        self.setup()
        limit = self.config.max_events
        for event in events:
            if 0 < limit <= self._summary.events_processed:
                logger.info("Reached max_events=%d.", limit)
                break
            self._summary.events_processed += 1
            weight = self.weights.get_weight(event.Q2)
            if self.accumulator.add_event(self._extract(event), weight):
                self._summary.events_binned += 1
            else:
                self._summary.events_dropped += 1
        self._summary.total_weight = self.accumulator.total()
        logger.info(
            "Processed %d events: %d binned, %d outside the binning.",
            self._summary.events_processed,
            self._summary.events_binned,
            self._summary.events_dropped,
        )
        return self._summary

    def end(self) -> str:
        """Save the binned table and return its path."""
        self.setup()
        path = self.config.output_csv or default_output_path(self.config)
        self.accumulator.save_csv(path)
        self._summary.output_csv = path
        return path

    @property
    def summary(self) -> AnalysisSummary:
        return self._summary
