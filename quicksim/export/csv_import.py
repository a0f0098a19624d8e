"""CSV import: sample records, luminosity and weight tables, explicit
binnings and kinematics records.

All tables have one header row; columns are read by position.  Batch
loaders (records, kinematics) take an ``ErrorPolicy``: ``RAISE`` aborts on
the first malformed row, ``SKIP`` logs it and reports it in the returned
``LoadReport``.
"""

from __future__ import annotations

import csv
import dataclasses
import logging
import re
from collections.abc import Callable, Iterator
from pathlib import Path

from quicksim.constants import (
    EXPLICIT_COLUMNS_PER_DIM,
    NO_WEIGHT,
    RECORD_HEADER,
)
from quicksim.core.binning import derive_explicit_edges, validate_geometry
from quicksim.core.luminosity import LuminosityTable
from quicksim.errors import ConfigError
from quicksim.models.binning import (
    BinGeometry,
    Dimension,
    ExplicitMissPolicy,
    GeometryKind,
    Region,
)
from quicksim.models.kinematics import KINEMATICS_TYPES, RecordKind
from quicksim.models.records import (
    ErrorPolicy,
    FileRecord,
    LoadReport,
    PrecalculatedWeight,
    RejectedRow,
)

logger = logging.getLogger(__name__)

_MIN_SUFFIX = re.compile(r"_?min$", re.IGNORECASE)


def _read_rows(path: str) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(line_number, cells)`` for non-blank data rows."""
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            cells = [c.strip() for c in row]
            if not any(cells):
                continue
            yield reader.line_num, cells


def _read_header(path: str) -> list[str]:
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        header = next(csv.reader(f), None)
    if header is None:
        raise ConfigError(f"{path}: file is empty.")
    return [h.strip() for h in header]


def _load_batch(
    path: str,
    parse: Callable[[list[str]], object],
    policy: ErrorPolicy,
) -> LoadReport:
    report = LoadReport()
    for line_number, cells in _read_rows(path):
        try:
            report.items.append(parse(cells))
        except ValueError as exc:
            if policy == ErrorPolicy.RAISE:
                raise ConfigError(f"{path}:{line_number}: {exc}") from exc
            logger.warning("Skipping %s line %d: %s", path, line_number, exc)
            report.rejected.append(RejectedRow(line_number, str(exc)))
    return report


# =====================================================================
# Sample records
# =====================================================================


def parse_file_record(cells: list[str]) -> FileRecord:
    """One ``filename,Q2_min,...,cross_section_pb[,weight]`` row.

    Raises:
        ValueError: On a short row or non-numeric field.
    """
    if len(cells) < len(RECORD_HEADER):
        raise ValueError(
            f"expected at least {len(RECORD_HEADER)} columns, got {len(cells)}"
        )
    weight = NO_WEIGHT
    if len(cells) > len(RECORD_HEADER) and cells[len(RECORD_HEADER)]:
        weight = float(cells[len(RECORD_HEADER)])
    return FileRecord(
        filename=cells[0],
        q2_min=int(cells[1]),
        q2_max=int(cells[2]),
        e_energy=int(cells[3]),
        h_energy=int(cells[4]),
        n_events=int(cells[5]),
        cross_section_pb=float(cells[6]),
        weight=weight,
    )


def read_file_records(path: str, policy: ErrorPolicy = ErrorPolicy.RAISE) -> LoadReport:
    """Load a records CSV into a report of ``FileRecord`` items."""
    report = _load_batch(path, parse_file_record, policy)
    logger.info(
        "Loaded %d records from %s (%d rejected).",
        len(report.items), path, len(report.rejected),
    )
    return report


def filter_records_by_energy(
    records: list[FileRecord],
    e_energy: int,
    h_energy: int,
) -> list[FileRecord]:
    return [r for r in records if r.e_energy == e_energy and r.h_energy == h_energy]


def cap_event_counts(records: list[FileRecord], max_events: int) -> list[FileRecord]:
    """Limit every record's ``n_events`` to *max_events* (``<= 0``: no limit)."""
    if max_events <= 0:
        return list(records)
    return [
        dataclasses.replace(r, n_events=max_events) if r.n_events > max_events else r
        for r in records
    ]


# =====================================================================
# Luminosity and precalculated weights
# =====================================================================


def load_luminosity_table(path: str) -> LuminosityTable:
    """``electron_energy,hadron_energy,expected_lumi`` rows.

    Raises:
        ConfigError: On a malformed row.
    """
    rows = []
    for line_number, cells in _read_rows(path):
        try:
            rows.append((int(cells[0]), int(cells[1]), float(cells[2])))
        except (IndexError, ValueError) as exc:
            raise ConfigError(f"{path}:{line_number}: malformed luminosity row.") from exc
    return LuminosityTable(rows, source=path)


def read_precalculated_weights(path: str) -> list[PrecalculatedWeight]:
    """``Q2min,Q2max,collisionType,eEnergy,hEnergy,weight`` rows.

    Raises:
        ConfigError: On a malformed row.
    """
    rows = []
    for line_number, cells in _read_rows(path):
        try:
            rows.append(PrecalculatedWeight(
                q2_min=float(cells[0]),
                q2_max=float(cells[1]),
                collision_type=cells[2],
                e_energy=int(cells[3]),
                h_energy=int(cells[4]),
                weight=float(cells[5]),
            ))
        except (IndexError, ValueError) as exc:
            raise ConfigError(
                f"{path}:{line_number}: malformed precalculated weight row."
            ) from exc
    logger.info("Read %d precalculated weight rows from %s.", len(rows), path)
    return rows


# =====================================================================
# Explicit binning
# =====================================================================


def _dimension_name(header_cell: str, d: int) -> str:
    name = _MIN_SUFFIX.sub("", header_cell.strip())
    return name or f"dim{d}"


def load_explicit_geometry(
    path: str,
    energy_config: str = "",
    miss_policy: ExplicitMissPolicy = ExplicitMissPolicy.EDGE_PROJECTION,
) -> BinGeometry:
    """Explicit binning from ``min,max,branch_true,branch_reco`` column groups.

    One data row per N-D region.  Branch names come from the first row.

    Raises:
        ConfigError: On a header that is not a multiple of four columns,
            a short row or a non-numeric edge.
    """
    header = _read_header(path)
    if not header or len(header) % EXPLICIT_COLUMNS_PER_DIM != 0:
        raise ConfigError(
            f"{path}: expected {EXPLICIT_COLUMNS_PER_DIM} columns per dimension, "
            f"got {len(header)}."
        )
    n_dims = len(header) // EXPLICIT_COLUMNS_PER_DIM

    regions = []
    branches: list[tuple[str, str]] = []
    for line_number, cells in _read_rows(path):
        if len(cells) < len(header):
            raise ConfigError(f"{path}:{line_number}: expected {len(header)} columns.")
        region = Region()
        for d in range(n_dims):
            base = d * EXPLICIT_COLUMNS_PER_DIM
            try:
                region.min_edges.append(float(cells[base]))
                region.max_edges.append(float(cells[base + 1]))
            except ValueError as exc:
                raise ConfigError(f"{path}:{line_number}: non-numeric bin edge.") from exc
            if len(branches) <= d:
                branches.append((cells[base + 2], cells[base + 3]))
        regions.append(region)

    dimensions = [
        Dimension(
            name=_dimension_name(header[d * EXPLICIT_COLUMNS_PER_DIM], d),
            branch_true=branches[d][0] if branches else "",
            branch_reco=branches[d][1] if branches else "",
            edges=edges,
        )
        for d, edges in enumerate(derive_explicit_edges(regions, n_dims))
    ]
    geometry = BinGeometry(
        kind=GeometryKind.EXPLICIT,
        dimensions=dimensions,
        regions=regions,
        energy_config=energy_config,
        name=Path(path).stem,
        miss_policy=miss_policy,
    )
    validate_geometry(geometry)
    logger.info(
        "Loaded explicit binning %r: %d regions over %d dimensions.",
        geometry.name, len(regions), n_dims,
    )
    return geometry


# =====================================================================
# Kinematics records
# =====================================================================


def read_kinematics_csv(
    path: str,
    kind: RecordKind,
    policy: ErrorPolicy = ErrorPolicy.RAISE,
) -> LoadReport:
    """Kinematics records with one column per dataclass field.

    Columns are matched by header name; fields missing from the header
    keep their default.

    Raises:
        ConfigError: If the header names no known field, or on a malformed
            row with ``ErrorPolicy.RAISE``.
    """
    record_cls = KINEMATICS_TYPES[kind]
    fields = {f.name for f in dataclasses.fields(record_cls)}
    header = _read_header(path)
    columns = [(i, h) for i, h in enumerate(header) if h in fields]
    if not columns:
        raise ConfigError(
            f"{path}: header has no {kind.value} kinematics columns "
            f"({', '.join(sorted(fields))})."
        )

    def parse(cells: list[str]):
        if len(cells) < len(header):
            raise ValueError(f"expected {len(header)} columns, got {len(cells)}")
        return record_cls(**{name: float(cells[i]) for i, name in columns})

    report = _load_batch(path, parse, policy)
    logger.info(
        "Read %d %s kinematics records from %s (%d rejected).",
        len(report.items), kind.value, path, len(report.rejected),
    )
    return report
