"""N-dimensional bin lookup and weighted accumulation.

Bins are half-open ``[low, high)`` per dimension; a value equal to the last
edge is out of range.  Bin keys are the per-dimension indices joined by
``"_"`` in dimension order, e.g. ``"2_0_5"``.

Rectangular lookup (per dimension):
    idx = bisect_right(edges, v) - 1,   -1 if v < edges[0] or v >= edges[-1]

Explicit lookup: first region containing the point; each region's lower
edges map to their index in the derived edge array.
"""

from __future__ import annotations

import itertools
import logging
from bisect import bisect_right
from collections.abc import Iterable, Sequence

from quicksim.constants import BIN_KEY_SEPARATOR, INVALID_BIN
from quicksim.errors import ConfigError, DimensionMismatchError
from quicksim.models.binning import (
    BinGeometry,
    ExplicitMissPolicy,
    GeometryKind,
    Region,
)
from quicksim.models.results import AccumulatorStats

logger = logging.getLogger(__name__)


# =====================================================================
# Lookup helpers
# =====================================================================


def find_edge_bin(edges: Sequence[float], value: float) -> int:
    """Index of the ``[edges[i], edges[i+1])`` bin holding *value*, or -1."""
    # NaN fails both comparisons and lands out of range
    if not edges or not (edges[0] <= value < edges[-1]):
        return INVALID_BIN
    return bisect_right(edges, value) - 1


def make_bin_key(indices: Sequence[int]) -> str:
    return BIN_KEY_SEPARATOR.join(str(i) for i in indices)


def parse_bin_key(key: str) -> list[int]:
    return [int(part) for part in key.split(BIN_KEY_SEPARATOR)]


def derive_explicit_edges(regions: Sequence[Region], n_dims: int) -> list[list[float]]:
    """Sorted unique boundary values per dimension across all regions."""
    edges: list[list[float]] = []
    for d in range(n_dims):
        values = set()
        for region in regions:
            values.add(float(region.min_edges[d]))
            values.add(float(region.max_edges[d]))
        edges.append(sorted(values))
    return edges


def validate_geometry(geometry: BinGeometry) -> None:
    """Check edge arrays and region shapes.

    Raises:
        ConfigError: On an empty geometry, short or descending edges, or
            regions whose length differs from the dimension count.
    """
    if geometry.n_dims == 0:
        raise ConfigError(f"Binning scheme {geometry.name!r} has no dimensions.")
    for dim in geometry.dimensions:
        if len(dim.edges) < 2:
            raise ConfigError(
                f"Dimension {dim.name!r} needs at least two edges, got {len(dim.edges)}."
            )
        if any(b <= a for a, b in zip(dim.edges, dim.edges[1:])):
            raise ConfigError(f"Dimension {dim.name!r} edges must be strictly ascending.")
    if geometry.kind == GeometryKind.EXPLICIT:
        if not geometry.regions:
            raise ConfigError(f"Explicit binning {geometry.name!r} has no regions.")
        for i, region in enumerate(geometry.regions):
            if (len(region.min_edges) != geometry.n_dims
                    or len(region.max_edges) != geometry.n_dims):
                raise ConfigError(
                    f"Region {i} of {geometry.name!r} does not have "
                    f"{geometry.n_dims} dimensions."
                )


def find_bins(geometry: BinGeometry, values: Sequence[float]) -> list[int]:
    """Per-dimension bin indices of *values*, ``-1`` where out of range.

    Raises:
        DimensionMismatchError: If ``len(values)`` differs from the
            dimension count.
    """
    return _find_bins(geometry, values)[0]


def _find_bins(geometry: BinGeometry, values: Sequence[float]) -> tuple[list[int], bool]:
    """Indices plus whether explicit edge projection was used."""
    if len(values) != geometry.n_dims:
        raise DimensionMismatchError(
            f"Expected {geometry.n_dims} values, got {len(values)}."
        )
    if geometry.kind == GeometryKind.EXPLICIT:
        for region in geometry.regions:
            if region.contains(values):
                return [
                    geometry.dimensions[d].edges.index(region.min_edges[d])
                    for d in range(geometry.n_dims)
                ], False
        if geometry.miss_policy == ExplicitMissPolicy.OUT_OF_RANGE:
            return [INVALID_BIN] * geometry.n_dims, False
        indices = _rectangular_bins(geometry, values)
        return indices, INVALID_BIN not in indices
    return _rectangular_bins(geometry, values), False


def _rectangular_bins(geometry: BinGeometry, values: Sequence[float]) -> list[int]:
    return [
        find_edge_bin(dim.edges, v)
        for dim, v in zip(geometry.dimensions, values)
    ]


# =====================================================================
# Accumulator
# =====================================================================


class BinAccumulator:
    """Weighted event sums over one binning geometry.

    Not thread-safe.  Partitioned runs use one accumulator per partition
    and combine them with :meth:`merge` or :func:`merge_accumulators`.
    """

    def __init__(self, geometry: BinGeometry) -> None:
        validate_geometry(geometry)
        self._geometry = geometry
        self._counts: dict[str, float] = {}
        self._stats = AccumulatorStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def geometry(self) -> BinGeometry:
        return self._geometry

    @property
    def stats(self) -> AccumulatorStats:
        return self._stats

    def reco_branches(self) -> list[str]:
        return [d.branch_reco for d in self._geometry.dimensions]

    def true_branches(self) -> list[str]:
        return [d.branch_true for d in self._geometry.dimensions]

    def find_bins(self, values: Sequence[float]) -> list[int]:
        return find_bins(self._geometry, values)

    def add_event(self, values: Sequence[float], weight: float) -> bool:
        """Add *weight* to the bin holding *values*.

        Returns:
            False if any dimension is out of range (event dropped).
        """
        indices, projected = _find_bins(self._geometry, values)
        if INVALID_BIN in indices:
            self._stats.dropped += 1
            return False
        if projected:
            self._stats.fallbacks += 1
            logger.warning(
                "No explicit region contains %s; using projected bin %s.",
                list(values), indices,
            )
        key = make_bin_key(indices)
        self._counts[key] = self._counts.get(key, 0.0) + weight
        self._stats.accepted += 1
        return True

    def count(self, key: str) -> float:
        return self._counts.get(key, 0.0)

    def counts(self) -> dict[str, float]:
        return dict(self._counts)

    def total(self) -> float:
        return sum(self._counts.values())

    def merge(self, other: BinAccumulator) -> None:
        """Add *other*'s bin sums into this accumulator.

        Raises:
            ConfigError: If the geometries differ.
        """
        if not self._geometry.is_compatible(other.geometry):
            raise ConfigError(
                f"Cannot merge accumulators over different binnings "
                f"({self._geometry.name!r} vs {other.geometry.name!r})."
            )
        for key, value in other._counts.items():
            self._counts[key] = self._counts.get(key, 0.0) + value
        self._stats = self._stats.merged(other.stats)

    def bin_table_header(self) -> list[str]:
        header = []
        for dim in self._geometry.dimensions:
            header.extend([f"{dim.name}_min", f"{dim.name}_max"])
        return header

    def bin_table_rows(self) -> list[list]:
        """Rows of ``(min, max)`` per dimension followed by the bin sum.

        Rectangular geometries give the dense Cartesian product with the
        last dimension varying fastest; explicit geometries one row per
        region in declaration order.
        """
        if self._geometry.kind == GeometryKind.EXPLICIT:
            return self._explicit_rows()
        return self._rectangular_rows()

    def save_csv(self, path: str) -> None:
        """Write :meth:`bin_table_rows` under :meth:`bin_table_header`."""
        from quicksim.export.csv_export import CsvExporter
        CsvExporter().export_bin_table(self, path)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _rectangular_rows(self) -> list[list]:
        dims = self._geometry.dimensions
        rows = []
        for indices in itertools.product(*(range(d.n_bins) for d in dims)):
            row: list = []
            for dim, idx in zip(dims, indices):
                row.extend([dim.edges[idx], dim.edges[idx + 1]])
            row.append(self.count(make_bin_key(indices)))
            rows.append(row)
        return rows

    def _explicit_rows(self) -> list[list]:
        dims = self._geometry.dimensions
        rows = []
        for region in self._geometry.regions:
            row: list = []
            indices = []
            for d, dim in enumerate(dims):
                row.extend([region.min_edges[d], region.max_edges[d]])
                indices.append(dim.edges.index(region.min_edges[d]))
            row.append(self.count(make_bin_key(indices)))
            rows.append(row)
        return rows


def merge_accumulators(accumulators: Iterable[BinAccumulator]) -> BinAccumulator:
    """New accumulator holding the key-wise sum of *accumulators*.

    Raises:
        ConfigError: If *accumulators* is empty or the geometries differ.
    """
    accumulators = list(accumulators)
    if not accumulators:
        raise ConfigError("Nothing to merge.")
    merged = BinAccumulator(accumulators[0].geometry)
    for acc in accumulators:
        merged.merge(acc)
    logger.info(
        "Merged %d accumulators: %d bins, total %g.",
        len(accumulators), len(merged.counts()), merged.total(),
    )
    return merged
