"""Binning geometry data models.

A geometry is either a rectangular grid (Cartesian product of per-dimension
edge arrays) or an explicit list of N-D axis-aligned regions.  Bins are
half-open ``[low, high)`` in every dimension.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class GeometryKind(Enum):
    RECTANGULAR = "rectangular"
    EXPLICIT = "explicit"


class ExplicitMissPolicy(Enum):
    """Lookup behaviour when no explicit region contains a point.

    EDGE_PROJECTION: Fall back to independent per-dimension edge search.
                     The resulting combination may not be a declared region.
    OUT_OF_RANGE:    Treat the point as outside the binning (all ``-1``).
    """
    EDGE_PROJECTION = "edge_projection"
    OUT_OF_RANGE = "out_of_range"


@dataclass
class Dimension:
    """One binned observable.

    Attributes:
        name: Axis label used in output headers.
        branch_true: Generator-level observable name.
        branch_reco: Reconstructed observable name.
        edges: Ascending bin edges, ``len == n_bins + 1``.
    """
    name: str = ""
    branch_true: str = ""
    branch_reco: str = ""
    edges: list[float] = field(default_factory=list)

    @property
    def n_bins(self) -> int:
        return max(len(self.edges) - 1, 0)


@dataclass
class Region:
    """Explicit N-D bin: ``min_edges[d] <= v_d < max_edges[d]`` for all d."""
    min_edges: list[float] = field(default_factory=list)
    max_edges: list[float] = field(default_factory=list)

    def contains(self, values: list[float]) -> bool:
        return all(
            lo <= v < hi
            for v, lo, hi in zip(values, self.min_edges, self.max_edges)
        )


@dataclass
class BinGeometry:
    """Binning scheme shared by accumulation and export.

    For ``EXPLICIT`` geometries the dimension edges are the sorted unique
    boundary values seen across all regions.

    Attributes:
        kind: Rectangular grid or explicit region list.
        dimensions: Axes in declaration order.
        regions: Explicit regions (empty for rectangular geometries).
        energy_config: Beam energy label, e.g. ``"10x100"``.
        name: Scheme name, usually the source file stem.
        miss_policy: Explicit-lookup fallback behaviour.
    """
    kind: GeometryKind = GeometryKind.RECTANGULAR
    dimensions: list[Dimension] = field(default_factory=list)
    regions: list[Region] = field(default_factory=list)
    energy_config: str = ""
    name: str = ""
    miss_policy: ExplicitMissPolicy = ExplicitMissPolicy.EDGE_PROJECTION

    @property
    def n_dims(self) -> int:
        return len(self.dimensions)

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(d.n_bins for d in self.dimensions)

    def is_compatible(self, other: BinGeometry) -> bool:
        """Same kind, same axes and same bins."""
        if self.kind != other.kind or self.n_dims != other.n_dims:
            return False
        for a, b in zip(self.dimensions, other.dimensions):
            if a.name != b.name or list(a.edges) != list(b.edges):
                return False
        if self.kind == GeometryKind.EXPLICIT:
            return self.regions == other.regions
        return True
