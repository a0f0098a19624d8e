"""Detector response (migration) matrix.

The response is a ``(total_bins, total_bins)`` table of percentages:
``response[t, r]`` is the share of true bin *t* reconstructed in bin *r*.
N-D bins are flattened mixed-radix with the last declared dimension
varying fastest:

    dims = [2, 3]:  (i, j) -> 3*i + j

The response lives in one contiguous float64 array.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
import yaml

from quicksim.constants import RESPONSE_PERCENT
from quicksim.core.binning import parse_bin_key
from quicksim.errors import ConfigError, DimensionMismatchError, OutOfRangeError

if TYPE_CHECKING:
    from quicksim.core.binning import BinAccumulator

logger = logging.getLogger(__name__)


def _sequence(value, what: str):
    if not isinstance(value, (list, tuple, np.ndarray)):
        raise ConfigError(f"{what} must be a list, got {type(value).__name__}.")
    return value


def _numbers(convert, values, what: str) -> list:
    try:
        return [convert(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{what} holds a non-numeric entry: {exc}") from exc


class MigrationMatrix:
    """True→reco response over a flattened N-D binning.

    Args:
        energy_config: Beam energy label, e.g. ``"10x100"``.
        names: Dimension names in declaration order.
        dims: Bins per dimension.
        bin_edges: Edge array per dimension name, ``len == dims[d] + 1``.
        response: ``total_bins`` rows of ``total_bins`` percentages.
        true_counts: Optional true-space counts (zeros if omitted).

    Raises:
        ConfigError: On any inconsistency between the pieces.
    """

    def __init__(
        self,
        energy_config: str,
        names: Sequence[str],
        dims: Sequence[int],
        bin_edges: dict[str, Sequence[float]],
        response: Sequence[Sequence[float]],
        true_counts: Sequence[float] | None = None,
    ) -> None:
        names = _sequence(names, "dimensions.names")
        dims = _sequence(dims, "dimensions.dims")
        if len(names) != len(dims):
            raise ConfigError(
                f"{len(names)} dimension names but {len(dims)} bin counts."
            )
        if not names:
            raise ConfigError("Migration matrix needs at least one dimension.")
        self._energy_config = str(energy_config)
        self._names = [str(n) for n in names]
        self._dims = _numbers(int, dims, "dimensions.dims")
        if any(n <= 0 for n in self._dims):
            raise ConfigError(f"Bin counts must be positive, got {self._dims}.")

        self._edges: list[list[float]] = []
        for name, n in zip(self._names, self._dims):
            if name not in bin_edges:
                raise ConfigError(f"Missing bin_edges for dimension {name!r}.")
            what = f"bin_edges[{name!r}]"
            edges = _numbers(float, _sequence(bin_edges[name], what), what)
            if len(edges) != n + 1:
                raise ConfigError(
                    f"Dimension {name!r} declares {n} bins but has {len(edges)} edges."
                )
            self._edges.append(edges)

        total = self.total_bins
        response = _sequence(response, "migration_response")
        if len(response) != total:
            raise ConfigError(
                f"migration_response has {len(response)} rows, expected {total}."
            )
        rows = []
        for i, row in enumerate(response):
            what = f"migration_response row {i}"
            row = _numbers(float, _sequence(row, what), what)
            if len(row) != total:
                raise ConfigError(
                    f"{what} has {len(row)} entries, expected {total}."
                )
            rows.append(row)
        self._response = np.array(rows, dtype=np.float64, order="C")
        self._response.setflags(write=False)

        if true_counts is None:
            self._true_counts = np.zeros(total)
        else:
            counts = _numbers(float, _sequence(true_counts, "true_counts"), "true_counts")
            if len(counts) != total:
                raise ConfigError(
                    f"true_counts has {len(counts)} entries, expected {total}."
                )
            self._true_counts = np.array(counts, dtype=np.float64)
        self._true_counts.setflags(write=False)

        logger.info(
            "Loaded migration matrix for %s: dims %s (%d bins).",
            self._energy_config, self._dims, total,
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> MigrationMatrix:
        """Build from a parsed migration YAML mapping.

        Raises:
            ConfigError: If a required key is missing or malformed.
        """
        if not isinstance(data, dict):
            raise ConfigError("Migration description must be a mapping.")
        for key in ("energy_config", "dimensions", "migration_response"):
            if key not in data:
                raise ConfigError(f"Migration description is missing {key!r}.")
        dimensions = data["dimensions"]
        if not isinstance(dimensions, dict):
            raise ConfigError("'dimensions' must be a mapping.")
        for key in ("names", "dims", "bin_edges"):
            if key not in dimensions:
                raise ConfigError(f"'dimensions' is missing {key!r}.")
        if not isinstance(dimensions["bin_edges"], dict):
            raise ConfigError("'dimensions.bin_edges' must map names to edge lists.")
        return cls(
            energy_config=data["energy_config"],
            names=dimensions["names"],
            dims=dimensions["dims"],
            bin_edges=dimensions["bin_edges"],
            response=data["migration_response"],
            true_counts=data.get("true_counts"),
        )

    @classmethod
    def from_yaml(cls, path: str) -> MigrationMatrix:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        return {
            "energy_config": self._energy_config,
            "dimensions": {
                "names": list(self._names),
                "dims": list(self._dims),
                "bin_edges": {n: list(e) for n, e in zip(self._names, self._edges)},
            },
            "migration_response": self._response.tolist(),
            "true_counts": self._true_counts.tolist(),
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def energy_config(self) -> str:
        return self._energy_config

    @property
    def names(self) -> list[str]:
        return list(self._names)

    @property
    def dims(self) -> list[int]:
        return list(self._dims)

    @property
    def total_bins(self) -> int:
        return int(np.prod(self._dims))

    @property
    def response(self) -> np.ndarray:
        """Read-only ``(total_bins, total_bins)`` percentage table."""
        return self._response

    @property
    def true_counts(self) -> np.ndarray:
        return self._true_counts

    def num_bins(self, dim: int) -> int:
        return self._dims[self._check_dim(dim)]

    def bin_edges(self, dim: int) -> list[float]:
        return list(self._edges[self._check_dim(dim)])

    def flatten(self, indices: Sequence[int]) -> int:
        """Multi-index → flat index, last dimension fastest.

        Raises:
            DimensionMismatchError: Wrong number of indices.
            OutOfRangeError: An index outside ``[0, dims[d])``.
        """
        if len(indices) != len(self._dims):
            raise DimensionMismatchError(
                f"Expected {len(self._dims)} indices, got {len(indices)}."
            )
        flat = 0
        multiplier = 1
        for d in range(len(self._dims) - 1, -1, -1):
            idx = int(indices[d])
            if idx < 0 or idx >= self._dims[d]:
                raise OutOfRangeError(
                    f"Index {idx} out of range for dimension {self._names[d]!r} "
                    f"({self._dims[d]} bins)."
                )
            flat += idx * multiplier
            multiplier *= self._dims[d]
        return flat

    def unflatten(self, flat: int) -> list[int]:
        """Flat index → multi-index.

        Raises:
            OutOfRangeError: If *flat* is outside ``[0, total_bins)``.
        """
        self._check_flat(flat)
        indices = [0] * len(self._dims)
        for d in range(len(self._dims) - 1, -1, -1):
            indices[d] = flat % self._dims[d]
            flat //= self._dims[d]
        return indices

    def get_response(self, true_flat: int, reco_flat: int) -> float:
        self._check_flat(true_flat)
        self._check_flat(reco_flat)
        return float(self._response[true_flat, reco_flat])

    def get_response_multi(
        self,
        true_indices: Sequence[int],
        reco_indices: Sequence[int],
    ) -> float:
        return float(self._response[self.flatten(true_indices), self.flatten(reco_indices)])

    def predict_events(self, true_flat: int, true_yield: float) -> np.ndarray:
        """Reco-space yields from one true bin: ``response[t] / 100 * yield``."""
        self._check_flat(true_flat)
        return self._response[true_flat] / RESPONSE_PERCENT * true_yield

    def predict_histogram(self, true_yields: Sequence[float]) -> np.ndarray:
        """Reco-space yields from a full true-space yield vector.

        Raises:
            DimensionMismatchError: If ``len(true_yields) != total_bins``.
        """
        yields = np.asarray(true_yields, dtype=np.float64)
        if yields.shape != (self.total_bins,):
            raise DimensionMismatchError(
                f"Expected {self.total_bins} true yields, got {yields.size}."
            )
        return yields @ self._response / RESPONSE_PERCENT

    def describe_bin(self, flat: int) -> str:
        """``(lo < name < hi) && ...`` for one flat bin."""
        clauses = []
        for d, idx in enumerate(self.unflatten(flat)):
            edges = self._edges[d]
            clauses.append(f"({edges[idx]:g} < {self._names[d]} < {edges[idx + 1]:g})")
        return " && ".join(clauses)

    def summary_lines(self) -> list[str]:
        """One ``True: ... --> Reco: ... : value`` line per bin pair."""
        total = self.total_bins
        descriptions = [self.describe_bin(i) for i in range(total)]
        return [
            f"True: {descriptions[t]} --> Reco: {descriptions[r]} : "
            f"{self._response[t, r]:g}"
            for t in range(total)
            for r in range(total)
        ]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_flat(self, flat: int) -> None:
        if flat < 0 or flat >= self.total_bins:
            raise OutOfRangeError(
                f"Flat bin {flat} out of range [0, {self.total_bins})."
            )

    def _check_dim(self, dim: int) -> int:
        if dim < 0 or dim >= len(self._dims):
            raise OutOfRangeError(f"Dimension {dim} out of range [0, {len(self._dims)}).")
        return dim


def yields_from_accumulator(
    matrix: MigrationMatrix,
    accumulator: BinAccumulator,
) -> np.ndarray:
    """Flatten an accumulator's bin sums into a ``total_bins`` vector.

    Raises:
        ConfigError: If the per-dimension bin counts differ.
    """
    shape = list(accumulator.geometry.shape)
    if shape != matrix.dims:
        raise ConfigError(
            f"Accumulator bins {shape} do not match migration dims {matrix.dims}."
        )
    yields = np.zeros(matrix.total_bins)
    for key, value in accumulator.counts().items():
        yields[matrix.flatten(parse_bin_key(key))] += value
    return yields
