"""Per-event Q² weights for sliced Monte Carlo samples.

Each unique Q² interval gets one weight.  For derived weights,

    L   = N_total / σ_total                    (simulated luminosity)
    L_i = Σ_j N_j / σ_j   over j covering i
    w_i = L / L_i

and an event with Q² in interval i receives
``w_i × L_exp / L`` (``w_i`` verbatim for precalculated tables).

Cross sections in pb, luminosities in pb⁻¹, Q² in GeV².
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING

from quicksim.constants import (
    COLLISION_EN,
    COLLISION_EP,
    DEFAULT_EXPERIMENTAL_LUMI,
    EXPORT_Q2_EPSILON,
    PROTON_BEAM_MARKER,
)
from quicksim.core.cross_section import (
    CrossSectionResolver,
    in_q2_range,
    interval_order,
)
from quicksim.core.units import simulated_luminosity
from quicksim.errors import ConfigError, LookupNotFoundError, ZeroLuminosityError
from quicksim.models.records import (
    CrossSectionInterval,
    FileRecord,
    PrecalculatedWeight,
    WeightMode,
)
from quicksim.models.results import IntervalDiagnostics

if TYPE_CHECKING:
    from quicksim.core.luminosity import LuminosityTable

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^0-9a-z]+")


def infer_collision_type(
    filenames: Sequence[str],
    marker: str = PROTON_BEAM_MARKER,
) -> str:
    """``"ep"`` if any filename carries the proton-beam marker token, else ``"en"``."""
    marker = marker.lower()
    for name in filenames:
        if marker in _TOKEN_SPLIT.split(name.lower()):
            return COLLISION_EP
    return COLLISION_EN


class WeightTable:
    """Q² interval weights for one beam energy configuration.

    Use :meth:`from_records` (luminosity or default mode) or
    :meth:`from_precalculated`.  The table is read-only apart from
    :meth:`update_override` and :meth:`clear_overrides`.
    """

    def __init__(
        self,
        mode: WeightMode,
        energies: tuple[int, int],
        intervals: list[CrossSectionInterval],
        derived: list[float | None],
        overrides: list[float | None],
        covering: list[float],
        collision_types: list[str] | None = None,
        total_cross_section: float = 0.0,
        experimental_luminosity: float = DEFAULT_EXPERIMENTAL_LUMI,
    ) -> None:
        if not intervals:
            raise ConfigError("A weight table needs at least one Q2 interval.")
        self._mode = mode
        self._energies = energies
        self._intervals = intervals
        self._derived = derived
        self._overrides = overrides
        self._covering = covering
        self._collision_types = collision_types
        self._total_xsec = total_cross_section
        self._total_events = sum(iv.event_count for iv in intervals)
        self._exp_lumi = experimental_luminosity
        if mode == WeightMode.PRECALCULATED:
            self._sim_lumi = 0.0
        else:
            self._sim_lumi = simulated_luminosity(self._total_events, total_cross_section)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_records(
        cls,
        records: Sequence[FileRecord],
        mode: WeightMode = WeightMode.DEFAULT,
        luminosity_table: LuminosityTable | None = None,
    ) -> WeightTable:
        """Derive weights from per-file statistics.

        Args:
            records: Per-file records sharing one beam energy pair.
            mode: ``LUMINOSITY`` or ``DEFAULT``.
            luminosity_table: Required for ``LUMINOSITY`` mode.

        Raises:
            ConfigError: Bad mode, missing table, empty or mixed records.
            RangeResolutionError: Intervals neither nested nor chained.
            ZeroLuminosityError: An interval without covering luminosity.
            LookupNotFoundError: No luminosity for the beam energies.
        """
        if mode == WeightMode.PRECALCULATED:
            raise ConfigError("Use WeightTable.from_precalculated for precalculated weights.")

        resolver = CrossSectionResolver(records)
        intervals = resolver.intervals
        e_energy, h_energy = resolver.energies

        if mode == WeightMode.LUMINOSITY:
            if luminosity_table is None:
                raise ConfigError("Luminosity mode requires a luminosity table.")
            exp_lumi = luminosity_table.lookup(e_energy, h_energy)
        else:
            exp_lumi = DEFAULT_EXPERIMENTAL_LUMI

        # First provided weight of a range wins
        overrides: list[float | None] = [None] * len(intervals)
        index = {iv.key: i for i, iv in enumerate(intervals)}
        for rec in records:
            i = index[(float(rec.q2_min), float(rec.q2_max))]
            if rec.has_weight and overrides[i] is None:
                overrides[i] = rec.weight

        lumi_total = resolver.simulated_luminosity
        covering = [resolver.covering_luminosity(i) for i in range(len(intervals))]
        derived: list[float | None] = []
        for i, iv in enumerate(intervals):
            if overrides[i] is not None:
                logger.info(
                    "Using provided weight for Q2 in [%g, %g): %g",
                    iv.q2_min, iv.q2_max, overrides[i],
                )
                derived.append(None)
                continue
            derived.append(_derive_weight(iv, lumi_total, covering[i]))
            logger.debug(
                "Q2 in [%g, %g): count=%d xsec=%g pb weight=%g",
                iv.q2_min, iv.q2_max, iv.event_count, iv.cross_section, derived[-1],
            )

        return cls(
            mode=mode,
            energies=(e_energy, h_energy),
            intervals=intervals,
            derived=derived,
            overrides=overrides,
            covering=covering,
            total_cross_section=resolver.total_cross_section,
            experimental_luminosity=exp_lumi,
        )

    @classmethod
    def from_precalculated(
        cls,
        rows: Sequence[PrecalculatedWeight],
        e_energy: int,
        h_energy: int,
        records: Sequence[FileRecord] | None = None,
    ) -> WeightTable:
        """Use tabulated weights verbatim.

        Rows for other beam energies are ignored.  *records*, if given,
        only contribute event counts and filenames to the diagnostics.

        Raises:
            LookupNotFoundError: If no row matches the beam energies.
        """
        selected = [r for r in rows if r.e_energy == e_energy and r.h_energy == h_energy]
        if not selected:
            raise LookupNotFoundError(
                f"No precalculated weights for {e_energy}x{h_energy}."
            )

        by_range: dict[tuple[float, float], PrecalculatedWeight] = {}
        for row in selected:
            key = (float(row.q2_min), float(row.q2_max))
            if key in by_range:
                logger.warning(
                    "Duplicate precalculated weight for Q2 in [%g, %g); keeping %g.",
                    key[0], key[1], row.weight,
                )
            by_range[key] = row
        ordered = sorted(by_range.values(), key=interval_order)

        intervals = [
            CrossSectionInterval(q2_min=float(r.q2_min), q2_max=float(r.q2_max))
            for r in ordered
        ]
        index = {iv.key: i for i, iv in enumerate(intervals)}
        for rec in records or []:
            i = index.get((float(rec.q2_min), float(rec.q2_max)))
            if i is not None:
                intervals[i].event_count += rec.n_events
                intervals[i].filenames.append(rec.filename)

        logger.info(
            "Loaded %d precalculated Q2 weights for %dx%d.",
            len(intervals), e_energy, h_energy,
        )
        return cls(
            mode=WeightMode.PRECALCULATED,
            energies=(e_energy, h_energy),
            intervals=intervals,
            derived=[None] * len(intervals),
            overrides=[float(r.weight) for r in ordered],
            covering=[0.0] * len(intervals),
            collision_types=[r.collision_type for r in ordered],
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def mode(self) -> WeightMode:
        return self._mode

    @property
    def energies(self) -> tuple[int, int]:
        return self._energies

    @property
    def intervals(self) -> list[CrossSectionInterval]:
        return list(self._intervals)

    @property
    def total_cross_section(self) -> float:
        return self._total_xsec

    @property
    def total_events(self) -> int:
        return self._total_events

    @property
    def simulated_luminosity(self) -> float:
        return self._sim_lumi

    @property
    def experimental_luminosity(self) -> float:
        return self._exp_lumi

    @property
    def luminosity_scale(self) -> float:
        """Factor applied to interval weights (1 for precalculated tables)."""
        if self._mode == WeightMode.PRECALCULATED:
            return 1.0
        if self._sim_lumi == 0.0:
            raise ZeroLuminosityError("Total simulated luminosity is zero.")
        return self._exp_lumi / self._sim_lumi

    def interval_weight(self, index: int) -> float:
        """Weight of interval *index* before luminosity scaling."""
        override = self._overrides[index]
        if override is not None:
            return override
        return self._derived[index]

    def final_weight(self, index: int) -> float:
        """Weight given to events of interval *index*."""
        return self.interval_weight(index) * self.luminosity_scale

    def find_interval(self, q2: float) -> int:
        """Index of the interval used for *q2*.

        Overlapping intervals resolve to the last match in ascending Q²_min
        order; a value outside every interval falls back to index 0.
        """
        idx = -1
        for i, iv in enumerate(self._intervals):
            if in_q2_range(q2, iv.q2_min, iv.q2_max):
                idx = i
        return idx if idx >= 0 else 0

    def get_weight(self, q2: float) -> float:
        """Event weight for momentum transfer *q2* [GeV²]."""
        return self.final_weight(self.find_interval(q2))

    def update_override(self, q2_min: float, q2_max: float, weight: float) -> None:
        """Replace the weight of the interval ``[q2_min, q2_max)``.

        Raises:
            LookupNotFoundError: If no interval has exactly that range.
        """
        for i, iv in enumerate(self._intervals):
            if iv.q2_min == q2_min and iv.q2_max == q2_max:
                self._overrides[i] = float(weight)
                logger.info(
                    "User provided weight %g for Q2 in [%g, %g).", weight, q2_min, q2_max,
                )
                return
        raise LookupNotFoundError(f"Q2 range ({q2_min:g}, {q2_max:g}) not found.")

    def clear_overrides(self) -> None:
        """Drop all provided weights and restore the derived ones.

        Raises:
            ConfigError: For precalculated tables (nothing to restore).
            ZeroLuminosityError: If a restored interval has no covering luminosity.
        """
        if self._mode == WeightMode.PRECALCULATED:
            raise ConfigError("Precalculated weights cannot be cleared.")
        for i, iv in enumerate(self._intervals):
            if self._derived[i] is None:
                self._derived[i] = _derive_weight(iv, self._sim_lumi, self._covering[i])
        self._overrides = [None] * len(self._intervals)
        logger.info("All user provided weights have been cleared.")

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def weighted_record_rows(
        self,
        records: Sequence[FileRecord],
    ) -> list[tuple[FileRecord, float]]:
        """Pair every record with the weight just above its Q²_min."""
        return [
            (rec, self.get_weight(rec.q2_min + EXPORT_Q2_EPSILON))
            for rec in records
        ]

    def precalculated_rows(
        self,
        marker: str = PROTON_BEAM_MARKER,
    ) -> list[PrecalculatedWeight]:
        """One reusable row per interval with its final weight."""
        e_energy, h_energy = self._energies
        rows = []
        for i, iv in enumerate(self._intervals):
            if self._collision_types is not None:
                ctype = self._collision_types[i]
            else:
                ctype = infer_collision_type(iv.filenames, marker)
            rows.append(PrecalculatedWeight(
                q2_min=iv.q2_min,
                q2_max=iv.q2_max,
                collision_type=ctype,
                e_energy=e_energy,
                h_energy=h_energy,
                weight=self.final_weight(i),
            ))
        return rows

    def diagnostics(self) -> list[IntervalDiagnostics]:
        """Per-interval breakdown, in ascending Q²_min order."""
        return [
            IntervalDiagnostics(
                q2_min=iv.q2_min,
                q2_max=iv.q2_max,
                event_count=iv.event_count,
                cross_section=iv.cross_section,
                covering_luminosity=self._covering[i],
                weight=self.interval_weight(i),
                final_weight=self.final_weight(i),
                overridden=self._overrides[i] is not None,
            )
            for i, iv in enumerate(self._intervals)
        ]


def _derive_weight(
    interval: CrossSectionInterval,
    lumi_total: float,
    lumi_covering: float,
) -> float:
    if lumi_covering == 0.0:
        raise ZeroLuminosityError(
            f"Computed luminosity for Q2 range [{interval.q2_min:g}, "
            f"{interval.q2_max:g}) is zero."
        )
    return lumi_total / lumi_covering
