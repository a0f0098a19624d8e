"""Cross-section resolution for Q²-sliced samples.

Groups per-file records into unique Q² intervals and decides one total
cross section for the whole set:

    Case A (nesting): the first interval, sorted by Q²_min with the
                      widest first on ties, contains all others.
                      Its cross section already counts everything.
    Case B (chain):   consecutive intervals touch (max_i == min_i+1).
                      The intervals partition Q², so cross sections add up.

Any other layout has no well-defined total and is rejected.

Cross sections in pb, luminosities in pb⁻¹.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from quicksim.core.units import simulated_luminosity
from quicksim.errors import ConfigError, MixedEnergyError, RangeResolutionError
from quicksim.models.records import CrossSectionInterval, FileRecord

logger = logging.getLogger(__name__)


def in_q2_range(
    value: float,
    q2_min: float,
    q2_max: float,
    inclusive_upper: bool = False,
) -> bool:
    """``[q2_min, q2_max)`` membership, or ``[q2_min, q2_max]`` if inclusive."""
    if inclusive_upper:
        return q2_min <= value <= q2_max
    return q2_min <= value < q2_max


def check_uniform_energy(records: Sequence[FileRecord]) -> tuple[int, int]:
    """Return the common ``(e_energy, h_energy)`` of *records*.

    Raises:
        ConfigError: If *records* is empty.
        MixedEnergyError: If two records differ in beam energies.
    """
    if not records:
        raise ConfigError("No sample records provided.")
    energies = (records[0].e_energy, records[0].h_energy)
    for rec in records:
        if (rec.e_energy, rec.h_energy) != energies:
            raise MixedEnergyError(
                f"All records must share one beam energy pair: found "
                f"{energies[0]}x{energies[1]} and {rec.e_energy}x{rec.h_energy} "
                f"({rec.filename})"
            )
    return energies


def interval_order(interval) -> tuple[float, float]:
    """Sort key: ascending Q²_min, widest range first on ties."""
    return (float(interval.q2_min), -float(interval.q2_max))


def group_intervals(records: Iterable[FileRecord]) -> list[CrossSectionInterval]:
    """Merge records sharing a Q² range into intervals in ``interval_order``.

    Event counts are summed.  The cross section is assumed identical within
    a range; the last record's value is kept.
    """
    by_range: dict[tuple[float, float], CrossSectionInterval] = {}
    for rec in records:
        key = (float(rec.q2_min), float(rec.q2_max))
        interval = by_range.get(key)
        if interval is None:
            interval = CrossSectionInterval(q2_min=key[0], q2_max=key[1])
            by_range[key] = interval
        interval.event_count += rec.n_events
        interval.cross_section = rec.cross_section_pb
        interval.filenames.append(rec.filename)
    return sorted(by_range.values(), key=interval_order)


def is_fully_nested(intervals: Sequence[CrossSectionInterval]) -> bool:
    """Case A: the first interval contains every other interval."""
    first = intervals[0]
    return all(first.contains(iv) for iv in intervals[1:])


def is_perfect_chain(intervals: Sequence[CrossSectionInterval]) -> bool:
    """Case B: each interval ends exactly where the next one starts."""
    return all(
        intervals[i].q2_max == intervals[i + 1].q2_min
        for i in range(len(intervals) - 1)
    )


def resolve_total_cross_section(intervals: Sequence[CrossSectionInterval]) -> float:
    """Total cross section [pb] of a set of intervals in ``interval_order``.

    Raises:
        ConfigError: If *intervals* is empty.
        RangeResolutionError: If the intervals are neither nested nor chained.
    """
    if not intervals:
        raise ConfigError("Cannot resolve a total cross section without intervals.")
    if is_fully_nested(intervals):
        logger.debug(
            "Q2 intervals nested inside [%g, %g): total from widest interval.",
            intervals[0].q2_min, intervals[0].q2_max,
        )
        return intervals[0].cross_section
    if is_perfect_chain(intervals):
        logger.debug("Q2 intervals form a chain: summing %d cross sections.", len(intervals))
        return sum(iv.cross_section for iv in intervals)
    ranges = ", ".join(f"[{iv.q2_min:g}, {iv.q2_max:g})" for iv in intervals)
    raise RangeResolutionError(
        f"Q2 ranges are neither fully nested nor a continuous chain: {ranges}"
    )


def covering_luminosity(
    target: CrossSectionInterval,
    intervals: Sequence[CrossSectionInterval],
) -> float:
    """Simulated luminosity [pb⁻¹] of every interval covering *target*.

    An interval j covers i when ``min_j <= min_i < max_j`` and
    ``min_j <= max_i <= max_j``.
    """
    total = 0.0
    for iv in intervals:
        if (in_q2_range(target.q2_min, iv.q2_min, iv.q2_max)
                and in_q2_range(target.q2_max, iv.q2_min, iv.q2_max, inclusive_upper=True)):
            total += simulated_luminosity(iv.event_count, iv.cross_section)
    return total


class CrossSectionResolver:
    """Interval bookkeeping for one beam energy configuration.

    Args:
        records: Per-file records, all with the same beam energies.

    Raises:
        ConfigError: On empty input or mixed beam energies.
        RangeResolutionError: If no total cross section can be defined.
    """

    def __init__(self, records: Sequence[FileRecord]) -> None:
        self._energies = check_uniform_energy(records)
        self._intervals = group_intervals(records)
        self._total_xsec = resolve_total_cross_section(self._intervals)
        self._total_events = sum(iv.event_count for iv in self._intervals)
        logger.info(
            "Resolved %d Q2 intervals for %dx%d: total cross section %g pb, %d events.",
            len(self._intervals), self._energies[0], self._energies[1],
            self._total_xsec, self._total_events,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

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
        """Total events / total cross section [pb⁻¹]."""
        return simulated_luminosity(self._total_events, self._total_xsec)

    def covering_luminosity(self, index: int) -> float:
        """Simulated luminosity covering the interval at *index*."""
        return covering_luminosity(self._intervals[index], self._intervals)
