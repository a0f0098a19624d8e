"""Diagnostics and summary data models.

Returned by WeightTable, BinAccumulator and Analysis in place of printed
progress output.
"""

from dataclasses import dataclass, field


@dataclass
class IntervalDiagnostics:
    """Per-interval weighting breakdown.

    Attributes:
        q2_min: Lower Q² edge [GeV²].
        q2_max: Upper Q² edge [GeV²].
        event_count: Events in the interval.
        cross_section: Cross section [pb] (0 in precalculated mode).
        covering_luminosity: Simulated luminosity covering the interval
            [pb⁻¹] (0 when not derived).
        weight: Interval weight before luminosity scaling.
        final_weight: Weight returned for events of the interval.
        overridden: True if the weight was provided rather than derived.
    """
    q2_min: float = 0.0
    q2_max: float = 0.0
    event_count: int = 0
    cross_section: float = 0.0
    covering_luminosity: float = 0.0
    weight: float = 0.0
    final_weight: float = 0.0
    overridden: bool = False


@dataclass
class AccumulatorStats:
    """Event bookkeeping of one BinAccumulator.

    Attributes:
        accepted: Events added to a bin.
        dropped: Events with at least one out-of-range dimension.
        fallbacks: Explicit-geometry lookups resolved by edge projection.
    """
    accepted: int = 0
    dropped: int = 0
    fallbacks: int = 0

    def merged(self, other: "AccumulatorStats") -> "AccumulatorStats":
        return AccumulatorStats(
            accepted=self.accepted + other.accepted,
            dropped=self.dropped + other.dropped,
            fallbacks=self.fallbacks + other.fallbacks,
        )


@dataclass
class AnalysisSummary:
    """Outcome of one analysis run.

    Attributes:
        events_processed: Kinematics records read.
        events_binned: Records that landed in a bin.
        events_dropped: Records outside the binning.
        total_weight: Sum of accumulated weights.
        output_csv: Path of the binned table, empty until saved.
        intervals: Weight table breakdown.
    """
    events_processed: int = 0
    events_binned: int = 0
    events_dropped: int = 0
    total_weight: float = 0.0
    output_csv: str = ""
    intervals: list[IntervalDiagnostics] = field(default_factory=list)
