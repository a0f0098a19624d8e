"""Sample bookkeeping data models.

One ``FileRecord`` per simulated file, grouped into ``CrossSectionInterval``
objects by Q² range.  Cross sections in pb, Q² in GeV².
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from quicksim.constants import NO_WEIGHT


class WeightMode(Enum):
    """How a WeightTable obtains its per-interval weights.

    LUMINOSITY:    Derive from simulated statistics, rescale to the
                   experimental luminosity of the beam energy pair.
    DEFAULT:       Derive, experimental luminosity fixed at 1 pb⁻¹.
    PRECALCULATED: Use tabulated weights verbatim.
    """
    LUMINOSITY = "luminosity"
    DEFAULT = "default"
    PRECALCULATED = "precalculated"


class ErrorPolicy(Enum):
    """What a batch loader does with a malformed row."""
    RAISE = "raise"
    SKIP = "skip"


@dataclass
class FileRecord:
    """Summary of one simulated event file.

    Attributes:
        filename: File location (local path or xrootd URL).
        q2_min: Lower Q² cut of the sample [GeV²].
        q2_max: Upper Q² cut of the sample [GeV²].
        e_energy: Electron beam energy [GeV].
        h_energy: Hadron beam energy [GeV].
        n_events: Number of events used from the file.
        cross_section_pb: Generator cross section [pb].
        weight: User-provided weight, ``-1`` when absent.
    """
    filename: str = ""
    q2_min: int = 0
    q2_max: int = 0
    e_energy: int = 0
    h_energy: int = 0
    n_events: int = 0
    cross_section_pb: float = 0.0
    weight: float = NO_WEIGHT

    @property
    def has_weight(self) -> bool:
        return self.weight >= 0


@dataclass
class CrossSectionInterval:
    """Unique Q² range with its merged statistics.

    Attributes:
        q2_min: Lower edge [GeV²], inclusive.
        q2_max: Upper edge [GeV²], exclusive for event lookup.
        cross_section: Cross section [pb].
        event_count: Sum of ``n_events`` over all records of the range.
        filenames: Contributing record filenames.
    """
    q2_min: float = 0.0
    q2_max: float = 0.0
    cross_section: float = 0.0
    event_count: int = 0
    filenames: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[float, float]:
        return (self.q2_min, self.q2_max)

    def contains(self, other: CrossSectionInterval) -> bool:
        """True if *other* lies entirely inside this interval."""
        return self.q2_min <= other.q2_min and self.q2_max >= other.q2_max


@dataclass
class PrecalculatedWeight:
    """One row of a precalculated weight table."""
    q2_min: float = 0.0
    q2_max: float = 0.0
    collision_type: str = ""
    e_energy: int = 0
    h_energy: int = 0
    weight: float = 0.0


@dataclass
class RejectedRow:
    """A row skipped by a loader running with ``ErrorPolicy.SKIP``."""
    line_number: int
    reason: str


@dataclass
class LoadReport:
    """Rows accepted and rejected by a batch loader."""
    items: list = field(default_factory=list)
    rejected: list[RejectedRow] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejected
