"""Analysis run configuration model."""

from dataclasses import dataclass

from quicksim.constants import COLLISION_EP
from quicksim.models.binning import ExplicitMissPolicy
from quicksim.models.kinematics import RecordKind


@dataclass
class AnalysisConfig:
    """One weighted binning run.

    Attributes:
        analysis_type: Kinematics record kind to bin.
        energy_config: Beam energies as ``"NxM"``.
        records_csv: Per-file sample records.
        binning_scheme: Geometry file (YAML grid or explicit CSV).
        binning_format: ``"yaml"`` or ``"csv"``; empty infers from suffix.
        weights_csv: Precalculated weight table; takes precedence if set.
        lumi_csv: Experimental luminosity table (luminosity mode).
        output_csv: Binned table destination; empty uses the default name.
        max_events: Stop after this many records, ``<= 0`` for no limit.
        collision_type: ``"ep"`` or ``"en"``, used in the default name.
        explicit_miss_policy: Fallback for explicit-geometry misses.
    """
    analysis_type: RecordKind = RecordKind.DIS
    energy_config: str = ""
    records_csv: str = ""
    binning_scheme: str = ""
    binning_format: str = ""
    weights_csv: str = ""
    lumi_csv: str = ""
    output_csv: str = ""
    max_events: int = 0
    collision_type: str = COLLISION_EP
    explicit_miss_policy: ExplicitMissPolicy = ExplicitMissPolicy.EDGE_PROJECTION
