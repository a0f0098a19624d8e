"""Per-event kinematics records.

Produced by an external kinematics reconstruction step (four-vectors are
out of scope here) and consumed by the analysis pipeline.  Q² in GeV²,
momenta in GeV, angles in radians.
"""

from dataclasses import dataclass
from enum import Enum


class RecordKind(Enum):
    """Analysis flavour, one kinematics record type per kind."""
    DIS = "DIS"
    SIDIS = "SIDIS"
    DISIDIS = "DISIDIS"


@dataclass
class DISKinematics:
    """Inclusive DIS event variables."""
    Q2: float = 0.0
    x: float = 0.0
    y: float = 0.0
    W: float = 0.0


@dataclass
class SIDISKinematics:
    """Single-hadron SIDIS variables, one record per identified hadron."""
    Q2: float = 0.0
    x: float = 0.0
    y: float = 0.0
    xF: float = 0.0
    eta: float = 0.0
    z: float = 0.0
    phi: float = 0.0
    pT_lab: float = 0.0
    pT_com: float = 0.0


@dataclass
class DihadronKinematics:
    """Dihadron SIDIS variables, one record per hadron pair.

    Attributes:
        z_pair: Pair momentum fraction.
        phi_h: Azimuth of the pair momentum.
        phi_R_method0: Azimuth of the relative momentum (method 0).
        phi_R_method1: Azimuth of the relative momentum (method 1).
        pT_lab_pair: Pair transverse momentum, lab frame [GeV].
        pT_com_pair: Pair transverse momentum, photon-nucleon frame [GeV].
        xF_pair: Pair Feynman x.
        com_th: Decay polar angle in the pair rest frame.
        Mh: Pair invariant mass [GeV].
    """
    Q2: float = 0.0
    x: float = 0.0
    y: float = 0.0
    z_pair: float = 0.0
    phi_h: float = 0.0
    phi_R_method0: float = 0.0
    phi_R_method1: float = 0.0
    pT_lab_pair: float = 0.0
    pT_com_pair: float = 0.0
    xF_pair: float = 0.0
    com_th: float = 0.0
    Mh: float = 0.0


KINEMATICS_TYPES = {
    RecordKind.DIS: DISKinematics,
    RecordKind.SIDIS: SIDISKinematics,
    RecordKind.DISIDIS: DihadronKinematics,
}
