"""Branch name → kinematics field lookup.

Binning schemes name their observables by branch (``"Q2"``, ``"pT_lab"``,
``"phiR0"``...).  Each record kind has a fixed set of fields; names are
matched case-insensitively, and common spellings are accepted as aliases.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from operator import attrgetter

from quicksim.errors import ConfigError
from quicksim.models.kinematics import RecordKind

logger = logging.getLogger(__name__)

_COMMON_FIELDS: dict[str, str] = {
    "q2": "Q2",
    "x": "x",
    "y": "y",
}

KINEMATICS_FIELDS: dict[RecordKind, dict[str, str]] = {
    RecordKind.DIS: {
        **_COMMON_FIELDS,
        "w": "W",
    },
    RecordKind.SIDIS: {
        **_COMMON_FIELDS,
        "xf": "xF",
        "eta": "eta",
        "z": "z",
        "phi": "phi",
        "pt_lab": "pT_lab",
        "ptlab": "pT_lab",
        "pt_com": "pT_com",
        "ptcom": "pT_com",
    },
    RecordKind.DISIDIS: {
        **_COMMON_FIELDS,
        "z_pair": "z_pair",
        "zpair": "z_pair",
        "phi_h": "phi_h",
        "phih": "phi_h",
        "phi_r_method0": "phi_R_method0",
        "phir0": "phi_R_method0",
        "phi_r_method1": "phi_R_method1",
        "phir1": "phi_R_method1",
        "pt_lab_pair": "pT_lab_pair",
        "ptlabpair": "pT_lab_pair",
        "pt_com_pair": "pT_com_pair",
        "ptcompair": "pT_com_pair",
        "xf_pair": "xF_pair",
        "xfpair": "xF_pair",
        "com_th": "com_th",
        "comth": "com_th",
        "mh": "Mh",
    },
}


def resolve_field(kind: RecordKind, branch: str) -> str:
    """Record field name for *branch*.

    Raises:
        ConfigError: If the branch is unknown for *kind*.
    """
    field_name = KINEMATICS_FIELDS[kind].get(branch.strip().lower())
    if field_name is None:
        known = sorted(set(KINEMATICS_FIELDS[kind].values()))
        raise ConfigError(
            f"Unknown {kind.value} branch {branch!r}; known fields: {', '.join(known)}."
        )
    return field_name


def make_value_extractor(
    kind: RecordKind,
    branches: Sequence[str],
) -> Callable[[object], list[float]]:
    """Accessor returning the *branches* values of one record, in order.

    Unknown branches fail here, once, rather than per event.
    """
    fields = [resolve_field(kind, b) for b in branches]
    getters = [attrgetter(f) for f in fields]
    logger.debug("Bound %s branches %s to fields %s.", kind.value, list(branches), fields)

    def extract(record: object) -> list[float]:
        return [float(get(record)) for get in getters]

    return extract
