"""Unit conventions for cross sections and luminosities.

Internal (core) units:
    Cross section : pb
    Luminosity    : pb⁻¹
    Q²            : GeV²

Every input table is read in these units; nothing is converted.
"""

from typing import NewType

Pb = NewType('Pb', float)
InvPb = NewType('InvPb', float)


def simulated_luminosity(n_events: float, cross_section_pb: Pb) -> InvPb:
    """Integrated luminosity represented by a simulated sample.

    Args:
        n_events: Number of generated events.
        cross_section_pb: Sample cross section [pb].

    Returns:
        Luminosity [pb⁻¹].  Zero cross section yields zero (no exposure).
    """
    if cross_section_pb == 0:
        return InvPb(0.0)
    return InvPb(n_events / cross_section_pb)
