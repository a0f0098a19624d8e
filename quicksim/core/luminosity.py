"""Experimental luminosity lookup by beam energy pair.

The table itself is an external input (see
``quicksim.export.csv_import.load_luminosity_table``); this module only
answers "which luminosity belongs to ``e x h``".  Luminosities in pb⁻¹.
"""

from __future__ import annotations

import logging
import re

from quicksim.errors import ConfigError, LookupNotFoundError

logger = logging.getLogger(__name__)

_ENERGY_CONFIG_RE = re.compile(r"^\s*(\d+)\s*[xX]\s*(\d+)\s*$")


def parse_energy_config(energy_config: str) -> tuple[int, int]:
    """Split an ``"NxM"`` label into ``(electron, hadron)`` energies.

    Raises:
        ConfigError: If the label does not have the ``NxM`` form.
    """
    m = _ENERGY_CONFIG_RE.match(str(energy_config))
    if m is None:
        raise ConfigError(
            f"Invalid energy configuration {energy_config!r}; expected NxM (e.g. 10x100)."
        )
    return int(m.group(1)), int(m.group(2))


def format_energy_config(e_energy: int, h_energy: int) -> str:
    return f"{e_energy}x{h_energy}"


class LuminosityTable:
    """Expected integrated luminosity per ``(e_energy, h_energy)``.

    Args:
        rows: ``(e_energy, h_energy, luminosity)`` triples.
        source: Origin of the rows, used in error messages.
    """

    def __init__(
        self,
        rows: list[tuple[int, int, float]],
        source: str = "<memory>",
    ) -> None:
        self._rows = [(int(e), int(h), float(lumi)) for e, h, lumi in rows]
        self._source = source

    def __len__(self) -> int:
        return len(self._rows)

    def lookup(self, e_energy: int, h_energy: int) -> float:
        """Luminosity [pb⁻¹] for one beam energy pair.

        Raises:
            LookupNotFoundError: If no row matches.
            ConfigError: If several rows match.
        """
        matches = [
            lumi for e, h, lumi in self._rows
            if e == e_energy and h == h_energy
        ]
        if not matches:
            raise LookupNotFoundError(
                f"No luminosity entry for {e_energy}x{h_energy} in {self._source}."
            )
        if len(matches) > 1:
            raise ConfigError(
                f"{len(matches)} luminosity entries for {e_energy}x{h_energy} "
                f"in {self._source}; expected exactly one."
            )
        logger.info(
            "Loaded experimental luminosity %g pb^-1 for %dx%d.",
            matches[0], e_energy, h_energy,
        )
        return matches[0]
