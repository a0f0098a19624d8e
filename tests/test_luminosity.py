"""Tests for quicksim.core.luminosity: energy labels and lookup."""

import pytest

from quicksim.core.luminosity import (
    LuminosityTable,
    format_energy_config,
    parse_energy_config,
)
from quicksim.errors import ConfigError, LookupNotFoundError


class TestEnergyConfig:
    @pytest.mark.parametrize("label, expected", [
        ("10x100", (10, 100)),
        ("18X275", (18, 275)),
        (" 5 x 41 ", (5, 41)),
    ])
    def test_parse(self, label, expected):
        assert parse_energy_config(label) == expected

    @pytest.mark.parametrize("label", ["10-100", "x100", "10x", "ten x 100", ""])
    def test_malformed(self, label):
        with pytest.raises(ConfigError, match="NxM"):
            parse_energy_config(label)

    def test_format(self):
        assert format_energy_config(18, 275) == "18x275"


class TestLuminosityTable:
    def test_lookup(self):
        table = LuminosityTable([(10, 100, 50.0), (18, 275, 10.0)])
        assert table.lookup(10, 100) == pytest.approx(50.0)

    def test_not_found_is_lookup_error(self):
        with pytest.raises(LookupError):
            LuminosityTable([]).lookup(10, 100)

    def test_not_found_names_source(self):
        with pytest.raises(LookupNotFoundError, match="lumi.csv"):
            LuminosityTable([(5, 41, 1.0)], source="lumi.csv").lookup(10, 100)
