"""Tests for quicksim.core.kinematics: branch registry and extractors."""

import pytest

from quicksim.core.kinematics import (
    KINEMATICS_FIELDS,
    make_value_extractor,
    resolve_field,
)
from quicksim.errors import ConfigError
from quicksim.models.kinematics import (
    KINEMATICS_TYPES,
    DihadronKinematics,
    DISKinematics,
    RecordKind,
    SIDISKinematics,
)


class TestRegistry:
    @pytest.mark.parametrize("kind", list(RecordKind))
    def test_fields_exist_on_record(self, kind):
        record = KINEMATICS_TYPES[kind]()
        for field_name in KINEMATICS_FIELDS[kind].values():
            assert hasattr(record, field_name)

    def test_case_insensitive(self):
        assert resolve_field(RecordKind.DIS, "q2") == "Q2"
        assert resolve_field(RecordKind.DIS, " Q2 ") == "Q2"

    @pytest.mark.parametrize("branch, field_name", [
        ("pT_lab", "pT_lab"),
        ("ptlab", "pT_lab"),
        ("PTCOM", "pT_com"),
        ("xF", "xF"),
    ])
    def test_sidis_aliases(self, branch, field_name):
        assert resolve_field(RecordKind.SIDIS, branch) == field_name

    @pytest.mark.parametrize("branch, field_name", [
        ("phiR0", "phi_R_method0"),
        ("phi_R_method1", "phi_R_method1"),
        ("zpair", "z_pair"),
        ("Mh", "Mh"),
        ("COM_th", "com_th"),
    ])
    def test_dihadron_aliases(self, branch, field_name):
        assert resolve_field(RecordKind.DISIDIS, branch) == field_name

    def test_unknown_branch(self):
        with pytest.raises(ConfigError, match="Unknown DIS branch 'z'"):
            resolve_field(RecordKind.DIS, "z")


class TestExtractor:
    def test_order_preserved(self):
        extract = make_value_extractor(RecordKind.DIS, ["x", "Q2"])
        assert extract(DISKinematics(Q2=25.0, x=0.02, y=0.5, W=10.0)) == [0.02, 25.0]

    def test_sidis(self):
        extract = make_value_extractor(RecordKind.SIDIS, ["Q2", "z", "ptlab"])
        record = SIDISKinematics(Q2=4.0, z=0.3, pT_lab=0.8)
        assert extract(record) == pytest.approx([4.0, 0.3, 0.8])

    def test_dihadron(self):
        extract = make_value_extractor(RecordKind.DISIDIS, ["Mh", "phiR1"])
        record = DihadronKinematics(Mh=0.77, phi_R_method1=1.2)
        assert extract(record) == pytest.approx([0.77, 1.2])

    def test_fails_at_bind_time(self):
        with pytest.raises(ConfigError):
            make_value_extractor(RecordKind.SIDIS, ["Q2", "Mh"])
