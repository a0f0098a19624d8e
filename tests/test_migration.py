"""Tests for quicksim.core.migration: response matrix loading, index
flattening and reco-space prediction."""

import numpy as np
import pytest
import yaml

from quicksim.core.binning import BinAccumulator
from quicksim.core.migration import MigrationMatrix, yields_from_accumulator
from quicksim.errors import ConfigError, DimensionMismatchError, OutOfRangeError
from quicksim.models.binning import BinGeometry, Dimension


def _identity_data(dims=(2, 3)) -> dict:
    total = int(np.prod(dims))
    names = [f"v{d}" for d in range(len(dims))]
    return {
        "energy_config": "10x100",
        "dimensions": {
            "names": names,
            "dims": list(dims),
            "bin_edges": {
                name: [float(i) for i in range(n + 1)]
                for name, n in zip(names, dims)
            },
        },
        "migration_response": [
            [100.0 if i == j else 0.0 for j in range(total)]
            for i in range(total)
        ],
    }


@pytest.fixture
def matrix():
    return MigrationMatrix.from_dict(_identity_data())


class TestLoading:
    def test_shape(self, matrix):
        assert matrix.total_bins == 6
        assert matrix.response.shape == (6, 6)
        assert matrix.response.flags["C_CONTIGUOUS"]
        assert matrix.num_bins(1) == 3
        assert matrix.bin_edges(0) == [0.0, 1.0, 2.0]

    def test_true_counts_default_zero(self, matrix):
        assert np.array_equal(matrix.true_counts, np.zeros(6))

    def test_true_counts_loaded(self):
        data = _identity_data()
        data["true_counts"] = [1, 2, 3, 4, 5, 6]
        assert MigrationMatrix.from_dict(data).true_counts[5] == 6.0

    def test_response_read_only(self, matrix):
        with pytest.raises(ValueError):
            matrix.response[0, 0] = 1.0

    @pytest.mark.parametrize("key", ["energy_config", "dimensions", "migration_response"])
    def test_missing_top_level_key(self, key):
        data = _identity_data()
        del data[key]
        with pytest.raises(ConfigError, match=key):
            MigrationMatrix.from_dict(data)

    @pytest.mark.parametrize("key", ["names", "dims", "bin_edges"])
    def test_missing_dimension_key(self, key):
        data = _identity_data()
        del data["dimensions"][key]
        with pytest.raises(ConfigError, match=key):
            MigrationMatrix.from_dict(data)

    def test_names_dims_mismatch(self):
        data = _identity_data()
        data["dimensions"]["names"].append("extra")
        with pytest.raises(ConfigError, match="dimension names"):
            MigrationMatrix.from_dict(data)

    def test_edge_count(self):
        data = _identity_data()
        data["dimensions"]["bin_edges"]["v1"] = [0.0, 1.0]
        with pytest.raises(ConfigError, match="edges"):
            MigrationMatrix.from_dict(data)

    def test_missing_edges_for_name(self):
        data = _identity_data()
        del data["dimensions"]["bin_edges"]["v0"]
        with pytest.raises(ConfigError, match="v0"):
            MigrationMatrix.from_dict(data)

    def test_row_count(self):
        data = _identity_data()
        data["migration_response"].pop()
        with pytest.raises(ConfigError, match="rows"):
            MigrationMatrix.from_dict(data)

    def test_short_row(self):
        data = _identity_data()
        data["migration_response"][3] = [0.0] * 5
        with pytest.raises(ConfigError, match="row 3"):
            MigrationMatrix.from_dict(data)

    def test_scalar_rows(self):
        data = {
            "energy_config": "10x100",
            "dimensions": {"names": ["Q2"], "dims": [2], "bin_edges": {"Q2": [1, 10, 100]}},
            "migration_response": [50, 50],
        }
        with pytest.raises(ConfigError, match="row 0 must be a list"):
            MigrationMatrix.from_dict(data)

    def test_non_numeric_dims(self):
        data = _identity_data()
        data["dimensions"]["dims"] = ["a", 3]
        with pytest.raises(ConfigError, match="dimensions.dims"):
            MigrationMatrix.from_dict(data)

    def test_scalar_edges(self):
        data = _identity_data()
        data["dimensions"]["bin_edges"]["v0"] = 2.0
        with pytest.raises(ConfigError, match="must be a list"):
            MigrationMatrix.from_dict(data)

    def test_non_numeric_response_entry(self):
        data = _identity_data()
        data["migration_response"][1][0] = "high"
        with pytest.raises(ConfigError, match="row 1"):
            MigrationMatrix.from_dict(data)

    def test_scalar_names(self):
        data = _identity_data()
        data["dimensions"]["names"] = "v0"
        with pytest.raises(ConfigError, match="dimensions.names"):
            MigrationMatrix.from_dict(data)

    def test_true_counts_length(self):
        data = _identity_data()
        data["true_counts"] = [1.0]
        with pytest.raises(ConfigError, match="true_counts"):
            MigrationMatrix.from_dict(data)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "migration.yaml"
        path.write_text(yaml.safe_dump(_identity_data()))
        assert MigrationMatrix.from_yaml(str(path)).dims == [2, 3]

    def test_to_dict_roundtrip(self, matrix):
        again = MigrationMatrix.from_dict(matrix.to_dict())
        assert np.array_equal(again.response, matrix.response)
        assert again.names == matrix.names


class TestFlattening:
    def test_last_dimension_fastest(self, matrix):
        assert matrix.flatten([1, 2]) == 5
        assert matrix.flatten([0, 1]) == 1
        assert matrix.unflatten(5) == [1, 2]

    def test_all_bins_roundtrip(self, matrix):
        for flat in range(matrix.total_bins):
            assert matrix.flatten(matrix.unflatten(flat)) == flat

    def test_three_dims(self):
        m = MigrationMatrix.from_dict(_identity_data((2, 3, 4)))
        assert m.flatten([1, 2, 3]) == 1 * 12 + 2 * 4 + 3
        assert m.unflatten(23) == [1, 2, 3]

    def test_wrong_length(self, matrix):
        with pytest.raises(DimensionMismatchError):
            matrix.flatten([1])

    def test_index_out_of_range(self, matrix):
        with pytest.raises(OutOfRangeError):
            matrix.flatten([2, 0])
        with pytest.raises(OutOfRangeError):
            matrix.flatten([0, -1])

    def test_flat_out_of_range(self, matrix):
        with pytest.raises(OutOfRangeError):
            matrix.unflatten(6)

    def test_out_of_range_is_index_error(self, matrix):
        with pytest.raises(IndexError):
            matrix.get_response(0, 6)


class TestResponse:
    def test_get_response(self, matrix):
        assert matrix.get_response(4, 4) == 100.0
        assert matrix.get_response(4, 3) == 0.0
        assert matrix.get_response_multi([1, 1], [1, 1]) == 100.0

    def test_get_response_bounds(self, matrix):
        with pytest.raises(OutOfRangeError):
            matrix.get_response(-1, 0)
        with pytest.raises(OutOfRangeError):
            matrix.get_response_multi([0, 3], [0, 0])


class TestPrediction:
    def test_percentages(self):
        data = {
            "energy_config": "10x100",
            "dimensions": {"names": ["Q2"], "dims": [2], "bin_edges": {"Q2": [1, 10, 100]}},
            "migration_response": [[50.0, 50.0], [10.0, 90.0]],
        }
        m = MigrationMatrix.from_dict(data)
        assert list(m.predict_events(0, 10.0)) == pytest.approx([5.0, 5.0])
        assert list(m.predict_histogram([10.0, 100.0])) == pytest.approx([15.0, 95.0])

    def test_predict_histogram_sums_rows(self, matrix):
        yields = np.arange(6, dtype=float)
        expected = sum(matrix.predict_events(t, yields[t]) for t in range(6))
        assert np.allclose(matrix.predict_histogram(yields), expected)

    def test_predict_events_out_of_range(self, matrix):
        with pytest.raises(OutOfRangeError):
            matrix.predict_events(6, 1.0)

    def test_histogram_length(self, matrix):
        with pytest.raises(DimensionMismatchError):
            matrix.predict_histogram([1.0, 2.0])


class TestSummary:
    def test_lines(self, matrix):
        lines = matrix.summary_lines()
        assert len(lines) == 36
        assert lines[0] == (
            "True: (0 < v0 < 1) && (0 < v1 < 1) --> "
            "Reco: (0 < v0 < 1) && (0 < v1 < 1) : 100"
        )
        assert lines[1].endswith("(0 < v1 < 1) --> Reco: (0 < v0 < 1) && (1 < v1 < 2) : 0")


class TestAccumulatorYields:
    def _geometry(self, dims=(2, 3)) -> BinGeometry:
        return BinGeometry(dimensions=[
            Dimension(f"v{d}", f"v{d}", f"v{d}", [float(i) for i in range(n + 1)])
            for d, n in enumerate(dims)
        ])

    def test_flattened(self, matrix):
        acc = BinAccumulator(self._geometry())
        acc.add_event([1.5, 2.5], 4.0)
        acc.add_event([0.5, 0.5], 1.0)
        yields = yields_from_accumulator(matrix, acc)
        assert yields[5] == pytest.approx(4.0)
        assert yields[0] == pytest.approx(1.0)
        assert yields.sum() == pytest.approx(5.0)
        assert np.allclose(matrix.predict_histogram(yields), yields)

    def test_shape_mismatch(self, matrix):
        acc = BinAccumulator(self._geometry((3, 2)))
        with pytest.raises(ConfigError, match="do not match"):
            yields_from_accumulator(matrix, acc)
