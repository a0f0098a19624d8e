"""Tests for quicksim.core.binning: bin lookup, accumulation and merge."""

import pytest

from quicksim.core.binning import (
    BinAccumulator,
    derive_explicit_edges,
    find_bins,
    find_edge_bin,
    make_bin_key,
    merge_accumulators,
    parse_bin_key,
)
from quicksim.errors import ConfigError, DimensionMismatchError
from quicksim.models.binning import (
    BinGeometry,
    Dimension,
    ExplicitMissPolicy,
    GeometryKind,
    Region,
)


# ── Helpers ──────────────────────────────────────────────────────────

def _grid(name: str = "grid") -> BinGeometry:
    return BinGeometry(
        kind=GeometryKind.RECTANGULAR,
        dimensions=[
            Dimension("Q2", "Q2", "Q2", [1.0, 10.0, 100.0]),
            Dimension("x", "x", "x", [0.0, 0.1, 0.5, 1.0]),
        ],
        energy_config="10x100",
        name=name,
    )


def _explicit(policy=ExplicitMissPolicy.EDGE_PROJECTION) -> BinGeometry:
    regions = [
        Region([1.0, 0.0], [10.0, 0.5]),
        Region([10.0, 0.0], [100.0, 1.0]),
    ]
    edges = derive_explicit_edges(regions, 2)
    return BinGeometry(
        kind=GeometryKind.EXPLICIT,
        dimensions=[
            Dimension("Q2", "Q2", "Q2", edges[0]),
            Dimension("x", "x", "x", edges[1]),
        ],
        regions=regions,
        energy_config="10x100",
        name="explicit",
        miss_policy=policy,
    )


class TestEdgeLookup:
    def test_boundaries(self):
        edges = [0.0, 10.0, 20.0]
        assert find_edge_bin(edges, 10.0) == 1
        assert find_edge_bin(edges, 20.0) == -1
        assert find_edge_bin(edges, -0.001) == -1
        assert find_edge_bin(edges, 0.0) == 0
        assert find_edge_bin(edges, 19.999) == 1

    def test_nan_out_of_range(self):
        assert find_edge_bin([0.0, 10.0, 20.0], float("nan")) == -1

    def test_bin_key(self):
        assert make_bin_key([2, 0, 5]) == "2_0_5"
        assert parse_bin_key("2_0_5") == [2, 0, 5]


class TestFindBins:
    def test_rectangular(self):
        assert find_bins(_grid(), [5.0, 0.7]) == [0, 2]

    def test_partial_out_of_range(self):
        assert find_bins(_grid(), [500.0, 0.7]) == [-1, 2]

    def test_wrong_length(self):
        with pytest.raises(DimensionMismatchError):
            find_bins(_grid(), [5.0])

    def test_explicit_hit_maps_min_edges(self):
        geo = _explicit()
        assert geo.dimensions[1].edges == [0.0, 0.5, 1.0]
        assert find_bins(geo, [50.0, 0.7]) == [1, 0]
        assert find_bins(geo, [5.0, 0.2]) == [0, 0]

    def test_explicit_miss_projects(self):
        # [1,10) x [0.5,1.0) is not a declared region
        assert find_bins(_explicit(), [5.0, 0.7]) == [0, 1]

    def test_explicit_miss_out_of_range(self):
        geo = _explicit(ExplicitMissPolicy.OUT_OF_RANGE)
        assert find_bins(geo, [5.0, 0.7]) == [-1, -1]


class TestAccumulator:
    def test_add_event_repeated(self):
        acc = BinAccumulator(_grid())
        for _ in range(7):
            assert acc.add_event([5.0, 0.05], 0.25)
        assert acc.count("0_0") == pytest.approx(7 * 0.25)
        assert acc.stats.accepted == 7

    def test_dropped_event(self):
        acc = BinAccumulator(_grid())
        assert not acc.add_event([0.5, 0.05], 1.0)
        assert acc.counts() == {}
        assert acc.stats.dropped == 1

    def test_counts_is_copy(self):
        acc = BinAccumulator(_grid())
        acc.add_event([5.0, 0.05], 1.0)
        acc.counts()["0_0"] = 99.0
        assert acc.count("0_0") == 1.0

    def test_total(self):
        acc = BinAccumulator(_grid())
        acc.add_event([5.0, 0.05], 1.5)
        acc.add_event([50.0, 0.9], 2.0)
        assert acc.total() == pytest.approx(3.5)

    def test_nan_dropped(self):
        acc = BinAccumulator(_grid())
        assert not acc.add_event([float("nan"), 0.05], 1.0)
        assert acc.total() == 0.0
        assert acc.stats.dropped == 1

    def test_nan_dropped_by_explicit_projection(self):
        acc = BinAccumulator(_explicit())
        assert not acc.add_event([float("nan"), 0.7], 1.0)
        assert acc.counts() == {}

    def test_fallback_counted(self):
        acc = BinAccumulator(_explicit())
        assert acc.add_event([5.0, 0.7], 1.0)
        assert acc.stats.fallbacks == 1

    def test_branches(self):
        geo = _grid()
        geo.dimensions[0].branch_true = "mc_Q2"
        acc = BinAccumulator(geo)
        assert acc.reco_branches() == ["Q2", "x"]
        assert acc.true_branches() == ["mc_Q2", "x"]

    def test_invalid_geometry(self):
        geo = _grid()
        geo.dimensions[0].edges = [10.0, 1.0]
        with pytest.raises(ConfigError, match="ascending"):
            BinAccumulator(geo)


class TestBinTable:
    def test_dense_rectangular(self):
        acc = BinAccumulator(_grid())
        acc.add_event([50.0, 0.2], 2.0)
        rows = acc.bin_table_rows()
        assert acc.bin_table_header() == ["Q2_min", "Q2_max", "x_min", "x_max"]
        assert len(rows) == 2 * 3
        # last dimension varies fastest
        assert rows[0] == [1.0, 10.0, 0.0, 0.1, 0.0]
        assert rows[1][:4] == [1.0, 10.0, 0.1, 0.5]
        assert rows[4] == [10.0, 100.0, 0.1, 0.5, 2.0]

    def test_explicit_one_row_per_region(self):
        acc = BinAccumulator(_explicit())
        acc.add_event([50.0, 0.9], 3.0)
        rows = acc.bin_table_rows()
        assert rows == [
            [1.0, 10.0, 0.0, 0.5, 0.0],
            [10.0, 100.0, 0.0, 1.0, 3.0],
        ]


class TestMerge:
    def test_union_and_sum(self):
        a = BinAccumulator(_grid())
        b = BinAccumulator(_grid())
        a.add_event([5.0, 0.05], 1.0)
        b.add_event([5.0, 0.05], 2.0)
        b.add_event([50.0, 0.9], 4.0)
        a.merge(b)
        assert a.counts() == {"0_0": pytest.approx(3.0), "1_2": pytest.approx(4.0)}
        assert a.stats.accepted == 3

    def test_partitioned_equals_sequential(self):
        events = [([5.0, 0.05], 0.5), ([50.0, 0.9], 1.0), ([20.0, 0.3], 0.25)] * 4
        whole = BinAccumulator(_grid())
        for values, w in events:
            whole.add_event(values, w)
        parts = [BinAccumulator(_grid()) for _ in range(3)]
        for i, (values, w) in enumerate(events):
            parts[i % 3].add_event(values, w)
        merged = merge_accumulators(parts)
        assert merged.counts().keys() == whole.counts().keys()
        for key, value in whole.counts().items():
            assert merged.count(key) == pytest.approx(value)

    def test_incompatible(self):
        other = _grid()
        other.dimensions[1].edges = [0.0, 1.0]
        with pytest.raises(ConfigError, match="different binnings"):
            BinAccumulator(_grid()).merge(BinAccumulator(other))

    def test_merge_nothing(self):
        with pytest.raises(ConfigError):
            merge_accumulators([])
