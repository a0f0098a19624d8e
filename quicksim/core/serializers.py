"""YAML mappings → binning geometry and analysis configuration.

Enum fields accept either the value or the member name, case-insensitive.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from quicksim.constants import COLLISION_TYPES
from quicksim.core.binning import derive_explicit_edges, validate_geometry
from quicksim.core.luminosity import parse_energy_config
from quicksim.errors import ConfigError
from quicksim.models.analysis import AnalysisConfig
from quicksim.models.binning import (
    BinGeometry,
    Dimension,
    ExplicitMissPolicy,
    GeometryKind,
    Region,
)
from quicksim.models.kinematics import RecordKind

logger = logging.getLogger(__name__)


# =====================================================================
# Generic helpers
# =====================================================================


def _require(data: dict, key: str, where: str) -> Any:
    if key not in data or data[key] is None:
        raise ConfigError(f"{where} is missing the {key!r} key.")
    return data[key]


def _enum_value(enum_cls: type[Enum], raw: Any, key: str) -> Enum:
    if isinstance(raw, enum_cls):
        return raw
    for member in enum_cls:
        if str(raw).lower() in (member.value.lower(), member.name.lower()):
            return member
    choices = ", ".join(m.value for m in enum_cls)
    raise ConfigError(f"Invalid {key} {raw!r}; expected one of: {choices}.")


def load_yaml(path: str) -> dict:
    """``yaml.safe_load`` a mapping from *path*.

    Raises:
        ConfigError: If the document is not a mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping.")
    return data


# =====================================================================
# Binning geometry
# =====================================================================


def dict_to_geometry(
    data: dict,
    name: str = "",
    miss_policy: ExplicitMissPolicy = ExplicitMissPolicy.EDGE_PROJECTION,
) -> BinGeometry:
    """Deserialize a binning description.

    A ``regions`` list makes the geometry explicit; its dimension edges are
    then derived from the regions.

    Raises:
        ConfigError: If a required key is missing or the edges are invalid.
    """
    if not isinstance(data, dict):
        raise ConfigError("Binning description must be a mapping.")
    energy_config = str(_require(data, "energy_config", "Binning description"))
    raw_dims = _require(data, "dimensions", "Binning description")
    if not isinstance(raw_dims, list):
        raise ConfigError("'dimensions' must be a sequence.")

    regions = [
        Region(
            min_edges=[float(v) for v in _require(r, "min_edges", f"Region {i}")],
            max_edges=[float(v) for v in _require(r, "max_edges", f"Region {i}")],
        )
        for i, r in enumerate(data.get("regions") or [])
    ]
    kind = GeometryKind.EXPLICIT if regions else GeometryKind.RECTANGULAR

    dimensions = []
    for i, d in enumerate(raw_dims):
        if not isinstance(d, dict):
            raise ConfigError(f"Dimension at index {i} must be a mapping.")
        dim_name = str(_require(d, "name", f"Dimension at index {i}"))
        where = f"Dimension {dim_name!r}"
        edges = d.get("edges")
        if kind == GeometryKind.RECTANGULAR:
            edges = _require(d, "edges", where)
            if not isinstance(edges, list):
                raise ConfigError(f"{where} 'edges' must be a sequence.")
        dimensions.append(Dimension(
            name=dim_name,
            branch_true=str(_require(d, "branch_true", where)),
            branch_reco=str(_require(d, "branch_reco", where)),
            edges=[float(e) for e in edges or []],
        ))

    if kind == GeometryKind.EXPLICIT:
        for dim, edges in zip(dimensions, derive_explicit_edges(regions, len(dimensions))):
            dim.edges = edges

    geometry = BinGeometry(
        kind=kind,
        dimensions=dimensions,
        regions=regions,
        energy_config=energy_config,
        name=name,
        miss_policy=miss_policy,
    )
    validate_geometry(geometry)
    return geometry


def load_geometry_yaml(
    path: str,
    miss_policy: ExplicitMissPolicy = ExplicitMissPolicy.EDGE_PROJECTION,
) -> BinGeometry:
    geometry = dict_to_geometry(load_yaml(path), name=Path(path).stem, miss_policy=miss_policy)
    logger.info(
        "Loaded %s binning %r for %s: shape %s.",
        geometry.kind.value, geometry.name, geometry.energy_config, geometry.shape,
    )
    return geometry


# =====================================================================
# Analysis configuration
# =====================================================================


def dict_to_analysis_config(data: dict) -> AnalysisConfig:
    """Deserialize an analysis YAML mapping.

    Raises:
        ConfigError: On missing required keys or invalid values.
    """
    if not isinstance(data, dict):
        raise ConfigError("Analysis configuration must be a mapping.")
    where = "Analysis configuration"
    energy_config = str(_require(data, "energy_config", where))
    parse_energy_config(energy_config)

    binning_format = str(data.get("binning_format") or "").lower()
    if binning_format not in ("", "yaml", "csv"):
        raise ConfigError(f"Invalid binning_format {binning_format!r}; expected yaml or csv.")

    try:
        max_events = int(data.get("max_events") or 0)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid max_events {data.get('max_events')!r}.") from exc

    defaults = AnalysisConfig()
    collision_type = str(data.get("collision_type") or defaults.collision_type).lower()
    if collision_type not in COLLISION_TYPES:
        raise ConfigError(
            f"Invalid collision_type {collision_type!r}; expected one of: "
            f"{', '.join(COLLISION_TYPES)}."
        )

    return AnalysisConfig(
        analysis_type=_enum_value(
            RecordKind, _require(data, "analysis_type", where), "analysis_type",
        ),
        energy_config=energy_config,
        records_csv=str(_require(data, "records_csv", where)),
        binning_scheme=str(_require(data, "binning_scheme", where)),
        binning_format=binning_format,
        weights_csv=str(data.get("weights_csv") or ""),
        lumi_csv=str(data.get("lumi_csv") or ""),
        output_csv=str(data.get("output_csv") or ""),
        max_events=max_events,
        collision_type=collision_type,
        explicit_miss_policy=_enum_value(
            ExplicitMissPolicy,
            data.get("explicit_miss_policy") or defaults.explicit_miss_policy,
            "explicit_miss_policy",
        ),
    )


def load_analysis_config(path: str) -> AnalysisConfig:
    return dict_to_analysis_config(load_yaml(path))
