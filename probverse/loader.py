"""
YAML data loader with schema validation.

Loads the universe configuration and spawn presets from YAML files and
validates them against JSON schemas. Sections or keys absent from the
YAML fall back to the defaults in constants.py.
"""

import yaml
import json
from pathlib import Path
from typing import Dict, Optional
import jsonschema

from .data_types import (
    UniverseConfig, SimulationConfig, TrueConstants, BoundsConfig,
    BeliefPrior, PriorsConfig, EstimatorConfig, CollisionConfig,
    AggregatorConfig, DiscoveryConfig, MetaLearningConfig, LoggingConfig,
    Preset
)


class DataLoadError(Exception):
    """Raised when data loading or validation fails"""
    pass


def load_yaml(file_path: Path) -> dict:
    """Load YAML file and return parsed dict"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise DataLoadError(f"File not found: {file_path}")

    try:
        with open(file_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DataLoadError(f"YAML parse error in {file_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DataLoadError(f"Expected a mapping at top level of {file_path}")
    return data


def validate_against_schema(data: dict, schema_path: Path, data_path: Path):
    """Validate data dict against JSON schema"""
    if not schema_path.exists():
        # Schema validation optional (schema_dir may point at a partial set)
        return

    try:
        with open(schema_path, 'r') as f:
            schema = json.load(f)
        jsonschema.validate(instance=data, schema=schema)
    except jsonschema.ValidationError as e:
        raise DataLoadError(f"Validation error in {data_path}: {e.message}")
    except json.JSONDecodeError as e:
        raise DataLoadError(f"Invalid JSON schema {schema_path}: {e}")


def _build(cls, data: Optional[dict], section: str, source: Path):
    """Construct a config dataclass from an optional YAML section"""
    try:
        return cls(**(data or {}))
    except TypeError as e:
        raise DataLoadError(f"Invalid '{section}' section in {source}: {e}")


def parse_universe_config(data: dict, source: Path = Path('<memory>')) -> UniverseConfig:
    """Parse an already-loaded universe mapping into UniverseConfig"""
    defaults = PriorsConfig()
    priors_data = data.get('priors', {}) or {}
    priors = PriorsConfig(
        gravity=_build(BeliefPrior, {**defaults.gravity.__dict__, **priors_data.get('gravity', {})},
                       'priors.gravity', source),
        mass=_build(BeliefPrior, {**defaults.mass.__dict__, **priors_data.get('mass', {})},
                    'priors.mass', source),
        friction=_build(BeliefPrior, {**defaults.friction.__dict__, **priors_data.get('friction', {})},
                        'priors.friction', source),
    )

    for name, prior in (('gravity', priors.gravity), ('mass', priors.mass), ('friction', priors.friction)):
        if prior.min > prior.max:
            raise DataLoadError(f"Prior range for {name} is empty in {source}: "
                                f"min={prior.min} > max={prior.max}")

    bounds = _build(BoundsConfig, data.get('bounds'), 'bounds', source)
    if bounds.min >= bounds.max:
        raise DataLoadError(f"Bounds are empty in {source}: min={bounds.min} >= max={bounds.max}")

    return UniverseConfig(
        universe_id=data.get('universe_id', 'default'),
        name=data.get('name', 'Probabilistic Universe'),
        seed=int(data.get('seed', UniverseConfig().seed)),
        simulation=_build(SimulationConfig, data.get('simulation'), 'simulation', source),
        true_constants=_build(TrueConstants, data.get('true_constants'), 'true_constants', source),
        bounds=bounds,
        priors=priors,
        estimator=_build(EstimatorConfig, data.get('estimator'), 'estimator', source),
        collision=_build(CollisionConfig, data.get('collision'), 'collision', source),
        aggregator=_build(AggregatorConfig, data.get('aggregator'), 'aggregator', source),
        discovery=_build(DiscoveryConfig, data.get('discovery'), 'discovery', source),
        meta_learning=_build(MetaLearningConfig, data.get('meta_learning'), 'meta_learning', source),
        logging=_build(LoggingConfig, data.get('logging'), 'logging', source),
        description=data.get('description')
    )


def load_universe_config(file_path: Path, schema_dir: Optional[Path] = None) -> UniverseConfig:
    """Load universe configuration from YAML"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "universe.schema.json"
        validate_against_schema(data, schema_path, file_path)

    return parse_universe_config(data, file_path)


def load_presets(file_path: Path, schema_dir: Optional[Path] = None) -> Dict[str, Preset]:
    """Load spawn presets from YAML, keyed by preset_id (file order preserved)"""
    file_path = Path(file_path)
    data = load_yaml(file_path)

    # Validate if schema available
    if schema_dir:
        schema_path = Path(schema_dir) / "presets.schema.json"
        validate_against_schema(data, schema_path, file_path)

    presets = {}
    for preset_data in data.get('presets', []):
        preset = _build(Preset, preset_data, 'presets', file_path)
        if len(preset.initial_velocity) != 3:
            raise DataLoadError(f"Preset {preset.preset_id} in {file_path}: "
                                f"initial_velocity must have 3 components")
        if preset.preset_id in presets:
            raise DataLoadError(f"Duplicate preset_id '{preset.preset_id}' in {file_path}")
        presets[preset.preset_id] = preset

    return presets


def load_all_data(data_root: Path, schema_dir: Optional[Path] = None) -> dict:
    """Load all simulation data from data directory

    Returns dict with keys: universe, presets
    """
    data_root = Path(data_root)

    universe = load_universe_config(data_root / "universe.yaml", schema_dir)

    presets_path = data_root / "presets.yaml"
    presets = load_presets(presets_path, schema_dir) if presets_path.exists() else {}

    return {
        'universe': universe,
        'presets': presets
    }
