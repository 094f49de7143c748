"""Configuration system for popgen_stats.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → override.yaml → dict overrides

Sections map 1:1 to YAML top-level keys:
  diversity: how pi / theta are reported (pairing, per-site scaling)
  errors:    strict error propagation and sample-size warnings
"""

from __future__ import annotations

import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from popgen_stats.types import StatisticsWarning


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class DiversitySection:
    """Diversity statistic reporting.

    pi_pairing: "adjacent" pairs consecutive alleles in table order (default),
                "all_pairs" uses every allele pair with 2·n/(n−1) weighting
    """
    pi_pairing: str = "adjacent"
    numsites: Optional[int] = None     # if set, pi is reported per site
    totalsites: Optional[int] = None   # if set, theta is reported per site


@dataclass
class ErrorSection:
    """Error propagation."""
    strict: bool = False               # raise StatisticsError instead of warn + 0
    warn_min_sample_size: int = 3      # smaller samples give inf/NaN coefficients


@dataclass
class StatisticsConfig:
    """Complete configuration.

    Load from YAML via `load_config()`.
    """
    diversity: DiversitySection = field(default_factory=DiversitySection)
    errors: ErrorSection = field(default_factory=ErrorSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, warning about unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    unknown = sorted(set(data) - valid_fields)
    if unknown:
        warnings.warn(
            f"Ignoring unknown {section_cls.__name__} keys: {unknown}",
            StatisticsWarning,
            stacklevel=3,
        )
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> StatisticsConfig:
    """Convert a merged YAML dict to a StatisticsConfig."""
    section_map = {
        'diversity': DiversitySection,
        'errors': ErrorSection,
    }
    sections = {}
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return StatisticsConfig(**sections)


def validate_config(config: StatisticsConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure."""
    valid_pairings = {"adjacent", "all_pairs"}
    if config.diversity.pi_pairing not in valid_pairings:
        raise ValueError(
            f"diversity.pi_pairing must be one of {valid_pairings}, "
            f"got '{config.diversity.pi_pairing}'"
        )
    for name in ("numsites", "totalsites"):
        value = getattr(config.diversity, name)
        if value is not None and (not isinstance(value, int) or value <= 0):
            raise ValueError(
                f"diversity.{name} must be a positive integer or null, "
                f"got {value!r}"
            )
    if not isinstance(config.errors.strict, bool):
        raise ValueError(
            f"errors.strict must be a boolean, got {config.errors.strict!r}"
        )
    if config.errors.warn_min_sample_size < 0:
        raise ValueError(
            f"errors.warn_min_sample_size must be >= 0, "
            f"got {config.errors.warn_min_sample_size}"
        )


def load_config(
    base_path: Union[str, Path],
    override_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> StatisticsConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → override file → dict overrides.

    Args:
        base_path: Path to base configuration YAML.
        override_path: Optional override YAML (skipped if missing).
        overrides: Optional dict of overrides applied last.

    Returns:
        Validated StatisticsConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if override_path is not None:
        override_path = Path(override_path)
        if override_path.exists():
            with open(override_path) as f:
                deep_merge(config_dict, yaml.safe_load(f) or {})

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> StatisticsConfig:
    """Return a StatisticsConfig with all default values."""
    config = StatisticsConfig()
    validate_config(config)
    return config
