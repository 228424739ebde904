"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import VectorlaneConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG = Path("vectorlane.yaml")

# ${VAR} or ${VAR:-fallback}
_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def user_config_path() -> Path:
    return Path.home() / ".vectorlane" / "config.yaml"


def _candidate_paths(cli_path: str | None) -> list[Path]:
    if cli_path:
        explicit = Path(cli_path).expanduser()
        if not explicit.is_file():
            raise ValueError(f"Config file not found: {explicit}")
        return [explicit]
    return [PROJECT_CONFIG, user_config_path()]


def _read_yaml(path: Path) -> dict | None:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: top level must be a mapping")
    return raw


def load_config(cli_path: str | None = None) -> VectorlaneConfig:
    """Load config with resolution order: CLI > project-local > user-global > defaults.

    An explicit ``cli_path`` must exist. Empty files are skipped.
    """
    for path in _candidate_paths(cli_path):
        if not path.exists():
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        try:
            config = VectorlaneConfig.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
        logger.debug("Loaded config from %s", path)
        return config

    logger.debug("No config file found, using defaults")
    return VectorlaneConfig()


def _expand_env_vars(obj: object) -> object:
    """Recursively expand ${VAR} and ${VAR:-fallback} references in strings."""
    if isinstance(obj, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(2) or ""), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(v) for v in obj]
    return obj


# Written by `vectorlane config init`; values match the model defaults
DEFAULT_CONFIG_TEMPLATE = """\
# vectorlane.yaml

# Storage
database:
  backend: "lancedb"
  uri: ".context/lancedb"      # directory holding the LanceDB tables
  distance_type: "cosine"      # cosine | l2 | dot

# Search
search:
  default_top_k: 10
  rrf_k: 60                    # reciprocal rank fusion constant
  overfetch_factor: 2          # candidates per side = limit * factor
  fts_column: "content"

# Logging
log_level: "info"              # debug | info | warn | error
"""
