"""
Pipeline configuration.

Settings are read from a YAML file and then overridden by environment
variables. Expected YAML format:

```yaml
prediction:
  api_url: "http://localhost:3333/predict"
  timeout_seconds: 30

batching:
  page_size: 10
  page_delay_seconds: 0.1

fallback:
  min_row_length: 10
  positional_indices:
    equipment_code: 0
    detection_date: 3

criticality:
  bands: standard   # standard (sum >= 9 is critical) or strict (sum > 9)

placeholders:
  seed: null

reporting:
  default_reporter: null   # user id recorded when no uploader is given
```
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from medallion_etl.exceptions import ConfigurationError
from medallion_etl.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/pipeline.yaml"
DEFAULT_PREDICTION_URL = "http://localhost:3333/predict"

# Column positions in the raw ordered row of the legacy export layout
DEFAULT_POSITIONAL_INDICES = {
    "equipment_code": 0,
    "detection_date": 3,
    "equipment_description": 4,
    "owning_section": 5,
    "reliability": 6,
    "availability": 7,
    "process_safety": 8,
    "criticality": 9,
}


class PredictionSettings(BaseModel):
    api_url: str = DEFAULT_PREDICTION_URL
    timeout_seconds: float = Field(30.0, gt=0)


class BatchingSettings(BaseModel):
    page_size: int = Field(10, ge=1)
    page_delay_seconds: float = Field(0.1, ge=0)


class FallbackSettings(BaseModel):
    positional_indices: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_POSITIONAL_INDICES)
    )
    min_row_length: int = Field(10, ge=1)


class CriticalitySettings(BaseModel):
    bands: Literal["standard", "strict"] = "standard"


class PlaceholderSettings(BaseModel):
    seed: int | None = None


class ReportingSettings(BaseModel):
    default_reporter: str | None = None


class PipelineSettings(BaseModel):
    """
    Complete settings for one pipeline process.

    Attributes:
        prediction: External prediction service endpoint and timeout
        batching: Silver->Gold page size and inter-page delay
        fallback: Positional recovery of fields from the raw ordered row
        criticality: Which band table classifies factor sums
        placeholders: Seed for randomized placeholder values
        reporting: Reporter recorded on Gold anomalies imported without an uploader
    """

    prediction: PredictionSettings = Field(default_factory=PredictionSettings)
    batching: BatchingSettings = Field(default_factory=BatchingSettings)
    fallback: FallbackSettings = Field(default_factory=FallbackSettings)
    criticality: CriticalitySettings = Field(default_factory=CriticalitySettings)
    placeholders: PlaceholderSettings = Field(default_factory=PlaceholderSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)


# env var -> (section, key, converter)
ENV_OVERRIDES = {
    "AI_PREDICTION_API_URL": ("prediction", "api_url", str),
    "AI_PREDICTION_TIMEOUT_SECONDS": ("prediction", "timeout_seconds", float),
    "PIPELINE_PAGE_SIZE": ("batching", "page_size", int),
    "PIPELINE_PAGE_DELAY_SECONDS": ("batching", "page_delay_seconds", float),
    "PIPELINE_CRITICALITY_BANDS": ("criticality", "bands", str),
    "PIPELINE_RANDOM_SEED": ("placeholders", "seed", int),
    "PIPELINE_DEFAULT_REPORTER": ("reporting", "default_reporter", str),
}


def _read_yaml(config_path: Path) -> dict[str, Any]:
    with open(config_path, encoding="utf-8") as f:
        try:
            config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return config


def _apply_env_overrides(config: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    for env_name, (section, key, converter) in ENV_OVERRIDES.items():
        raw = environ.get(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = converter(raw.strip())
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e
        config.setdefault(section, {})
        if not isinstance(config[section], dict):
            raise ConfigurationError(f"Section '{section}' must be a mapping")
        config[section][key] = value
    return config


def load_settings(
    config_path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> PipelineSettings:
    """
    Load pipeline settings from YAML and environment.

    Args:
        config_path: YAML file path (defaults to env var PIPELINE_CONFIG,
            then config/pipeline.yaml). A missing default file yields defaults;
            a missing explicit file is an error.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated PipelineSettings

    Raises:
        ConfigurationError: If the file or an override is invalid
    """
    environ = dict(os.environ) if environ is None else environ
    explicit = config_path is not None or "PIPELINE_CONFIG" in environ
    path = Path(config_path or environ.get("PIPELINE_CONFIG", DEFAULT_CONFIG_PATH))

    if path.exists():
        config = _read_yaml(path)
    elif explicit:
        raise ConfigurationError(f"Pipeline configuration file not found: {path}")
    else:
        logger.warning(f"Pipeline configuration file not found: {path}, using defaults")
        config = {}

    config = _apply_env_overrides(config, environ)

    try:
        return PipelineSettings.model_validate(config)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid pipeline configuration: {e}") from e
