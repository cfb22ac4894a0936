"""Generator configuration.

Values are layered: model defaults, then an optional YAML file, then
``MEME_AI_<FIELD>`` environment variables (highest priority).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/meme_ai.yaml")
ENV_PREFIX = "MEME_AI_"


class GeneratorConfig(BaseModel):
    api_endpoint: str = "http://localhost:3000/api/generate-caption"
    themes_endpoint: str = "http://localhost:3000/api/generate-themes"
    improve_endpoint: str = "http://localhost:3000/api/improve-text"
    fallback_mode: bool = True
    cache_enabled: bool = True
    request_delay_ms: int = Field(1000, ge=0)
    max_cache_size: int = Field(100, ge=1)
    fetch_timeout_ms: int = Field(10000, gt=0)
    max_ai_requests: int = Field(10, ge=0)
    default_context: str = "general internet humor"
    # litellm model id used by the proxy backend
    model: Optional[str] = None

    @property
    def request_delay(self) -> float:
        return self.request_delay_ms / 1000.0

    @property
    def fetch_timeout(self) -> float:
        return self.fetch_timeout_ms / 1000.0


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for name in GeneratorConfig.model_fields:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(path: Optional[Union[str, Path]] = None) -> GeneratorConfig:
    """Build a GeneratorConfig from YAML (if any) and the environment.

    Args:
        path: YAML file to read. When omitted, ``config/meme_ai.yaml`` is used
            if it exists.

    Raises:
        FileNotFoundError: If an explicit ``path`` does not exist.
        pydantic.ValidationError: If a value cannot be coerced.
    """
    data: Dict[str, Any] = {}
    cfg_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if cfg_path.exists():
        with open(cfg_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {cfg_path} must contain a mapping")
        data.update(loaded)
        logger.debug("Loaded config from %s", cfg_path)
    elif path is not None:
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    data.update(_env_overrides())
    return GeneratorConfig(**data)


__all__ = ["GeneratorConfig", "load_config", "DEFAULT_CONFIG_PATH"]
