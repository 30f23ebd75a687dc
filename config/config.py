import logging
import os
from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./config.json"
DEFAULT_OCR_URL = "http://localhost:18099/json?pivot"
DEFAULT_UPDATES_PER_SECOND = 5


class Config(BaseModel):
    """Persisted relay settings, read-only once loaded"""
    model_config = ConfigDict(frozen=True)

    api_key: str
    ocr_url: str = DEFAULT_OCR_URL
    froggi_url: str
    updates_per_second: int = Field(default=DEFAULT_UPDATES_PER_SECOND, ge=1, le=255)

    @property
    def period(self) -> float:
        """Seconds between cycle starts"""
        return 1.0 / self.updates_per_second

    @property
    def relay_url(self) -> str:
        return f"{self.froggi_url}/ocr"


class Settings:
    """Process-level knobs taken from the environment"""

    def __init__(self):
        self.config_path = os.getenv('FROGGI_OCR_CONFIG_PATH', DEFAULT_CONFIG_PATH)
        self.log_level = os.getenv('FROGGI_OCR_LOG_LEVEL', 'INFO')


@dataclass
class NeedsBootstrap:
    path: str


@dataclass
class Ready:
    config: Config


StartupState = Union[NeedsBootstrap, Ready]


def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Read and validate the configuration artifact"""
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    try:
        return Config.model_validate_json(raw)
    except ValidationError as e:
        raise ConfigError(f"Could not deserialize config file {path}: {e}") from e


def save_config(config: Config, path: str = DEFAULT_CONFIG_PATH):
    """Write the configuration artifact as pretty-printed JSON"""
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(config.model_dump_json(indent=2))
    except OSError as e:
        raise ConfigError(f"Could not write config file {path}: {e}") from e
    logger.info(f"Wrote config to {path}")


def resolve_startup(path: str = DEFAULT_CONFIG_PATH) -> StartupState:
    """Decide between bootstrap and relay mode.

    Only an artifact that cannot be opened selects bootstrap; one that opens
    but fails to parse is a fatal ConfigError.
    """
    try:
        with open(path, "r", encoding="utf-8"):
            pass
    except OSError:
        logger.debug(f"No usable config at {path}, bootstrap required")
        return NeedsBootstrap(path)

    return Ready(load_config(path))
