"""Settings resolution: stored settings, then environment variables, then explicit overrides."""
import logging
from typing import Any, Mapping, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from describer.models import Settings
from describer.persistence import LocalStore

logger = logging.getLogger(__name__)


class EnvironmentSettings(BaseSettings):
    """``DESCRIBER_*`` environment variables; unset or empty ones stay None."""

    model_config = SettingsConfigDict(
        env_prefix="DESCRIBER_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: Optional[str] = None
    prompt: Optional[str] = None
    use_mock: Optional[bool] = None


def resolve_settings(storage: LocalStore, overrides: Optional[Mapping[str, Any]] = None) -> Settings:
    """
    Merge stored settings with environment and override values.

    ``None`` values in ``overrides`` are ignored so argparse namespaces can be
    passed through directly.
    """
    merged = storage.load_settings().model_dump()

    from_env = EnvironmentSettings().model_dump(exclude_none=True)
    if from_env:
        logger.debug(f"Settings from environment: {sorted(from_env)}")
    merged.update(from_env)

    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})

    return Settings(**merged)
