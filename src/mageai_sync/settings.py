"""Settings for the Mage AI sync client."""

from pathlib import Path
from typing import Optional
from typing import Type
from typing import TypeVar
from urllib.parse import urlsplit

import pydantic
from pydantic import SecretStr
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict

from mageai_sync.errors import ValidationError

SettingsT = TypeVar("SettingsT", bound=BaseSettings)


class LocalSettings(BaseSettings):
    """
    Settings needed by commands that never contact the server.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) reads
    configuration values from, in order of precedence:
    1. Keyword arguments (e.g. values passed on the command line)
    2. Environment variables prefixed with ``MAGEAI_``
    3. A ``.env`` file in the working directory (local development)

    Environment variable names are case-insensitive.
    """

    log_level: str = "INFO"
    """Minimum level for the stdout log sink."""

    state_file: Path = Path("mageai-state.json")
    """Where the reconciliation driver persists resolved resources."""

    model_config = SettingsConfigDict(
        env_prefix="MAGEAI_",
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )


class Settings(LocalSettings):
    """Settings for the Mage AI sync client, connection included."""

    host: str
    """Base URL of the Mage AI server, e.g. ``https://mage.example.com`` (required)."""

    api_key: SecretStr
    """API key sent in the ``X-API-KEY`` header on every request (required)."""

    timeout: float = 10.0
    """Per-request timeout in seconds, applied uniformly to every call."""

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Require an http(s) URL with a network location."""
        v = v.strip()
        if not v:
            raise ValueError("host must not be empty")
        parts = urlsplit(v)
        if parts.scheme not in ("http", "https"):
            raise ValueError("host must be an http:// or https:// URL")
        if not parts.netloc:
            raise ValueError("host must include a server name, e.g. https://mage.example.com")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


def _load(settings_class: Type[SettingsT], env_file: Optional[Path], overrides: dict) -> SettingsT:
    values = {k: v for k, v in overrides.items() if v is not None}
    if env_file is not None:
        values["_env_file"] = env_file
    try:
        return settings_class(**values)
    except pydantic.ValidationError as exc:
        problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
        raise ValidationError(
            "Invalid Mage AI client configuration "
            f"({problems}). Set MAGEAI_HOST and MAGEAI_API_KEY in the environment or .env file."
        ) from exc


def load_settings(env_file: Optional[Path] = None, **overrides) -> Settings:
    """
    Build Settings, turning a pydantic failure into an operator-facing error.

    Parameters
    ----------
    env_file : Path, optional
        Alternative ``.env`` file to read
    **overrides
        Explicit values that take precedence over the environment; ``None`` values
        are ignored so unset CLI flags fall through to the environment

    Raises
    ------
    ValidationError
        If the host or API key is missing or malformed
    """
    return _load(Settings, env_file, overrides)


def load_local_settings(env_file: Optional[Path] = None, **overrides) -> LocalSettings:
    """Like load_settings, without requiring a host or API key."""
    return _load(LocalSettings, env_file, overrides)
