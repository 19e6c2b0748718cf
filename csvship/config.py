"""Single source of truth for shipper configuration.

All modules import from here — never from os.environ directly.

Values come from a plain .env file (``CSVSHIP_ENV_FILE``, default ``.env`` in
the working directory) overlaid by the process environment. The raw strings
below are CLI defaults; ``load_settings`` validates them.
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from pydantic import BaseModel, PositiveFloat, PositiveInt, ValidationError, field_validator

ENV_FILE = os.environ.get("CSVSHIP_ENV_FILE", ".env")

DEFAULT_POLL_INTERVAL_SECONDS = 2.0


def _load(dotenv_path: str | Path) -> dict[str, str | None]:
    """Merge the dotenv file (if any) with the process environment."""
    values: dict[str, str | None] = {}
    if Path(dotenv_path).is_file():
        values.update(dotenv_values(dotenv_path))
    values.update(os.environ)
    return values


_env = _load(ENV_FILE)

# --- Source side ---
SOURCE_DIR: str = _env.get("SOURCE_DIR") or ""
TEMPLATE_DIR: str = _env.get("TEMPLATE_DIR") or ""
FILE_SUFFIX: str = _env.get("FILE_SUFFIX") or ""
CSV_EVENT_WAIT_SECONDS: str = _env.get("CSV_EVENT_WAIT_SECONDS") or ""
POLL_INTERVAL_SECONDS: str = _env.get("POLL_INTERVAL_SECONDS") or str(
    DEFAULT_POLL_INTERVAL_SECONDS
)

# --- Destination side ---
DEST_USER: str = _env.get("DEST_USER") or ""
DEST_HOST: str = _env.get("DEST_HOST") or ""
DEST_DIR: str = _env.get("DEST_DIR") or ""
TRANSFER_TIMEOUT_SECONDS: str = _env.get("TRANSFER_TIMEOUT_SECONDS") or ""


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


class ShipperSettings(BaseModel):
    """Validated runtime configuration for the shipper."""

    source_dir: Path
    dest_user: str
    dest_host: str
    dest_dir: str
    template_dir: Path
    file_suffix: str
    wait_seconds: PositiveInt
    poll_interval: PositiveFloat = DEFAULT_POLL_INTERVAL_SECONDS
    transfer_timeout: PositiveFloat | None = None

    @field_validator("dest_user", "dest_host", "dest_dir", "file_suffix")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("source_dir", "template_dir")
    @classmethod
    def _existing_dir(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"directory does not exist: {value}")
        return value.resolve()


_ENV_NAMES = {
    "source_dir": "SOURCE_DIR",
    "dest_user": "DEST_USER",
    "dest_host": "DEST_HOST",
    "dest_dir": "DEST_DIR",
    "template_dir": "TEMPLATE_DIR",
    "file_suffix": "FILE_SUFFIX",
    "wait_seconds": "CSV_EVENT_WAIT_SECONDS",
    "poll_interval": "POLL_INTERVAL_SECONDS",
    "transfer_timeout": "TRANSFER_TIMEOUT_SECONDS",
}

_REQUIRED = (
    "source_dir",
    "dest_user",
    "dest_host",
    "dest_dir",
    "template_dir",
    "file_suffix",
    "wait_seconds",
)


def load_settings(
    *,
    source_dir: str = SOURCE_DIR,
    dest_user: str = DEST_USER,
    dest_host: str = DEST_HOST,
    dest_dir: str = DEST_DIR,
    template_dir: str = TEMPLATE_DIR,
    file_suffix: str = FILE_SUFFIX,
    wait_seconds: str | int = CSV_EVENT_WAIT_SECONDS,
    poll_interval: str | float = POLL_INTERVAL_SECONDS,
    transfer_timeout: str | float | None = TRANSFER_TIMEOUT_SECONDS,
) -> ShipperSettings:
    """Validate raw configuration values.

    Raises:
        ConfigError: Listing every missing or unparsable value by its
            environment variable name.
    """
    raw = {
        "source_dir": source_dir,
        "dest_user": dest_user,
        "dest_host": dest_host,
        "dest_dir": dest_dir,
        "template_dir": template_dir,
        "file_suffix": file_suffix,
        "wait_seconds": wait_seconds,
        "poll_interval": poll_interval,
        "transfer_timeout": transfer_timeout or None,
    }
    missing = [_ENV_NAMES[key] for key in _REQUIRED if raw[key] in ("", None)]
    if missing:
        raise ConfigError(f"Missing required config: {', '.join(missing)}")

    try:
        return ShipperSettings(**raw)
    except ValidationError as exc:
        problems = [
            f"{_ENV_NAMES.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigError(f"Invalid config: {'; '.join(problems)}") from exc
