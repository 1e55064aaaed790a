from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_READ_BUFFER_BYTES = 64 * 1024
# Object stores reject non-final parts below this size.
DEFAULT_MIN_PART_SIZE_BYTES = 5 * 1024 * 1024

LOG_FORMATS: tuple[str, ...] = ("json", "plain")
ADDRESSING_STYLES: tuple[str, ...] = ("path", "virtual", "auto")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class Settings:
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: str | None = None
    S3_PROFILE: str | None = None
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_ADDRESSING_STYLE: str = "path"
    UPLOAD_MAX_WORKERS: int = 4
    UPLOAD_READ_BUFFER_BYTES: int = DEFAULT_READ_BUFFER_BYTES
    UPLOAD_MIN_PART_SIZE_BYTES: int = DEFAULT_MIN_PART_SIZE_BYTES
    UPLOAD_ABORT_ON_FAILURE: bool = True
    UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES: int = 0
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    METRICS_TEXTFILE: str | None = None

    def __post_init__(self) -> None:
        if self.UPLOAD_MAX_WORKERS < 1:
            raise ValueError("UPLOAD_MAX_WORKERS must be at least 1.")
        if self.UPLOAD_READ_BUFFER_BYTES < 1:
            raise ValueError("UPLOAD_READ_BUFFER_BYTES must be positive.")
        if self.UPLOAD_MIN_PART_SIZE_BYTES < 0:
            raise ValueError("UPLOAD_MIN_PART_SIZE_BYTES must not be negative.")
        if self.UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES < 0:
            raise ValueError(
                "UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES must not be negative."
            )
        self.LOG_FORMAT = self.LOG_FORMAT.strip().lower()
        if self.LOG_FORMAT not in LOG_FORMATS:
            raise ValueError(f"LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}.")
        self.S3_ADDRESSING_STYLE = self.S3_ADDRESSING_STYLE.strip().lower()
        if self.S3_ADDRESSING_STYLE not in ADDRESSING_STYLES:
            raise ValueError(
                f"S3_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_REGION=os.environ.get("S3_REGION", cls.S3_REGION),
            S3_ENDPOINT_URL=_as_optional(os.environ.get("S3_ENDPOINT_URL")),
            S3_PROFILE=_as_optional(os.environ.get("S3_PROFILE")),
            S3_ACCESS_KEY_ID=_as_optional(os.environ.get("S3_ACCESS_KEY_ID")),
            S3_SECRET_ACCESS_KEY=_as_optional(os.environ.get("S3_SECRET_ACCESS_KEY")),
            S3_ADDRESSING_STYLE=os.environ.get(
                "S3_ADDRESSING_STYLE", cls.S3_ADDRESSING_STYLE
            ),
            UPLOAD_MAX_WORKERS=int(
                os.environ.get("UPLOAD_MAX_WORKERS", cls.UPLOAD_MAX_WORKERS)
            ),
            UPLOAD_READ_BUFFER_BYTES=int(
                os.environ.get("UPLOAD_READ_BUFFER_BYTES", cls.UPLOAD_READ_BUFFER_BYTES)
            ),
            UPLOAD_MIN_PART_SIZE_BYTES=int(
                os.environ.get(
                    "UPLOAD_MIN_PART_SIZE_BYTES", cls.UPLOAD_MIN_PART_SIZE_BYTES
                )
            ),
            UPLOAD_ABORT_ON_FAILURE=_as_bool(
                os.environ.get("UPLOAD_ABORT_ON_FAILURE"), cls.UPLOAD_ABORT_ON_FAILURE
            ),
            UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES=int(
                os.environ.get(
                    "UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES",
                    cls.UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES,
                )
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_FORMAT=os.environ.get("LOG_FORMAT", cls.LOG_FORMAT),
            METRICS_TEXTFILE=_as_optional(os.environ.get("METRICS_TEXTFILE")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
