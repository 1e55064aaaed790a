from __future__ import annotations

import os

import pytest

from multiput.common.config import (
    DEFAULT_MIN_PART_SIZE_BYTES,
    Settings,
    get_settings,
)

_PREFIXES = ("S3_", "UPLOAD_", "LOG_", "METRICS_")


@pytest.fixture()
def environ(monkeypatch):
    env = {k: v for k, v in os.environ.items() if not k.startswith(_PREFIXES)}
    monkeypatch.setattr(os, "environ", env)
    return env


def test_defaults(environ):
    settings = Settings.from_environment()

    assert settings.S3_REGION == "us-east-1"
    assert settings.S3_ENDPOINT_URL is None
    assert settings.S3_PROFILE is None
    assert settings.UPLOAD_MAX_WORKERS == 4
    assert settings.UPLOAD_READ_BUFFER_BYTES == 64 * 1024
    assert settings.UPLOAD_MIN_PART_SIZE_BYTES == DEFAULT_MIN_PART_SIZE_BYTES
    assert settings.UPLOAD_ABORT_ON_FAILURE is True
    assert settings.LOG_FORMAT == "json"
    assert settings.METRICS_TEXTFILE is None


def test_reads_environment(environ):
    environ.update(
        {
            "S3_REGION": "eu-central-1",
            "S3_ENDPOINT_URL": "http://localhost:9000",
            "S3_PROFILE": "backup",
            "S3_ADDRESSING_STYLE": "Virtual",
            "UPLOAD_MAX_WORKERS": "16",
            "UPLOAD_READ_BUFFER_BYTES": "1048576",
            "UPLOAD_MIN_PART_SIZE_BYTES": "0",
            "UPLOAD_ABORT_ON_FAILURE": "no",
            "UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES": "4096",
            "LOG_LEVEL": "debug",
            "LOG_FORMAT": "PLAIN",
            "METRICS_TEXTFILE": "/tmp/multiput.prom",
        }
    )

    settings = Settings.from_environment()

    assert settings.S3_REGION == "eu-central-1"
    assert settings.S3_ENDPOINT_URL == "http://localhost:9000"
    assert settings.S3_PROFILE == "backup"
    assert settings.S3_ADDRESSING_STYLE == "virtual"
    assert settings.UPLOAD_MAX_WORKERS == 16
    assert settings.UPLOAD_READ_BUFFER_BYTES == 1048576
    assert settings.UPLOAD_MIN_PART_SIZE_BYTES == 0
    assert settings.UPLOAD_ABORT_ON_FAILURE is False
    assert settings.UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES == 4096
    assert settings.LOG_LEVEL == "DEBUG"
    assert settings.LOG_FORMAT == "plain"
    assert settings.METRICS_TEXTFILE == "/tmp/multiput.prom"


def test_blank_optional_values_are_none(environ):
    environ["S3_ENDPOINT_URL"] = "   "

    assert Settings.from_environment().S3_ENDPOINT_URL is None


def test_env_file_is_loaded_without_overriding_environment(environ, tmp_path):
    (tmp_path / ".env").write_text(
        "# local overrides\n"
        "UPLOAD_MAX_WORKERS=12\n"
        'S3_PROFILE="from-file"\n'
        "S3_REGION=ignored\n"
        "not a pair\n",
        encoding="utf-8",
    )
    environ["S3_REGION"] = "us-west-2"

    settings = Settings.from_environment()

    assert settings.UPLOAD_MAX_WORKERS == 12
    assert settings.S3_PROFILE == "from-file"
    assert settings.S3_REGION == "us-west-2"


def test_get_settings_is_cached(environ):
    first = get_settings()
    environ["UPLOAD_MAX_WORKERS"] = "9"

    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().UPLOAD_MAX_WORKERS == 9


@pytest.mark.parametrize(
    "overrides",
    [
        {"UPLOAD_MAX_WORKERS": 0},
        {"UPLOAD_READ_BUFFER_BYTES": 0},
        {"UPLOAD_MIN_PART_SIZE_BYTES": -1},
        {"UPLOAD_SINGLE_SHOT_THRESHOLD_BYTES": -1},
        {"LOG_FORMAT": "xml"},
        {"S3_ADDRESSING_STYLE": "dns"},
    ],
)
def test_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        Settings(**overrides)


def test_non_numeric_worker_count_is_rejected(environ):
    environ["UPLOAD_MAX_WORKERS"] = "many"

    with pytest.raises(ValueError):
        Settings.from_environment()
