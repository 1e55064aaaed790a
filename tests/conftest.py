from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from multiput.common.config import get_settings
from multiput.services.range_reader import SourceDescriptor
from tests.services.mock_storage import MockStorageClient, payload


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch, tmp_path):
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    # setup_logging binds handlers to the stderr captured for one test.
    for name in (None, "multiput.cli"):
        logging.getLogger(name).handlers.clear()


@pytest.fixture()
def mock_storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture()
def make_source(tmp_path) -> Callable[..., SourceDescriptor]:
    def factory(size: int, *, name: str = "source.bin", seed: int = 7) -> SourceDescriptor:
        path = Path(tmp_path) / name
        path.write_bytes(payload(size, seed=seed))
        return SourceDescriptor.from_path(path)

    return factory
